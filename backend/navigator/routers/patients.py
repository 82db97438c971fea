"""Patient list and bundle endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from qdrant_client import QdrantClient

from navigator.clients import get_qdrant
from navigator.config import settings
from navigator.errors import BlobFetchError
from navigator.models.records import PatientSummary
from navigator.models.schemas import ErrorDetail, PatientBundleResponse
from navigator.services import blob_store
from navigator.services.patient_index import list_patients as list_indexed_patients

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["patients"])


@router.get("/patients", response_model=list[PatientSummary])
def list_patients(
    limit: int = Query(default=100, ge=1, le=1000),
    qdrant: QdrantClient = Depends(get_qdrant),
) -> list[PatientSummary]:
    return list_indexed_patients(qdrant, settings.qdrant_collection, limit=limit)


@router.get("/patient", response_model=PatientBundleResponse)
async def get_patient_bundle(file: str | None = None) -> PatientBundleResponse:
    if not file:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(
                code="MISSING_FILE",
                message="Missing file parameter",
            ).model_dump(),
        )
    try:
        bundle = await blob_store.fetch_bundle(
            file, base_url=settings.blob_base_url, timeout=settings.request_timeout
        )
    except BlobFetchError as e:
        logger.warning("Bundle fetch failed for %s: %s", file, e.reason)
        raise HTTPException(
            status_code=e.status_code,
            detail=ErrorDetail(code="BLOB_FETCH_FAILED", message=e.reason).model_dump(),
        )
    return PatientBundleResponse(bundle=bundle)
