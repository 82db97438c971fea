"""Similar-patient search endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from qdrant_client import QdrantClient

from navigator.clients import get_embedder, get_qdrant
from navigator.config import settings
from navigator.errors import EmbeddingProviderError, PatientNotFoundError
from navigator.models.schemas import ErrorDetail, SimilarityRequest, SimilarityResponse
from navigator.services.embedding_client import EmbeddingClient
from navigator.services.patient_index import get_patient_vector, search_similar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["similarity"])


@router.post("/similarity", response_model=SimilarityResponse)
def find_similar(
    body: SimilarityRequest,
    qdrant: QdrantClient = Depends(get_qdrant),
    embedder: EmbeddingClient = Depends(get_embedder),
) -> SimilarityResponse:
    collection = settings.qdrant_collection
    if body.patient_id:
        try:
            vector = get_patient_vector(qdrant, collection, body.patient_id)
        except PatientNotFoundError as e:
            raise HTTPException(
                status_code=404,
                detail=ErrorDetail(code="PATIENT_NOT_FOUND", message=e.reason).model_dump(),
            )
    elif body.free_text:
        try:
            vector = embedder.embed(body.free_text)
        except EmbeddingProviderError as e:
            logger.exception("Query embedding failed")
            raise HTTPException(
                status_code=502,
                detail=ErrorDetail(code="EMBEDDING_FAILED", message=e.reason).model_dump(),
            )
    else:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(
                code="MISSING_QUERY",
                message="Missing patientId or freeText",
            ).model_dump(),
        )

    return SimilarityResponse(results=search_similar(qdrant, collection, vector, limit=body.limit))
