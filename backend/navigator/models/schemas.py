"""Pydantic request/response/error schemas for the read API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from navigator.models.records import SimilarPatient


class SimilarityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    patient_id: str | None = Field(default=None, alias="patientId")
    free_text: str | None = Field(default=None, alias="freeText")
    limit: int = Field(default=10, ge=1, le=100)


class SimilarityResponse(BaseModel):
    results: list[SimilarPatient]


class PatientBundleResponse(BaseModel):
    bundle: dict[str, Any]


# --- Error schema ---


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict = {}
