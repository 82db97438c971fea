"""Pydantic models for vector records, pipeline outcomes and read results."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def point_id(patient_id: str) -> str:
    """Qdrant point id for a patient identity.

    Qdrant only accepts unsigned integers or UUIDs as point ids. UUID
    identities (the usual case for synthetic FHIR data) are used as-is, any
    other identity maps to a deterministic UUID5.
    """
    try:
        return str(uuid.UUID(patient_id))
    except ValueError:
        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"patient:{patient_id}"))


# --- Index records ---


class PatientPayload(BaseModel):
    """Payload stored with every patient vector.

    ``name`` and ``file`` are the keys the patient list view reads.
    """

    model_config = ConfigDict(populate_by_name=True)

    patient_id: str = Field(alias="patientId")
    display_name: str = Field(alias="displayName")
    source_file: str = Field(alias="sourceFile")
    name: str
    file: str


class IndexRecord(BaseModel):
    id: str
    vector: list[float]
    payload: PatientPayload

    def point_payload(self) -> dict[str, Any]:
        return self.payload.model_dump(by_alias=True)


# --- Pipeline outcomes ---


class DocumentStage(str, Enum):
    LOADED = "loaded"
    PARSED = "parsed"
    SERIALIZED = "serialized"
    EMBEDDED = "embedded"
    UPSERTED = "upserted"
    DONE = "done"
    SKIPPED = "skipped"
    ERRORED = "errored"


class ErrorKind(str, Enum):
    PARSE = "parse"
    MISSING_PATIENT = "missing_patient"
    EMBEDDING = "embedding"
    INDEX_WRITE = "index_write"


class DocumentOutcome(BaseModel):
    """Result of pushing one document through the pipeline.

    Either ``stage`` is ``DONE`` and ``record`` is set, or ``error_kind`` and
    ``reason`` say why the document stopped.
    """

    source_file: str
    stage: DocumentStage
    patient_id: str | None = None
    record: IndexRecord | None = None
    error_kind: ErrorKind | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.stage is DocumentStage.DONE


class FailedDocument(BaseModel):
    source_file: str
    patient_id: str | None
    kind: ErrorKind
    reason: str


class RunReport(BaseModel):
    """Summary of one pipeline run."""

    processed: list[str] = []
    skipped: list[str] = []
    failed: list[FailedDocument] = []
    cancelled: bool = False

    @property
    def processed_count(self) -> int:
        return len(self.processed)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def record(self, outcome: DocumentOutcome) -> None:
        if outcome.ok:
            self.processed.append(outcome.patient_id or outcome.source_file)
        elif outcome.error_kind is ErrorKind.MISSING_PATIENT:
            self.skipped.append(outcome.source_file)
        else:
            self.failed.append(
                FailedDocument(
                    source_file=outcome.source_file,
                    patient_id=outcome.patient_id,
                    kind=outcome.error_kind,
                    reason=outcome.reason or "",
                )
            )


# --- Read side ---


class PatientSummary(BaseModel):
    id: str
    name: str
    file: str | None = None


class SimilarPatient(BaseModel):
    id: str
    score: float
    payload: dict[str, Any] = {}
