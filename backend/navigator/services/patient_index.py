"""Read-side queries over the patient collection written by the pipeline."""

from __future__ import annotations

import logging

from qdrant_client import QdrantClient

from navigator.errors import PatientNotFoundError
from navigator.models.records import PatientSummary, SimilarPatient, point_id

logger = logging.getLogger(__name__)


def list_patients(client: QdrantClient, name: str, limit: int = 100) -> list[PatientSummary]:
    """First ``limit`` patients with their list-view payload fields."""
    points, _ = client.scroll(
        collection_name=name,
        limit=limit,
        with_payload=True,
        with_vectors=False,
    )
    patients = []
    for point in points:
        payload = point.payload or {}
        patients.append(
            PatientSummary(
                id=str(point.id),
                name=payload.get("name") or "Unknown Name",
                file=payload.get("file"),
            )
        )
    logger.debug("Listed %d patients from '%s'", len(patients), name)
    return patients


def get_patient_vector(client: QdrantClient, name: str, patient_id: str) -> list[float]:
    """Stored vector for ``patient_id``."""
    points = client.retrieve(
        collection_name=name,
        ids=[point_id(patient_id)],
        with_vectors=True,
        with_payload=False,
    )
    if not points or not isinstance(points[0].vector, list):
        raise PatientNotFoundError(f"Patient {patient_id} not found")
    return points[0].vector


def search_similar(
    client: QdrantClient,
    name: str,
    vector: list[float],
    limit: int = 10,
) -> list[SimilarPatient]:
    """Nearest patients to ``vector``, best first."""
    results = client.query_points(
        collection_name=name,
        query=vector,
        limit=limit,
        with_payload=True,
    )
    logger.info("Qdrant returned %d similar patients", len(results.points))
    return [
        SimilarPatient(id=str(point.id), score=point.score, payload=point.payload or {})
        for point in results.points
    ]
