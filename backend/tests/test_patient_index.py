"""Unit tests for patient_index read-side queries."""

from __future__ import annotations

import pytest
from qdrant_client import QdrantClient
from qdrant_client.models import PointStruct

from navigator.errors import PatientNotFoundError
from navigator.models.records import point_id
from navigator.services.index_writer import ensure_collection
from navigator.services.patient_index import get_patient_vector, list_patients, search_similar


@pytest.fixture
def populated(in_memory_qdrant: QdrantClient) -> QdrantClient:
    ensure_collection(in_memory_qdrant, "patients", 2, "Dot")
    in_memory_qdrant.upsert(
        collection_name="patients",
        points=[
            PointStruct(
                id=point_id("jane"),
                vector=[1.0, 0.0],
                payload={"patientId": "jane", "name": "Doe", "file": "jane.json"},
            ),
            PointStruct(
                id=point_id("john"),
                vector=[0.0, 1.0],
                payload={"patientId": "john", "file": "john.json"},
            ),
        ],
    )
    return in_memory_qdrant


class TestListPatients:
    def test_lists_payload_fields(self, populated: QdrantClient) -> None:
        patients = {p.file: p for p in list_patients(populated, "patients")}
        assert patients["jane.json"].name == "Doe"
        assert patients["jane.json"].id == point_id("jane")

    def test_missing_name_defaults(self, populated: QdrantClient) -> None:
        patients = {p.file: p for p in list_patients(populated, "patients")}
        assert patients["john.json"].name == "Unknown Name"

    def test_limit(self, populated: QdrantClient) -> None:
        assert len(list_patients(populated, "patients", limit=1)) == 1


class TestGetPatientVector:
    def test_returns_stored_vector(self, populated: QdrantClient) -> None:
        assert get_patient_vector(populated, "patients", "jane") == [1.0, 0.0]

    def test_unknown_patient(self, populated: QdrantClient) -> None:
        with pytest.raises(PatientNotFoundError):
            get_patient_vector(populated, "patients", "nobody")


class TestSearchSimilar:
    def test_best_match_first(self, populated: QdrantClient) -> None:
        results = search_similar(populated, "patients", [0.9, 0.1], limit=2)
        assert [r.payload["patientId"] for r in results] == ["jane", "john"]
        assert results[0].score > results[1].score

    def test_limit(self, populated: QdrantClient) -> None:
        assert len(search_similar(populated, "patients", [0.9, 0.1], limit=1)) == 1
