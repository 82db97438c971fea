"""Unit tests for index_writer: collection setup and upserts."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException

from navigator.config import Settings
from navigator.errors import CollectionConfigError, IndexWriteError
from navigator.models.records import IndexRecord, PatientPayload, point_id
from navigator.services.index_writer import ensure_collection, qdrant_kwargs, upsert_record


def _record(patient_id: str = "pat-001", vector: list[float] | None = None) -> IndexRecord:
    return IndexRecord(
        id=point_id(patient_id),
        vector=vector or [1.0, 0.0, 0.0, 0.0],
        payload=PatientPayload(
            patient_id=patient_id,
            display_name="Jane Doe",
            source_file="jane.json",
            name="Doe",
            file="jane.json",
        ),
    )


class TestEnsureCollection:
    def test_creates_collection(self, in_memory_qdrant: QdrantClient) -> None:
        ensure_collection(in_memory_qdrant, "patients", 4, "Cosine")
        info = in_memory_qdrant.get_collection("patients")
        assert info.config.params.vectors.size == 4

    def test_idempotent(self, in_memory_qdrant: QdrantClient) -> None:
        ensure_collection(in_memory_qdrant, "patients", 4, "Cosine")
        ensure_collection(in_memory_qdrant, "patients", 4, "Cosine")  # should not raise
        names = [c.name for c in in_memory_qdrant.get_collections().collections]
        assert names.count("patients") == 1

    def test_metric_is_case_insensitive(self, in_memory_qdrant: QdrantClient) -> None:
        ensure_collection(in_memory_qdrant, "patients", 4, "cosine")
        ensure_collection(in_memory_qdrant, "patients", 4, "Cosine")

    def test_dimension_mismatch_is_fatal(self, in_memory_qdrant: QdrantClient) -> None:
        ensure_collection(in_memory_qdrant, "patients", 4, "Cosine")
        with pytest.raises(CollectionConfigError, match="size=4"):
            ensure_collection(in_memory_qdrant, "patients", 8, "Cosine")

    def test_distance_mismatch_is_fatal(self, in_memory_qdrant: QdrantClient) -> None:
        ensure_collection(in_memory_qdrant, "patients", 4, "Cosine")
        with pytest.raises(CollectionConfigError):
            ensure_collection(in_memory_qdrant, "patients", 4, "Dot")

    def test_unknown_metric(self, in_memory_qdrant: QdrantClient) -> None:
        with pytest.raises(CollectionConfigError, match="Unknown distance"):
            ensure_collection(in_memory_qdrant, "patients", 4, "Hamming")

    def test_already_exists_race_is_success(self, in_memory_qdrant: QdrantClient, mocker) -> None:
        ensure_collection(in_memory_qdrant, "patients", 4, "Cosine")
        # Another writer created it between our existence check and create call
        mocker.patch.object(in_memory_qdrant, "collection_exists", return_value=False)
        ensure_collection(in_memory_qdrant, "patients", 4, "Cosine")

    def test_other_errors_are_fatal(self) -> None:
        client = MagicMock(spec=QdrantClient)
        client.collection_exists.side_effect = ResponseHandlingException(
            ConnectionError("connection refused")
        )
        with pytest.raises(CollectionConfigError, match="Cannot set up collection"):
            ensure_collection(client, "patients", 4, "Cosine")


class TestUpsertRecord:
    def test_upsert_and_payload(self, in_memory_qdrant: QdrantClient) -> None:
        ensure_collection(in_memory_qdrant, "patients", 4, "Dot")
        upsert_record(in_memory_qdrant, "patients", _record())

        points, _ = in_memory_qdrant.scroll(collection_name="patients", limit=10, with_payload=True)
        assert len(points) == 1
        assert points[0].payload == {
            "patientId": "pat-001",
            "displayName": "Jane Doe",
            "sourceFile": "jane.json",
            "name": "Doe",
            "file": "jane.json",
        }

    def test_second_upsert_replaces_vector(self, in_memory_qdrant: QdrantClient) -> None:
        ensure_collection(in_memory_qdrant, "patients", 4, "Dot")
        upsert_record(in_memory_qdrant, "patients", _record(vector=[1.0, 0.0, 0.0, 0.0]))
        upsert_record(in_memory_qdrant, "patients", _record(vector=[0.0, 2.0, 0.0, 0.0]))

        assert in_memory_qdrant.count("patients").count == 1
        points = in_memory_qdrant.retrieve("patients", ids=[point_id("pat-001")], with_vectors=True)
        assert points[0].vector == [0.0, 2.0, 0.0, 0.0]

    def test_failure_is_index_write_error(self) -> None:
        client = MagicMock(spec=QdrantClient)
        client.upsert.side_effect = ResponseHandlingException(TimeoutError("timed out"))
        with pytest.raises(IndexWriteError, match="pat-001"):
            upsert_record(client, "patients", _record())

    def test_missing_collection_is_index_write_error(self, in_memory_qdrant: QdrantClient) -> None:
        with pytest.raises(IndexWriteError):
            upsert_record(in_memory_qdrant, "absent", _record())


class TestPointId:
    def test_uuid_identity_used_verbatim(self) -> None:
        pid = "0b6b9f8e-4a39-4d4f-9a57-0c7e1f0d2c11"
        assert point_id(pid) == pid

    def test_non_uuid_identity_is_stable(self) -> None:
        assert point_id("Jane_Doe_1") == point_id("Jane_Doe_1")
        assert point_id("Jane_Doe_1") != point_id("John_Roe_2")


def test_qdrant_kwargs_includes_api_key_only_when_set() -> None:
    assert "api_key" not in qdrant_kwargs(Settings(qdrant_api_key=""))
    kwargs = qdrant_kwargs(Settings(qdrant_api_key="secret", request_timeout=12))
    assert kwargs["api_key"] == "secret"
    assert kwargs["timeout"] == 12


def test_qdrant_kwargs_rounds_fractional_timeout_up() -> None:
    assert qdrant_kwargs(Settings(request_timeout=0.5))["timeout"] == 1
    assert qdrant_kwargs(Settings(request_timeout=2.2))["timeout"] == 3
