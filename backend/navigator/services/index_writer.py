"""Qdrant collection setup and patient vector upserts."""

from __future__ import annotations

import logging
import math

import httpx
from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import Distance, PointStruct, VectorParams

from navigator.config import Settings
from navigator.errors import CollectionConfigError, IndexWriteError
from navigator.models.records import IndexRecord

logger = logging.getLogger(__name__)

_CLIENT_ERRORS = (UnexpectedResponse, ResponseHandlingException, httpx.HTTPError, ValueError)


def qdrant_kwargs(settings: Settings) -> dict:
    """Build kwargs for Qdrant client, including api_key if set."""
    kwargs: dict = {
        "url": settings.qdrant_url,
        # Qdrant takes whole seconds; round sub-second timeouts up
        "timeout": max(1, math.ceil(settings.request_timeout)),
    }
    if settings.qdrant_api_key:
        kwargs["api_key"] = settings.qdrant_api_key
    return kwargs


def get_qdrant_client(settings: Settings) -> QdrantClient:
    return QdrantClient(**qdrant_kwargs(settings))


def _distance(metric: str) -> Distance:
    for distance in Distance:
        if distance.value.lower() == metric.lower():
            return distance
    raise CollectionConfigError(f"Unknown distance metric {metric!r}")


def _is_already_exists(error: Exception) -> bool:
    if isinstance(error, UnexpectedResponse) and error.status_code == 409:
        return True
    return "already exists" in str(error)


def _check_existing(client: QdrantClient, name: str, dimension: int, distance: Distance) -> None:
    info = client.get_collection(name)
    params = info.config.params.vectors
    if not isinstance(params, VectorParams):
        raise CollectionConfigError(
            f"Collection '{name}' uses named vectors; expected a single unnamed vector"
        )
    if params.size != dimension or params.distance != distance:
        raise CollectionConfigError(
            f"Collection '{name}' has size={params.size} distance={params.distance.value}, "
            f"expected size={dimension} distance={distance.value}"
        )


def ensure_collection(
    client: QdrantClient,
    name: str,
    dimension: int,
    metric: str = "Cosine",
) -> None:
    """Create the collection if it doesn't exist.

    Succeeds silently when a collection with the same size and distance is
    already there. Any other problem raises ``CollectionConfigError``.
    """
    distance = _distance(metric)
    try:
        if client.collection_exists(name):
            _check_existing(client, name, dimension, distance)
            logger.info("Qdrant collection '%s' already exists", name)
            return
        client.create_collection(
            collection_name=name,
            vectors_config=VectorParams(size=dimension, distance=distance),
        )
    except CollectionConfigError:
        raise
    except _CLIENT_ERRORS as e:
        if _is_already_exists(e):
            # Lost a creation race with another writer
            _check_existing(client, name, dimension, distance)
            logger.info("Qdrant collection '%s' already exists", name)
            return
        raise CollectionConfigError(f"Cannot set up collection '{name}': {e}") from e
    logger.info("Created Qdrant collection '%s' (size=%d, distance=%s)", name, dimension, distance.value)


def upsert_record(client: QdrantClient, name: str, record: IndexRecord) -> None:
    """Insert or replace the point for ``record.id``."""
    point = PointStruct(id=record.id, vector=record.vector, payload=record.point_payload())
    try:
        client.upsert(collection_name=name, points=[point], wait=True)
    except _CLIENT_ERRORS as e:
        raise IndexWriteError(f"Upsert of {record.payload.patient_id} failed: {e}") from e
    logger.debug("Upserted point %s into '%s'", record.id, name)
