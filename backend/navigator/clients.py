"""Process-wide provider clients for the read API (lazy init).

The ingestion pipeline does not use these; it receives its clients
explicitly. Routes take them through FastAPI dependencies so tests can
override them.
"""

from __future__ import annotations

from qdrant_client import QdrantClient

from navigator.config import settings
from navigator.services.embedding_client import EmbeddingClient, get_embedding_client
from navigator.services.index_writer import get_qdrant_client

_qdrant_client: QdrantClient | None = None
_embedding_client: EmbeddingClient | None = None


def get_qdrant() -> QdrantClient:
    """Get or create the Qdrant client."""
    global _qdrant_client
    if _qdrant_client is None:
        _qdrant_client = get_qdrant_client(settings)
    return _qdrant_client


def get_embedder() -> EmbeddingClient:
    """Get or create the embedding client."""
    global _embedding_client
    if _embedding_client is None:
        _embedding_client = get_embedding_client(settings)
    return _embedding_client


def close_clients() -> None:
    global _qdrant_client, _embedding_client
    if _qdrant_client is not None:
        _qdrant_client.close()
        _qdrant_client = None
    close = getattr(_embedding_client, "close", None)
    if close is not None:
        close()
    _embedding_client = None
