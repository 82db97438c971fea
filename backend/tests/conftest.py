"""Test fixtures and configuration."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from qdrant_client import QdrantClient

from factories import StubEmbedder
from navigator.clients import get_embedder, get_qdrant
from navigator.main import app


@pytest.fixture
def stub_embedder() -> StubEmbedder:
    return StubEmbedder()


@pytest.fixture
def in_memory_qdrant() -> QdrantClient:
    """Use in-memory Qdrant for tests."""
    return QdrantClient(":memory:")


@pytest.fixture
def bundle_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "fhir"
    directory.mkdir()
    return directory


@pytest.fixture
def write_bundle(bundle_dir: Path) -> Callable[..., Path]:
    """Write a JSON document (or raw text) into ``bundle_dir``."""

    def _write(filename: str, content: dict[str, Any] | str) -> Path:
        path = bundle_dir / filename
        text = content if isinstance(content, str) else json.dumps(content)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
async def client(
    in_memory_qdrant: QdrantClient, stub_embedder: StubEmbedder
) -> AsyncIterator[AsyncClient]:
    app.dependency_overrides[get_qdrant] = lambda: in_memory_qdrant
    app.dependency_overrides[get_embedder] = lambda: stub_embedder
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
