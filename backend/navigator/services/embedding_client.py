"""Embedding providers: turn a serialized history into a fixed-length vector.

Two providers share one protocol:
- ``OpenAIEmbeddingClient`` calls the OpenAI-compatible REST endpoint via httpx.
- ``VertexEmbeddingClient`` calls Vertex AI, through the google-genai SDK (ADC)
  or, when a GCP API key is configured, the REST predict endpoint via httpx.

Every failure surfaces as ``EmbeddingProviderError`` so the orchestrator can
record it against the document and move on.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any, Protocol

import backoff
import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from navigator.config import Settings
from navigator.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 409, 429}

_VERTEX_PREDICT_URL = (
    "https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
    "/locations/{location}/publishers/google/models/{model}:predict"
)


class EmbeddingClient(Protocol):
    """Anything that can embed one text into ``dimensions`` floats."""

    @property
    def dimensions(self) -> int: ...

    def embed(self, text: str) -> list[float]: ...


def _is_retryable_status(status_code: int | None) -> bool:
    if status_code is None:
        return False
    return status_code in _RETRYABLE_STATUS or status_code >= 500


def _prepare_input(text: str, max_chars: int, truncate: bool) -> str:
    if len(text) <= max_chars:
        return text
    if not truncate:
        raise EmbeddingProviderError(
            f"Input of {len(text)} chars exceeds provider limit of {max_chars}"
        )
    logger.warning("Truncating embedding input from %d to %d chars", len(text), max_chars)
    return text[:max_chars]


def _validate_vector(values: Any) -> list[float]:
    """Reject missing, empty or non-numeric vectors."""
    if not isinstance(values, (list, tuple)) or not values:
        raise EmbeddingProviderError("Provider response has no embedding vector")
    vector: list[float] = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            raise EmbeddingProviderError("Provider returned a non-numeric vector component")
        vector.append(float(v))
    return vector


def _with_retries(
    request: Callable[[str], list[float]],
    max_retries: int,
    backoff_factor: float,
) -> Callable[[str], list[float]]:
    """Retry ``request`` on retryable ``EmbeddingProviderError``s with exponential backoff."""
    return backoff.on_exception(
        backoff.expo,
        EmbeddingProviderError,
        max_tries=max_retries + 1,
        giveup=lambda e: not e.retryable,
        factor=backoff_factor,
        max_value=10,
        logger=logger,
    )(request)


def _post_json(
    client: httpx.Client,
    url: str,
    *,
    timeout: float,
    json: dict[str, Any],
    params: dict[str, str] | None = None,
) -> Any:
    """POST and decode JSON, mapping every httpx failure to ``EmbeddingProviderError``."""
    try:
        resp = client.post(url, params=params, json=json, timeout=timeout)
    except httpx.TimeoutException as e:
        raise EmbeddingProviderError(
            f"Embedding request timed out after {timeout}s", retryable=True
        ) from e
    except httpx.TransportError as e:
        raise EmbeddingProviderError(f"Embedding request failed: {e}", retryable=True) from e
    except httpx.HTTPError as e:
        raise EmbeddingProviderError(f"Embedding request failed: {e}") from e

    if not resp.is_success:
        raise EmbeddingProviderError(
            f"Embedding provider returned HTTP {resp.status_code}",
            retryable=_is_retryable_status(resp.status_code),
        )
    try:
        return resp.json()
    except ValueError as e:
        raise EmbeddingProviderError("Malformed embedding response") from e


class OpenAIEmbeddingClient:
    """OpenAI ``/embeddings`` endpoint over httpx.

    Transient failures (transport errors, timeouts, 408/409/429 and 5xx) are
    retried with exponential backoff up to ``max_retries`` extra attempts.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "text-embedding-ada-002",
        dimensions: int = 1536,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        max_input_chars: int = 30000,
        truncate: bool = False,
        max_retries: int = 2,
        backoff_factor: float = 1.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.model = model
        self._dimensions = dimensions
        self.timeout = timeout
        self.max_input_chars = max_input_chars
        self.truncate = truncate
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._client = http_client or httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
        )

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def close(self) -> None:
        self._client.close()

    def embed(self, text: str) -> list[float]:
        text = _prepare_input(text, self.max_input_chars, self.truncate)
        logger.debug("Embedding %d chars with %s", len(text), self.model)
        return _with_retries(self._request, self.max_retries, self.backoff_factor)(text)

    def _request(self, text: str) -> list[float]:
        data = _post_json(
            self._client,
            "/embeddings",
            timeout=self.timeout,
            json={"model": self.model, "input": text},
        )
        try:
            values = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingProviderError("Malformed embedding response") from e
        return _validate_vector(values)


class VertexEmbeddingClient:
    """Vertex AI text embeddings.

    With ``api_key`` set, calls the predict endpoint directly over httpx;
    otherwise goes through google-genai with Application Default Credentials.
    Both paths retry the same transient failures as the OpenAI client.
    """

    def __init__(
        self,
        *,
        project: str,
        location: str = "us-central1",
        model: str = "text-embedding-005",
        dimensions: int = 768,
        timeout: float = 30.0,
        max_input_chars: int = 30000,
        truncate: bool = False,
        max_retries: int = 2,
        backoff_factor: float = 1.0,
        api_key: str = "",
        client: genai.Client | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.model = model
        self.project = project
        self.location = location
        self._dimensions = dimensions
        self.timeout = timeout
        self.max_input_chars = max_input_chars
        self.truncate = truncate
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.api_key = api_key
        self._http = None
        self._client = None
        if api_key:
            self._http = http_client or httpx.Client(timeout=timeout)
        else:
            self._client = client or genai.Client(
                vertexai=True,
                project=project,
                location=location,
                http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            )

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def close(self) -> None:
        if self._http is not None:
            self._http.close()

    def embed(self, text: str) -> list[float]:
        text = _prepare_input(text, self.max_input_chars, self.truncate)
        logger.debug("Embedding %d chars with %s (vertex)", len(text), self.model)
        request = self._request_via_api_key if self._http is not None else self._request_via_sdk
        return _with_retries(request, self.max_retries, self.backoff_factor)(text)

    def _request_via_api_key(self, text: str) -> list[float]:
        url = _VERTEX_PREDICT_URL.format(
            location=self.location, project=self.project, model=self.model
        )
        data = _post_json(
            self._http,
            url,
            timeout=self.timeout,
            params={"key": self.api_key},
            json={
                "instances": [{"content": text, "task_type": "RETRIEVAL_DOCUMENT"}],
                "parameters": {"outputDimensionality": self._dimensions},
            },
        )
        try:
            values = data["predictions"][0]["embeddings"]["values"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingProviderError("Malformed embedding response") from e
        return _validate_vector(values)

    def _request_via_sdk(self, text: str) -> list[float]:
        try:
            response = self._client.models.embed_content(
                model=self.model,
                contents=[text],
                config=types.EmbedContentConfig(
                    output_dimensionality=self._dimensions,
                    task_type="RETRIEVAL_DOCUMENT",
                ),
            )
        except genai_errors.APIError as e:
            raise EmbeddingProviderError(
                f"Vertex embedding failed: {e}", retryable=_is_retryable_status(e.code)
            ) from e
        except httpx.TimeoutException as e:
            raise EmbeddingProviderError(
                f"Vertex embedding timed out after {self.timeout}s", retryable=True
            ) from e
        except httpx.TransportError as e:
            raise EmbeddingProviderError(
                f"Vertex embedding request failed: {e}", retryable=True
            ) from e
        except Exception as e:
            raise EmbeddingProviderError(f"Vertex embedding failed: {e}") from e

        if not response.embeddings:
            raise EmbeddingProviderError("Provider response has no embedding vector")
        return _validate_vector(response.embeddings[0].values)


def get_embedding_client(settings: Settings) -> EmbeddingClient:
    """Build the provider selected by ``settings.embedding_provider``."""
    if settings.embedding_provider == "vertex":
        return VertexEmbeddingClient(
            project=settings.gcp_project_id,
            location=settings.gcp_location,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            timeout=settings.request_timeout,
            max_input_chars=settings.embedding_max_input_chars,
            truncate=settings.embedding_truncate,
            max_retries=settings.embedding_max_retries,
            api_key=settings.google_api_key,
        )
    return OpenAIEmbeddingClient(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
        base_url=settings.openai_base_url,
        timeout=settings.request_timeout,
        max_input_chars=settings.embedding_max_input_chars,
        truncate=settings.embedding_truncate,
        max_retries=settings.embedding_max_retries,
    )
