"""Error taxonomy for the ingestion pipeline and the read side.

Fatal errors (``DirectoryUnreadable``, ``CollectionConfigError``) abort a run
before or outside the per-document loop. Everything else is scoped to a single
document and is turned into a failed ``DocumentOutcome`` by the orchestrator.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class DirectoryUnreadable(PipelineError):
    """The input directory does not exist or cannot be listed."""


class CollectionConfigError(PipelineError):
    """The vector collection cannot be set up or does not match the embedder."""


class ParseError(PipelineError):
    """A document is not a well-formed clinical bundle."""


class MissingPatientResource(PipelineError):
    """A bundle has no Patient resource; the document is skipped."""


class EmbeddingProviderError(PipelineError):
    """The embedding provider failed or returned unusable data."""

    def __init__(self, reason: str, *, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(reason)


class IndexWriteError(PipelineError):
    """An upsert into the vector collection failed."""


class PatientNotFoundError(PipelineError):
    """No point is stored for the requested patient."""


class BlobFetchError(PipelineError):
    """The blob store did not return the requested bundle."""

    def __init__(self, reason: str, *, status_code: int = 502) -> None:
        self.status_code = status_code
        super().__init__(reason)
