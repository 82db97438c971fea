"""Ingestion orchestrator: bundle files -> history text -> vectors -> Qdrant.

Each document moves through ``LOADED -> PARSED -> SERIALIZED -> EMBEDDED ->
UPSERTED -> DONE``. Per-document failures become a ``DocumentOutcome`` and
never stop the run; only ``DirectoryUnreadable`` and ``CollectionConfigError``
escape ``IngestionPipeline.run``.

Embedding calls may run on a bounded thread pool (``concurrency > 1``), but
results are consumed and upserted on the calling thread in directory order,
so two upserts for the same patient never overlap.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from qdrant_client import QdrantClient

from navigator.config import Settings
from navigator.errors import (
    CollectionConfigError,
    EmbeddingProviderError,
    IndexWriteError,
    MissingPatientResource,
    ParseError,
)
from navigator.models.records import (
    DocumentOutcome,
    DocumentStage,
    ErrorKind,
    IndexRecord,
    PatientPayload,
    RunReport,
    point_id,
)
from navigator.services.document_loader import SourceDocument, iter_documents, load_bundle
from navigator.services.embedding_client import EmbeddingClient
from navigator.services.history_serializer import serialize_history
from navigator.services.index_writer import ensure_collection, upsert_record

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    collection: str = "patients"
    dimension: int = 1536
    metric: str = "Cosine"
    concurrency: int = 1
    extension: str = ".json"

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        return cls(
            collection=settings.qdrant_collection,
            dimension=settings.embedding_dimensions,
            metric=settings.vector_distance,
            concurrency=settings.ingest_concurrency,
            extension=settings.document_extension,
        )


@dataclass
class _Serialized:
    """A document that made it to SERIALIZED and is ready to embed."""

    document: SourceDocument
    patient_id: str
    text: str
    payload: PatientPayload


class IngestionPipeline:
    """Drives loader -> serializer -> embedder -> index writer over a directory."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        qdrant: QdrantClient,
        config: PipelineConfig,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.embedder = embedder
        self.qdrant = qdrant
        self.config = config
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        """Stop before the next document; in-flight documents still finish."""
        self.cancel_event.set()

    # --- Run ---

    def run(self, directory: Path | str) -> RunReport:
        documents = iter_documents(directory, self.config.extension)
        ensure_collection(
            self.qdrant,
            self.config.collection,
            self.config.dimension,
            self.config.metric,
        )

        report = RunReport()
        window = max(1, self.config.concurrency)
        pending: deque[tuple[_Serialized, Future[list[float]]]] = deque()

        with ThreadPoolExecutor(max_workers=window, thread_name_prefix="embed") as pool:
            try:
                for document in documents:
                    if self.cancel_event.is_set():
                        logger.warning("Run cancelled before %s", document.filename)
                        report.cancelled = True
                        break

                    prepared = self._prepare(document)
                    if isinstance(prepared, DocumentOutcome):
                        self._record(report, prepared)
                        continue

                    pending.append((prepared, pool.submit(self.embedder.embed, prepared.text)))
                    while len(pending) >= window:
                        self._record(report, self._complete(*pending.popleft()))

                while pending:
                    self._record(report, self._complete(*pending.popleft()))
            except CollectionConfigError:
                for _, future in pending:
                    future.cancel()
                raise

        logger.info(
            "Run finished: %d processed, %d skipped, %d failed%s",
            report.processed_count,
            report.skipped_count,
            report.failed_count,
            " (cancelled)" if report.cancelled else "",
        )
        return report

    def process_document(self, document: SourceDocument) -> DocumentOutcome:
        """Push a single document through every stage on the calling thread."""
        prepared = self._prepare(document)
        if isinstance(prepared, DocumentOutcome):
            return prepared
        future: Future[list[float]] = Future()
        try:
            future.set_result(self.embedder.embed(prepared.text))
        except EmbeddingProviderError as e:
            future.set_exception(e)
        return self._complete(prepared, future)

    # --- Stages ---

    def _prepare(self, document: SourceDocument) -> _Serialized | DocumentOutcome:
        """LOADED -> PARSED -> SERIALIZED, or a skipped/errored outcome."""
        try:
            bundle = load_bundle(document)
            if bundle.patient is None:
                raise MissingPatientResource("No Patient resource in bundle")
        except ParseError as e:
            return DocumentOutcome(
                source_file=document.filename,
                stage=DocumentStage.ERRORED,
                error_kind=ErrorKind.PARSE,
                reason=e.reason,
            )
        except MissingPatientResource as e:
            return DocumentOutcome(
                source_file=document.filename,
                stage=DocumentStage.SKIPPED,
                error_kind=ErrorKind.MISSING_PATIENT,
                reason=e.reason,
            )

        patient_id = bundle.patient_identity()
        logger.debug("%s parsed as patient %s", document.filename, patient_id)
        return _Serialized(
            document=document,
            patient_id=patient_id,
            text=serialize_history(bundle),
            payload=PatientPayload(
                patient_id=patient_id,
                display_name=bundle.display_name(),
                source_file=document.filename,
                name=bundle.family_name(),
                file=document.filename,
            ),
        )

    def _complete(self, prepared: _Serialized, embedding: Future[list[float]]) -> DocumentOutcome:
        """EMBEDDED -> UPSERTED -> DONE, or an errored outcome."""
        try:
            vector = embedding.result()
        except EmbeddingProviderError as e:
            return self._errored(prepared, ErrorKind.EMBEDDING, e.reason)

        if len(vector) != self.config.dimension:
            raise CollectionConfigError(
                f"Embedding has {len(vector)} dimensions, collection "
                f"'{self.config.collection}' expects {self.config.dimension}"
            )

        record = IndexRecord(
            id=point_id(prepared.patient_id),
            vector=vector,
            payload=prepared.payload,
        )
        try:
            upsert_record(self.qdrant, self.config.collection, record)
        except IndexWriteError as e:
            return self._errored(prepared, ErrorKind.INDEX_WRITE, e.reason)

        return DocumentOutcome(
            source_file=prepared.document.filename,
            stage=DocumentStage.DONE,
            patient_id=prepared.patient_id,
            record=record,
        )

    @staticmethod
    def _errored(prepared: _Serialized, kind: ErrorKind, reason: str) -> DocumentOutcome:
        return DocumentOutcome(
            source_file=prepared.document.filename,
            stage=DocumentStage.ERRORED,
            patient_id=prepared.patient_id,
            error_kind=kind,
            reason=reason,
        )

    @staticmethod
    def _record(report: RunReport, outcome: DocumentOutcome) -> None:
        report.record(outcome)
        if outcome.ok:
            logger.info("Embedded and upserted patient %s", outcome.patient_id)
        elif outcome.stage is DocumentStage.SKIPPED:
            logger.info("Skipped %s: %s", outcome.source_file, outcome.reason)
        else:
            logger.error(
                "Failed for %s (patient=%s, %s): %s",
                outcome.source_file,
                outcome.patient_id,
                outcome.error_kind.value,
                outcome.reason,
            )
