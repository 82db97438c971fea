"""Enumerate clinical bundle files and parse them into ClinicalBundles."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from navigator.errors import DirectoryUnreadable, ParseError
from navigator.models.fhir import ClinicalBundle, PatientResource, parse_resource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceDocument:
    """One candidate bundle file. Contents are read lazily."""

    filename: str
    path: Path

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(f"Cannot read {self.filename}: {e}") from e


def iter_documents(directory: Path | str, extension: str = ".json") -> Iterator[SourceDocument]:
    """List ``directory`` and lazily yield files ending in ``extension``.

    The listing itself happens before this returns, so a missing or unlistable
    directory raises ``DirectoryUnreadable`` immediately. Entries are yielded in
    sorted filename order.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise DirectoryUnreadable(f"Not a readable directory: {directory}")
    try:
        names = sorted(entry.name for entry in directory.iterdir())
    except OSError as e:
        raise DirectoryUnreadable(f"Cannot list {directory}: {e}") from e

    matching = [name for name in names if name.endswith(extension)]
    logger.info("Found %d %s documents in %s", len(matching), extension, directory)
    return (
        SourceDocument(filename=name, path=directory / name)
        for name in matching
        if (directory / name).is_file()
    )


def _extract_resources(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, dict):
        raise ParseError("Top-level JSON value is not an object")

    if "entry" not in data:
        # A bare resource becomes a one-element bundle
        return [data]

    entries = data["entry"]
    if not isinstance(entries, list):
        raise ParseError("Bundle 'entry' is not a list")

    resources: list[dict[str, Any]] = []
    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ParseError(f"Bundle entry {idx} is not an object")
        resource = entry.get("resource")
        if resource is None:
            continue
        if not isinstance(resource, dict):
            raise ParseError(f"Bundle entry {idx} resource is not an object")
        resources.append(resource)
    return resources


def parse_bundle(text: str, source_file: str) -> ClinicalBundle:
    """Parse raw bundle JSON into a ClinicalBundle.

    Accepts either ``{"entry": [{"resource": ...}, ...]}`` or a single bare
    resource. Raises ``ParseError`` on malformed input.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e

    raw_resources = _extract_resources(data)
    try:
        resources = [parse_resource(raw) for raw in raw_resources]
    except ValidationError as e:
        raise ParseError(
            f"Malformed resource: {e.error_count()} validation error(s), "
            f"first: {e.errors()[0]['msg']}"
        ) from e

    patients = sum(isinstance(r, PatientResource) for r in resources)
    if patients > 1:
        raise ParseError(f"Bundle contains {patients} Patient resources, expected at most one")

    return ClinicalBundle(source_file=source_file, resources=resources)


def load_bundle(document: SourceDocument) -> ClinicalBundle:
    """Read and parse one document."""
    return parse_bundle(document.read_text(), document.filename)
