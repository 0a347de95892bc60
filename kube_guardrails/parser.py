"""Kubernetes manifest parser.

Turns a filesystem subtree into a mapping of file path to the manifests found
in that file. Files that are not manifests are left out of the mapping; only
broken manifests are errors.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

from .context import ScanContext
from .debug import child_logger, new_debug_logger
from .exceptions import ParseError
from .fs import FileSystem
from .utils import iter_yaml_documents

MANIFEST_EXTENSIONS = (".yaml", ".yml", ".json")
REQUIRED_FIELDS = ("apiVersion", "kind", "metadata")
REQUIRED_KEY_PATTERNS = tuple(
    re.compile(rf'(?:^|[{{,])\s*"?{field}"?\s*:', re.MULTILINE) for field in REQUIRED_FIELDS
)


@dataclass(frozen=True)
class Document:
    """One manifest extracted from a source file."""

    path: str
    index: int
    content: Dict[str, Any]
    start_line: int = 1
    end_line: int = 1

    @property
    def kind(self) -> str:
        return str(self.content.get("kind") or "")


ParsedDocumentSet = Dict[str, List[Document]]


class ManifestParser:
    """Parse YAML/JSON manifests below a directory of a :class:`FileSystem`.

    Holds no per-call state, so one parser may serve concurrent scans.
    """

    def __init__(self, skip_required_check: bool = False, debug: Optional[logging.Logger] = None) -> None:
        self.skip_required_check = skip_required_check
        self._debug = child_logger(debug, "parser") if debug else new_debug_logger(None, "kubernetes", "parser")

    def parse_fs(self, ctx: ScanContext, target: FileSystem, root: str) -> ParsedDocumentSet:
        """Return every manifest under ``root`` keyed by file path."""

        try:
            paths = list(target.walk(root))
        except OSError as exc:
            raise ParseError(f"unable to list '{root}': {exc}", path=root) from exc

        filesets: ParsedDocumentSet = {}
        for path in paths:
            ctx.raise_if_cancelled()
            if not path.lower().endswith(MANIFEST_EXTENSIONS):
                continue
            documents = self.parse_file(target, path)
            if documents:
                filesets[path] = documents
        self._debug.debug("Parsed %d manifest file(s) under '%s'", len(filesets), root)
        return filesets

    def parse_file(self, target: FileSystem, path: str) -> List[Document]:
        try:
            raw = target.read_bytes(path)
        except OSError as exc:
            raise ParseError(f"unable to read '{path}': {exc}", path=path) from exc
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ParseError(f"'{path}' is not UTF-8 text: {exc}", path=path) from exc

        if not self.skip_required_check and not self._has_required_fields(text):
            self._debug.debug("Skipping '%s': not a Kubernetes manifest", path)
            return []

        documents: List[Document] = []
        try:
            for raw_doc in iter_yaml_documents(text):
                if not isinstance(raw_doc.data, dict) or not raw_doc.data:
                    continue
                if not self.skip_required_check and not self._is_manifest(raw_doc.data):
                    continue
                documents.append(
                    Document(
                        path=path,
                        index=len(documents),
                        content=raw_doc.data,
                        start_line=raw_doc.start_line,
                        end_line=raw_doc.end_line,
                    )
                )
        except yaml.YAMLError as exc:
            raise ParseError(f"failed to parse '{path}': {exc}", path=path) from exc
        return documents

    @staticmethod
    def _has_required_fields(text: str) -> bool:
        """Cheap check that every required field appears as a key somewhere in ``text``."""

        return all(pattern.search(text) for pattern in REQUIRED_KEY_PATTERNS)

    @staticmethod
    def _is_manifest(data: Dict[str, Any]) -> bool:
        return all(field in data for field in REQUIRED_FIELDS)

