"""Scan orchestration for Kubernetes manifests."""

from __future__ import annotations

import posixpath
import threading
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .context import ScanContext, background
from .debug import new_debug_logger
from .engine import PolicyEngine, SourceKind
from .fs import FileSystem, LocalFileSystem, MemoryFileSystem
from .inputs import build_inputs
from .options import ScannerOption, ScannerOptions, build_options
from .parser import ManifestParser
from .result import Results


class Scanner:
    """Parse manifests, evaluate them and tag the results with their origin.

    The policy engine is built on the first scan that has something to
    evaluate and reused for every later scan on this instance, whatever
    filesystem those scans target. Scans may run concurrently from several
    threads; only building the engine is serialised.
    """

    def __init__(self, *opts: ScannerOption, options: Optional[ScannerOptions] = None) -> None:
        self.options = options if options is not None else build_options(*opts)
        self._debug = new_debug_logger(self.options.debug_writer, "kubernetes", "scanner")
        self.parser = ManifestParser(skip_required_check=self.options.skip_required_check, debug=self._debug)
        self._engine: Optional[PolicyEngine] = None
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "Kubernetes"

    def _engine_for(self, target: FileSystem) -> PolicyEngine:
        with self._lock:
            if self._engine is not None:
                return self._engine
            engine = PolicyEngine(SourceKind.KUBERNETES, self.options)
            engine.set_parent_debug_logger(self._debug)
            engine.load_policies(
                self.options.use_embedded_policies,
                target,
                self.options.policy_dirs,
                self.options.policy_readers,
            )
            self._engine = engine
            return engine

    def scan_reader(self, ctx: Optional[ScanContext], filename: str, reader: BinaryIO) -> Results:
        """Scan the single manifest file read from ``reader``."""

        memfs = MemoryFileSystem()
        memfs.mkdir_all(posixpath.dirname(filename.replace("\\", "/")) or ".")
        data = reader.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        memfs.write_file(filename, data)
        return self.scan_fs(ctx, memfs, ".")

    def scan_fs(self, ctx: Optional[ScanContext], target: FileSystem, root: str) -> Results:
        """Scan every manifest below ``root`` of ``target``."""

        ctx = ctx or background()
        filesets = self.parser.parse_fs(ctx, target, root)
        if not any(filesets.values()):
            return Results()

        inputs = build_inputs(filesets, target)
        engine = self._engine_for(target)

        self._debug.debug("Scanning %d document(s)...", len(inputs))
        results = engine.evaluate(ctx, *inputs)
        results.set_source_and_filesystem("", target, False)
        return results

    def scan_path(self, path: Union[str, Path], ctx: Optional[ScanContext] = None) -> Results:
        """Scan a directory or a single file on the local disk."""

        path = Path(path)
        if path.is_file():
            return self.scan_fs(ctx, LocalFileSystem(path.parent), path.name)
        return self.scan_fs(ctx, LocalFileSystem(path), ".")
