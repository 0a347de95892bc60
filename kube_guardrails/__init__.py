"""Kube Guardrails: policy scanning for Kubernetes manifests."""

from importlib.metadata import version, PackageNotFoundError

from .context import ScanContext
from .exceptions import (
    EvaluationError,
    FileSystemError,
    GuardrailsError,
    ParseError,
    PolicyLoadError,
    ScanCancelled,
    ScanIOError,
)
from .fs import LocalFileSystem, MemoryFileSystem
from .result import Result, Results, Status
from .scanner import Scanner

try:
    __version__ = version("kube-guardrails")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0-dev"

__all__ = [
    "__version__",
    "EvaluationError",
    "FileSystemError",
    "GuardrailsError",
    "LocalFileSystem",
    "MemoryFileSystem",
    "ParseError",
    "PolicyLoadError",
    "Result",
    "Results",
    "ScanCancelled",
    "ScanContext",
    "ScanIOError",
    "Scanner",
    "Status",
]
