"""Kube Guardrails exceptions.

Every error raised by the scanner derives from :class:`GuardrailsError` so a
caller can catch the whole family at once. The orchestrator never wraps these:
the exception raised by the parser or the engine is the one the caller sees.

Example:
    >>> from kube_guardrails import Scanner
    >>> from kube_guardrails.exceptions import ParseError, PolicyLoadError
    >>>
    >>> scanner = Scanner()
    >>> try:
    ...     results = scanner.scan_path("deploy/")
    ... except ParseError as e:
    ...     print(f"Bad manifest {e.path}: {e}")
    ... except PolicyLoadError as e:
    ...     print(f"Bad policy source {e.source}: {e}")
"""

from __future__ import annotations


class GuardrailsError(Exception):
    """Base exception for all Kube Guardrails errors."""


class ParseError(GuardrailsError):
    """Raised when a manifest cannot be read or is not valid YAML/JSON."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class PolicyLoadError(GuardrailsError):
    """Raised when a policy source is unreadable or malformed.

    The engine cache is left empty when this is raised, so the next scan
    tries to load the policies again.
    """

    def __init__(self, message: str, source: str = "") -> None:
        super().__init__(message)
        self.source = source


class ScanIOError(GuardrailsError, OSError):
    """Raised when scan input cannot be materialised."""


class FileSystemError(ScanIOError):
    """Raised by the in-memory filesystem for invalid or unknown paths."""


class EvaluationError(GuardrailsError):
    """Raised when the policy engine fails part way through a batch."""


class ScanCancelled(GuardrailsError):
    """Raised when the scan context is cancelled or its deadline has passed."""
