"""Scanner configuration.

Options are applied once, when a :class:`~kube_guardrails.scanner.Scanner` is
constructed, by folding option functions over the defaults::

    scanner = Scanner(
        with_policy_dirs("policies/"),
        with_embedded_policies(False),
        with_frameworks("nsa"),
    )

``ScannerOptions`` is frozen, so there is no way to change how policies are
loaded after the scanner has built its engine.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import BinaryIO, Callable, Optional, TextIO, Tuple

DEFAULT_FRAMEWORK = "default"
DEFAULT_POLICY_NAMESPACES: Tuple[str, ...] = ("builtin", "user")


class PolicyStream:
    """Wrap a policy stream so every load attempt sees the same bytes.

    The first successful read is kept. A read that fails is tried again on the
    next load.
    """

    def __init__(self, reader: BinaryIO) -> None:
        self.reader = reader
        self._data: Optional[bytes] = None
        self._lock = threading.Lock()

    def read(self) -> bytes:
        with self._lock:
            if self._data is None:
                raw = self.reader.read()
                if isinstance(raw, str):
                    raw = raw.encode("utf-8")
                self._data = raw
            return self._data


@dataclass(frozen=True)
class ScannerOptions:
    """Immutable set of options shared by the scanner, parser and engine."""

    policy_dirs: Tuple[str, ...] = ()
    policy_readers: Tuple[PolicyStream, ...] = ()
    use_embedded_policies: bool = True
    skip_required_check: bool = False
    frameworks: Tuple[str, ...] = (DEFAULT_FRAMEWORK,)
    spec: str = ""
    debug_writer: Optional[TextIO] = None
    policy_namespaces: Tuple[str, ...] = ()
    trace_writer: Optional[TextIO] = None
    per_result_tracing: bool = False

    def __post_init__(self) -> None:
        streams = tuple(r if isinstance(r, PolicyStream) else PolicyStream(r) for r in self.policy_readers)
        object.__setattr__(self, "policy_readers", streams)

    @property
    def allowed_namespaces(self) -> Tuple[str, ...]:
        extra = tuple(ns for ns in self.policy_namespaces if ns not in DEFAULT_POLICY_NAMESPACES)
        return DEFAULT_POLICY_NAMESPACES + extra


ScannerOption = Callable[[ScannerOptions], ScannerOptions]


def build_options(*opts: ScannerOption) -> ScannerOptions:
    """Apply ``opts`` in order to the default options."""

    options = ScannerOptions()
    for opt in opts:
        options = opt(options)
    return options


def with_policy_dirs(*dirs: str) -> ScannerOption:
    """Load policies from every YAML file below each of ``dirs``."""

    return lambda options: replace(options, policy_dirs=tuple(str(d) for d in dirs))


def with_policy_readers(*readers: BinaryIO) -> ScannerOption:
    """Load one policy file from each binary stream in ``readers``."""

    return lambda options: replace(options, policy_readers=tuple(readers))


def with_embedded_policies(enabled: bool) -> ScannerOption:
    return lambda options: replace(options, use_embedded_policies=enabled)


def with_skip_required_check(skip: bool) -> ScannerOption:
    """Parse every YAML/JSON file, not only those that look like manifests."""

    return lambda options: replace(options, skip_required_check=skip)


def with_frameworks(*frameworks: str) -> ScannerOption:
    return lambda options: replace(options, frameworks=tuple(frameworks) or (DEFAULT_FRAMEWORK,))


def with_spec(spec: str) -> ScannerOption:
    """Restrict evaluation to the policies listed under the compliance spec ``spec``."""

    return lambda options: replace(options, spec=spec)


def with_debug_writer(writer: Optional[TextIO]) -> ScannerOption:
    return lambda options: replace(options, debug_writer=writer)


def with_policy_namespaces(*namespaces: str) -> ScannerOption:
    """Allow external policies declared under ``namespaces`` in addition to the defaults."""

    return lambda options: replace(options, policy_namespaces=tuple(namespaces))


def with_trace_writer(writer: Optional[TextIO]) -> ScannerOption:
    return lambda options: replace(options, trace_writer=writer)


def with_per_result_tracing(enabled: bool) -> ScannerOption:
    return lambda options: replace(options, per_result_tracing=enabled)
