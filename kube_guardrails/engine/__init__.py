"""Policy evaluation engine.

The engine is built once per scanner, loads its policies once, and then
evaluates batches of inputs. It holds no per-call state after loading, so
several threads may call :meth:`PolicyEngine.evaluate` on the same instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, BinaryIO, Iterable, List, Optional, Sequence, Union

from ..context import ScanContext
from ..debug import child_logger, new_debug_logger
from ..exceptions import EvaluationError, PolicyLoadError
from ..fs import FileSystem
from ..options import PolicyStream, ScannerOptions
from ..parser import Document
from ..result import Result, Results, Status
from ..utils import resource_label
from .loader import EnginePolicy, PolicyLoader
from .policy import ConditionError

__all__ = ["Input", "PolicyEngine", "SourceKind"]


class SourceKind(str, Enum):
    """Kind of configuration an engine evaluates."""

    KUBERNETES = "kubernetes"


@dataclass(frozen=True)
class Input:
    """One document to evaluate, tagged with where it came from."""

    path: str
    fs: Any
    contents: Document


class PolicyEngine:
    """Evaluate manifests against declarative policies and built-in checks."""

    def __init__(self, source: SourceKind, options: Optional[ScannerOptions] = None) -> None:
        self.source = source
        self.options = options or ScannerOptions()
        self._policies: List[EnginePolicy] = []
        self._loaded = False
        self._debug = new_debug_logger(None, source.value, "engine")

    def set_parent_debug_logger(self, parent: logging.Logger) -> None:
        self._debug = child_logger(parent, "engine")

    @property
    def policies(self) -> Sequence[EnginePolicy]:
        return tuple(self._policies)

    def load_policies(
        self,
        use_embedded: bool,
        target: Optional[FileSystem],
        dirs: Iterable[str],
        readers: Iterable[Union[BinaryIO, PolicyStream]],
    ) -> None:
        """Load every policy source, then keep the ones this engine will run.

        Raises :class:`PolicyLoadError` for the first source that fails. The
        engine keeps no policies from a failed load.
        """

        loaded = PolicyLoader(self._debug).load_all(use_embedded, target, dirs, readers)

        seen = {}
        allowed = self.options.allowed_namespaces
        selected: List[EnginePolicy] = []
        for policy in loaded:
            metadata = policy.metadata
            if metadata.id in seen:
                raise PolicyLoadError(
                    f"duplicate policy id '{metadata.id}' (namespaces '{seen[metadata.id]}' and '{metadata.namespace}')",
                    source=metadata.namespace,
                )
            seen[metadata.id] = metadata.namespace
            if not _namespace_allowed(metadata.namespace, allowed):
                self._debug.debug("Skipping policy %s: namespace '%s' not allowed", metadata.id, metadata.namespace)
                continue
            if not self._selected(policy):
                continue
            selected.append(policy)

        self._policies = selected
        self._loaded = True
        self._debug.debug("Engine ready with %d of %d loaded policies", len(selected), len(loaded))

    def _selected(self, policy: EnginePolicy) -> bool:
        metadata = policy.metadata
        if not set(metadata.frameworks) & set(self.options.frameworks):
            return False
        if self.options.spec and self.options.spec not in metadata.specs:
            return False
        return True

    def evaluate(self, ctx: ScanContext, *inputs: Input) -> Results:
        """Evaluate every input against every applicable policy.

        Raises :class:`EvaluationError` if a built-in check fails and
        :class:`~kube_guardrails.exceptions.ScanCancelled` when ``ctx`` is
        cancelled between inputs.
        """

        if not self._loaded:
            raise EvaluationError("policies have not been loaded")
        self._debug.debug("Evaluating %d input(s) against %d policies", len(inputs), len(self._policies))
        results = Results()
        for item in inputs:
            ctx.raise_if_cancelled()
            for policy in self._policies:
                manifest = item.contents.content
                if policy.applies_to(manifest):
                    results.extend(self._evaluate_one(policy, item))
        return results

    def _evaluate_one(self, policy: EnginePolicy, item: Input) -> List[Result]:
        document = item.contents
        manifest = document.content
        base = dict(
            rule=policy.metadata,
            file_path=item.path,
            resource=resource_label(manifest),
            start_line=document.start_line,
            end_line=document.end_line,
        )
        try:
            evaluation = policy.evaluate(manifest)
        except ConditionError as exc:
            self._debug.debug("Policy %s errored on %s: %s", policy.metadata.id, item.path, exc)
            return [Result(status=Status.ERROR, message=str(exc), **base)]
        except Exception as exc:
            raise EvaluationError(f"policy {policy.metadata.id} failed on '{item.path}': {exc}") from exc

        traces = self._traces(evaluation.traces)
        if not evaluation.denials:
            return [Result(status=Status.PASSED, message=f"{policy.metadata.title}: passed", traces=traces, **base)]
        return [
            Result(status=Status.FAILED, message=message, traces=list(traces), **base)
            for message in evaluation.denials
        ]

    def _traces(self, lines: List[str]) -> List[str]:
        writer = self.options.trace_writer
        if writer is not None:
            for line in lines:
                writer.write(line + "\n")
        return list(lines) if self.options.per_result_tracing else []


def _namespace_allowed(namespace: str, allowed: Sequence[str]) -> bool:
    return any(namespace == prefix or namespace.startswith(prefix + ".") for prefix in allowed)
