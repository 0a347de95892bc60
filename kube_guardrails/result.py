"""Core result data structures for the scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .severity import Severity

SEVERITY_ORDER: Sequence[Severity] = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFO,
)


class Status(str, Enum):
    """Outcome of evaluating one policy against one input."""

    PASSED = "PASSED"
    FAILED = "FAILED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class PolicyMetadata:
    """Identity and guidance of the policy that produced a result."""

    id: str
    long_id: str
    title: str
    severity: Severity
    namespace: str = "builtin"
    description: str = ""
    recommendation: str = ""
    frameworks: Tuple[str, ...] = ()
    specs: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "long_id": self.long_id,
            "title": self.title,
            "severity": self.severity.value,
            "namespace": self.namespace,
            "description": self.description,
            "recommendation": self.recommendation,
            "frameworks": list(self.frameworks),
        }


@dataclass
class Result:
    """Capture a single policy evaluation result."""

    rule: PolicyMetadata
    status: Status
    message: str
    file_path: str
    resource: str
    start_line: int = 0
    end_line: int = 0
    traces: List[str] = field(default_factory=list)
    source: str = ""
    filesystem: Any = None
    mixed_filesystem: bool = False

    @property
    def severity(self) -> Severity:
        return self.rule.severity

    @property
    def rule_id(self) -> str:
        return self.rule.id

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "rule": self.rule.to_dict(),
            "status": self.status.value,
            "message": self.message,
            "file_path": self.file_path,
            "resource": self.resource,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }
        if self.traces:
            data["traces"] = list(self.traces)
        return data


@dataclass
class Summary:
    """Aggregate failed result counts by severity."""

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0

    def increment(self, severity: Severity) -> None:
        attr = severity.value.lower()
        setattr(self, attr, getattr(self, attr) + 1)

    def to_dict(self) -> Dict[str, int]:
        return {severity.value.lower(): count for severity, count in self._counts()}

    def as_rows(self) -> List[Tuple[str, int]]:
        """Return severity/count pairs ordered for reporting."""

        return [(severity.value, count) for severity, count in self._counts()]

    @property
    def total(self) -> int:
        return sum(count for _, count in self._counts())

    def _counts(self) -> List[Tuple[Severity, int]]:
        return [(severity, getattr(self, severity.value.lower())) for severity in SEVERITY_ORDER]


class Results(List[Result]):
    """Ordered results of one scan.

    An empty ``Results`` is returned both when nothing was found to scan and
    when every input passed without any applicable policy.
    """

    def __init__(self, results: Iterable[Result] = ()) -> None:
        super().__init__(results)

    def set_source_and_filesystem(self, source: str, filesystem: Any, mixed_filesystem: bool) -> None:
        """Tag every result with where its input came from."""

        for result in self:
            result.source = source
            result.filesystem = filesystem
            result.mixed_filesystem = mixed_filesystem

    def get_failed(self) -> "Results":
        return Results(result for result in self if result.status == Status.FAILED)

    def get_passed(self) -> "Results":
        return Results(result for result in self if result.status == Status.PASSED)

    def get_errored(self) -> "Results":
        return Results(result for result in self if result.status == Status.ERROR)

    @property
    def summary(self) -> Summary:
        summary = Summary()
        for result in self.get_failed():
            summary.increment(result.severity)
        return summary

    @property
    def passed(self) -> bool:
        summary = self.summary
        return summary.critical == 0 and summary.high == 0 and summary.medium == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "results": [result.to_dict() for result in self],
            "passed": self.passed,
        }

    def exit_code(self) -> int:
        return max((result.severity.exit_priority for result in self.get_failed()), default=0)

    def top_failures(self, limit: int = 5) -> List[Result]:
        """Return failed results ordered by severity ranking."""

        severity_rank = {severity: idx for idx, severity in enumerate(SEVERITY_ORDER)}
        ordered = sorted(
            self.get_failed(),
            key=lambda result: (severity_rank[result.severity], result.rule_id, result.file_path),
        )
        return ordered[:limit]


def format_summary_table(results: Results, max_findings: int = 5, title: Optional[str] = None) -> str:
    """Create a human-readable summary table for console output."""

    lines: List[str] = []
    lines.append(title or "Scan Summary")
    lines.append("=" * 40)
    header = f"{'Severity':<10} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for severity, count in results.summary.as_rows():
        lines.append(f"{severity:<10} | {count:>5}")
    lines.append("-" * len(header))
    status = "PASS" if results.passed else "FAIL"
    lines.append(f"Status    : {status}")
    lines.append(f"Checks    : {len(results)} ({len(results.get_passed())} passed, {len(results.get_errored())} errored)")
    lines.append(f"Failures  : {results.summary.total}")

    failures = results.top_failures(max_findings)
    if failures:
        lines.append("")
        lines.append("Top Failures")
        lines.append("-" * 40)
        for result in failures:
            lines.append(f"[{result.severity.value}] {result.rule_id} {result.rule.title} -> {result.resource}")
            lines.append(f"  Location: {result.file_path}:{result.start_line}")
            lines.append(f"  {result.message}")
    return "\n".join(lines)
