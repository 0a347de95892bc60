"""Declarative policy definitions.

A policy file holds either a single policy mapping or a ``policies:`` list::

    policies:
      - id: KGR001
        title: Privileged container
        severity: HIGH
        message: "Container '{item}' of {kind} '{name}' should not be privileged"
        match:
          kinds: [Pod, Deployment]
        for_each: $pod.containers[*]
        deny:
          all:
            - path: securityContext.privileged
              op: equals
              value: true

A policy *denies* a target when its conditions hold (``all`` of them, or
``any`` of them). Without ``for_each`` the target is the whole manifest;
with it, each item reached by the ``for_each`` path is a separate target and
every denied item yields its own failure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..exceptions import PolicyLoadError
from ..result import PolicyMetadata
from ..severity import Severity
from ..utils import resource_label
from . import paths

DEFAULT_NAMESPACE = "user"
DEFAULT_MESSAGE = "{kind} '{name}' violates {title}"
MESSAGE_FIELDS = ("id", "title", "kind", "name", "namespace", "item", "resource")


class ConditionError(ValueError):
    """Raised when a condition cannot be applied to the value it resolved."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    return left == right


def _compare(symbol: str, check: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(found: Any, expected: Any) -> bool:
        if not _is_number(found):
            raise ConditionError(f"cannot compare {found!r} {symbol} {expected!r}: not a number")
        return check(found, expected)

    return compare


def _contains(found: Any, expected: Any) -> bool:
    if isinstance(found, list):
        return any(_same(item, expected) for item in found)
    if isinstance(found, str) and isinstance(expected, str):
        return expected in found
    return False


VALUE_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "equals": _same,
    "not_equals": lambda found, expected: not _same(found, expected),
    "in": lambda found, expected: any(_same(found, item) for item in expected),
    "not_in": lambda found, expected: not any(_same(found, item) for item in expected),
    "contains": _contains,
    "gt": _compare(">", lambda found, expected: found > expected),
    "gte": _compare(">=", lambda found, expected: found >= expected),
    "lt": _compare("<", lambda found, expected: found < expected),
    "lte": _compare("<=", lambda found, expected: found <= expected),
}
PRESENCE_OPERATORS = ("exists", "missing")
OPERATORS = tuple(VALUE_OPERATORS) + PRESENCE_OPERATORS + ("matches",)


@dataclass(frozen=True)
class Condition:
    """One ``path``/``op``/``value`` test against a target."""

    path: str
    op: str
    value: Any = None
    tokens: Tuple[paths.Token, ...] = ()
    pattern: Optional[re.Pattern] = None

    def evaluate(self, target: Any) -> Tuple[bool, str]:
        """Return whether the condition holds and a trace line describing why."""

        found = paths.resolve(target, self.tokens)
        if self.op == "exists":
            holds = bool(found)
        elif self.op == "missing":
            holds = not found
        elif self.op == "matches":
            if self.pattern is None:
                raise ConditionError(f"{self.path}: 'matches' needs a regular expression")
            holds = any(isinstance(item, str) and self.pattern.search(item) for item in found)
        else:
            operator = VALUE_OPERATORS[self.op]
            holds = any(operator(item, self.value) for item in found)
        return holds, f"{self.path} {self.op} {self.value!r} -> found {found!r}: {holds}"


@dataclass(frozen=True)
class Evaluation:
    """Outcome of one policy against one manifest."""

    denials: List[str] = field(default_factory=list)
    traces: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Policy:
    """A declarative policy loaded from YAML."""

    metadata: PolicyMetadata
    conditions: Tuple[Condition, ...]
    match_any: bool = False
    kinds: FrozenSet[str] = frozenset()
    for_each: str = ""
    for_each_tokens: Tuple[paths.Token, ...] = ()
    message: str = DEFAULT_MESSAGE

    def applies_to(self, manifest: Dict[str, Any]) -> bool:
        return not self.kinds or manifest.get("kind") in self.kinds

    def evaluate(self, manifest: Dict[str, Any]) -> Evaluation:
        """Evaluate every target of ``manifest``.

        Raises :class:`ConditionError` when a condition meets a value it
        cannot handle.
        """

        evaluation = Evaluation()
        targets = paths.resolve(manifest, self.for_each_tokens) if self.for_each_tokens else [manifest]
        for position, target in enumerate(targets):
            outcomes = []
            for condition in self.conditions:
                holds, trace = condition.evaluate(target)
                prefix = f"{self.for_each}[{position}] " if self.for_each_tokens else ""
                evaluation.traces.append(f"{self.metadata.id}: {prefix}{trace}")
                outcomes.append(holds)
            denied = any(outcomes) if self.match_any else all(outcomes)
            if denied:
                evaluation.denials.append(self.render_message(manifest, target, position))
        return evaluation

    def render_message(self, manifest: Dict[str, Any], target: Any, position: int) -> str:
        metadata = manifest.get("metadata") if isinstance(manifest.get("metadata"), dict) else {}
        if self.for_each_tokens:
            item = target.get("name") if isinstance(target, dict) and target.get("name") else str(position)
        else:
            item = ""
        fields = {
            "id": self.metadata.id,
            "title": self.metadata.title,
            "kind": manifest.get("kind") or "Unknown",
            "name": metadata.get("name") or "<unnamed>",
            "namespace": metadata.get("namespace") or "",
            "item": item,
            "resource": resource_label(manifest),
        }
        return self.message.format(**fields)


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def load_policy_document(data: Any, source: str) -> List[Policy]:
    """Build policies from a decoded policy file.

    Raises :class:`PolicyLoadError` naming ``source`` on any schema problem.
    """

    if data is None:
        return []
    if isinstance(data, dict) and "policies" in data:
        entries = data.get("policies") or []
    elif isinstance(data, dict):
        entries = [data]
    else:
        entries = data
    if not isinstance(entries, list):
        raise PolicyLoadError(f"{source}: expected a policy mapping or a 'policies' list", source=source)

    policies = []
    for position, entry in enumerate(entries):
        try:
            policies.append(_build_policy(entry))
        except (AttributeError, KeyError, IndexError, TypeError, ValueError, re.error) as exc:
            raise PolicyLoadError(f"{source}: invalid policy #{position}: {exc}", source=source) from exc
    return policies


def _build_policy(entry: Any) -> Policy:
    if not isinstance(entry, dict):
        raise TypeError("policy must be a mapping")
    policy_id = _required_str(entry, "id")
    title = _required_str(entry, "title")
    metadata = PolicyMetadata(
        id=policy_id,
        long_id=str(entry.get("long_id") or slugify(title)),
        title=title,
        severity=Severity.parse(entry.get("severity", "MEDIUM")),
        namespace=str(entry.get("namespace") or DEFAULT_NAMESPACE),
        description=str(entry.get("description") or ""),
        recommendation=str(entry.get("recommendation") or ""),
        frameworks=_str_tuple(entry.get("frameworks"), "frameworks") or ("default",),
        specs=_str_tuple(entry.get("specs"), "specs"),
    )

    match = entry.get("match") or {}
    if not isinstance(match, dict):
        raise TypeError("'match' must be a mapping")
    kinds = frozenset(_str_tuple(match.get("kinds"), "match.kinds"))

    deny = entry.get("deny")
    if isinstance(deny, list):
        deny = {"all": deny}
    if not isinstance(deny, dict) or not (set(deny) & {"all", "any"}):
        raise ValueError("'deny' must hold an 'all' or 'any' list of conditions")
    if "all" in deny and "any" in deny:
        raise ValueError("'deny' may hold 'all' or 'any', not both")
    match_any = "any" in deny
    raw_conditions = deny["any"] if match_any else deny["all"]
    if not isinstance(raw_conditions, list) or not raw_conditions:
        raise ValueError("'deny' needs at least one condition")
    conditions = tuple(_build_condition(raw) for raw in raw_conditions)

    for_each = str(entry.get("for_each") or "")
    message = str(entry.get("message") or DEFAULT_MESSAGE)
    message.format(**{name: "" for name in MESSAGE_FIELDS})

    return Policy(
        metadata=metadata,
        conditions=conditions,
        match_any=match_any,
        kinds=kinds,
        for_each=for_each,
        for_each_tokens=paths.parse_path(for_each) if for_each else (),
        message=message,
    )


def _build_condition(raw: Any) -> Condition:
    if not isinstance(raw, dict):
        raise TypeError("condition must be a mapping")
    path = _required_str(raw, "path")
    op = str(raw.get("op", "equals"))
    if op not in OPERATORS:
        raise ValueError(f"unknown operator {op!r}, expected one of {', '.join(OPERATORS)}")
    value = raw.get("value")
    pattern = None
    if op in ("in", "not_in") and not isinstance(value, list):
        raise TypeError(f"operator {op!r} needs a list value")
    if op in ("gt", "gte", "lt", "lte") and not _is_number(value):
        raise TypeError(f"operator {op!r} needs a numeric value")
    if op == "matches":
        if not isinstance(value, str):
            raise TypeError("operator 'matches' needs a regular expression string")
        pattern = re.compile(value)
    if op not in PRESENCE_OPERATORS and op not in ("in", "not_in") and "value" not in raw:
        raise KeyError(f"operator {op!r} needs a 'value'")
    return Condition(path=path, op=op, value=value, tokens=paths.parse_path(path), pattern=pattern)


def _required_str(entry: Dict[str, Any], key: str) -> str:
    value = entry.get(key)
    if value is None or not str(value).strip():
        raise KeyError(f"missing required field '{key}'")
    return str(value)


def _str_tuple(value: Any, name: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, Sequence):
        raise TypeError(f"'{name}' must be a list of strings")
    return tuple(str(item) for item in value)
