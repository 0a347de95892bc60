"""Field path expressions used by declarative policies.

A path is a dotted list of mapping keys with optional ``[n]`` indices and
``[*]`` wildcards, e.g. ``spec.template.spec.containers[*].image``. A leading
``$pod`` segment resolves to the pod spec of any workload kind.
"""

from __future__ import annotations

import re
from typing import Any, List, Tuple, Union

from ..utils import pod_spec

POD_ALIAS = "$pod"
WILDCARD = "*"

_TOKEN_RE = re.compile(r"([^.\[\]]+)|\[(\*|\d+)\]|(\.)")

Token = Union[str, int]


def parse_path(path: str) -> Tuple[Token, ...]:
    """Split ``path`` into keys (``str``), indices (``int``) and wildcards.

    Raises :class:`ValueError` for malformed expressions.
    """

    if not isinstance(path, str) or not path.strip():
        raise ValueError("path must be a non-empty string")
    tokens: List[Token] = []
    position = 0
    expect_key = True
    for match in _TOKEN_RE.finditer(path):
        if match.start() != position:
            break
        position = match.end()
        key, index, dot = match.groups()
        if dot:
            if expect_key:
                raise ValueError(f"empty segment in path {path!r}")
            expect_key = True
            continue
        if key is not None:
            if not expect_key:
                raise ValueError(f"missing '.' before {key!r} in path {path!r}")
            if key == POD_ALIAS and tokens:
                raise ValueError(f"{POD_ALIAS} may only start a path: {path!r}")
            tokens.append(key)
        else:
            tokens.append(WILDCARD if index == WILDCARD else int(index))
        expect_key = False
    if position != len(path) or expect_key:
        raise ValueError(f"malformed path {path!r}")
    return tuple(tokens)


def resolve(root: Any, tokens: Tuple[Token, ...]) -> List[Any]:
    """Return every value ``tokens`` reaches from ``root``.

    Missing keys and out of range indices contribute nothing, so an empty list
    means the field is absent.
    """

    current: List[Any] = [root]
    for position, token in enumerate(tokens):
        following: List[Any] = []
        for value in current:
            if position == 0 and token == POD_ALIAS:
                spec = pod_spec(value) if isinstance(value, dict) else None
                if spec is not None:
                    following.append(spec)
            elif token == WILDCARD:
                if isinstance(value, list):
                    following.extend(value)
                elif isinstance(value, dict):
                    following.extend(value.values())
            elif isinstance(token, int):
                if isinstance(value, list) and -len(value) <= token < len(value):
                    following.append(value[token])
            elif isinstance(value, dict) and token in value:
                following.append(value[token])
        current = following
        if not current:
            break
    return current
