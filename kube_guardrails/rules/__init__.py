"""Built-in checks implemented in Python.

These cover logic that is awkward to express as declarative conditions. They
ship with the scanner and load together with the embedded policy files.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Protocol

from ..result import PolicyMetadata


class Check(Protocol):
    """Protocol implemented by all built-in checks."""

    metadata: PolicyMetadata
    kinds: FrozenSet[str]

    def check(self, manifest: Dict[str, Any]) -> List[str]:
        """Return one message per violation found in ``manifest``."""


def builtin_checks() -> List[Check]:
    from . import env_secret, rbac_leastpriv

    return [
        env_secret.get_check(),
        rbac_leastpriv.get_check(),
    ]
