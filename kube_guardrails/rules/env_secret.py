"""Detect hardcoded secrets in container environments and ConfigMaps."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..result import PolicyMetadata
from ..severity import Severity
from ..utils import WORKLOAD_KINDS, pod_spec

from . import Check

KEY_PATTERN = re.compile(r"(?i)(secret|token|api[_-]?key|password|passwd|access[_-]?key|private|credential|auth)")
LONG_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_\-]{24,}")
AWS_ACCESS_KEY_PATTERN = re.compile(r"(?:A3T|AKIA|ASIA)[0-9A-Z]{16}")
PASSWORD_NAME_PATTERN = re.compile(r"(?i)(password|passwd|pwd)")
JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9_\-]+?\.[A-Za-z0-9_\-]+?\.[A-Za-z0-9_\-]+")
PLACEHOLDER_HINTS = ("dummy", "example", "placeholder", "sample", "changeme", "replace-me")
CONTAINER_FIELDS = ("initContainers", "containers", "ephemeralContainers")


class EnvSecretCheck:
    """Flag secret-looking literals that belong in a Secret object instead."""

    metadata = PolicyMetadata(
        id="KGR100",
        long_id="no-hardcoded-secrets",
        title="Hardcoded secret in manifest",
        severity=Severity.HIGH,
        namespace="builtin.kubernetes",
        description="Credentials written into environment variables or ConfigMaps are readable by anyone with access to the manifest.",
        recommendation=(
            "Move sensitive values into a Secret (or an external secret store) and reference them "
            "with valueFrom.secretKeyRef or envFrom.secretRef instead of hardcoding them."
        ),
        frameworks=("default", "nsa"),
        specs=("k8s-nsa",),
    )
    kinds = WORKLOAD_KINDS | frozenset({"ConfigMap"})

    def check(self, manifest: Dict[str, Any]) -> List[str]:
        messages = []
        for location, name, value in self._candidates(manifest):
            indicator = self._classify(name, value)
            if indicator:
                messages.append(f"{location} sets '{name}' to a hardcoded {indicator}")
        return messages

    # ------------------------------------------------------------------
    # Candidate extraction
    # ------------------------------------------------------------------
    def _candidates(self, manifest: Dict[str, Any]) -> Iterator[Tuple[str, str, str]]:
        if manifest.get("kind") == "ConfigMap":
            data = manifest.get("data") or {}
            if isinstance(data, dict):
                for key, value in data.items():
                    if isinstance(value, str):
                        yield "ConfigMap data", str(key), value
            return

        spec = pod_spec(manifest) or {}
        for field_name in CONTAINER_FIELDS:
            containers = spec.get(field_name) or []
            if not isinstance(containers, list):
                continue
            for container in containers:
                if not isinstance(container, dict):
                    continue
                for entry in container.get("env") or []:
                    if isinstance(entry, dict) and isinstance(entry.get("value"), str):
                        yield f"Container '{container.get('name', '?')}'", str(entry.get("name", "")), entry["value"]

    # ------------------------------------------------------------------
    # Scoring helpers
    # ------------------------------------------------------------------
    def _classify(self, name: str, value: str) -> Optional[str]:
        value = value.strip()
        if not value or any(hint in value.lower() for hint in PLACEHOLDER_HINTS):
            return None
        if AWS_ACCESS_KEY_PATTERN.search(value):
            return "AWS access key"
        if JWT_PATTERN.search(value):
            return "JWT"
        if KEY_PATTERN.search(name) and LONG_TOKEN_PATTERN.search(value):
            return "token"
        if PASSWORD_NAME_PATTERN.search(name) and len(value) >= 6:
            return "password"
        return None


def get_check() -> Check:
    return EnvSecretCheck()
