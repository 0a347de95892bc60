"""Kubernetes manifest helpers."""

from __future__ import annotations

from typing import Any, Dict, Optional

WORKLOAD_KINDS = frozenset(
    {
        "Pod",
        "Deployment",
        "StatefulSet",
        "DaemonSet",
        "ReplicaSet",
        "ReplicationController",
        "Job",
        "CronJob",
    }
)


def pod_spec(manifest: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the pod spec embedded in a workload manifest, if any."""

    kind = manifest.get("kind")
    if kind not in WORKLOAD_KINDS:
        return None
    spec = manifest.get("spec")
    if kind == "CronJob":
        spec = _dig(spec, "jobTemplate", "spec", "template", "spec")
    elif kind != "Pod":
        spec = _dig(spec, "template", "spec")
    return spec if isinstance(spec, dict) else None


def resource_label(manifest: Dict[str, Any]) -> str:
    """Return ``Kind/name`` (namespaced when a namespace is declared)."""

    metadata = manifest.get("metadata") if isinstance(manifest.get("metadata"), dict) else {}
    kind = str(manifest.get("kind") or "Unknown")
    name = str(metadata.get("name") or "<unnamed>")
    namespace = metadata.get("namespace")
    if namespace:
        return f"{kind}/{namespace}/{name}"
    return f"{kind}/{name}"


def _dig(value: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value
