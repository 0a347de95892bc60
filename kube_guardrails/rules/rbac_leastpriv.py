"""Detect overly permissive RBAC roles."""

from __future__ import annotations

from typing import Any, Dict, List

from ..result import PolicyMetadata
from ..severity import Severity

from . import Check

WILDCARD = "*"
SENSITIVE_RESOURCES = {"secrets", "pods/exec", "pods/attach", "serviceaccounts/token"}
SENSITIVE_VERBS = {"get", "list", "watch", "create", "update", "patch"}
ESCALATION_VERBS = {"bind", "escalate", "impersonate"}


class RbacLeastPrivilegeCheck:
    """Warn when Role/ClusterRole rules violate least privilege guidance."""

    metadata = PolicyMetadata(
        id="KGR101",
        long_id="rbac-least-privilege",
        title="RBAC role grants excessive permissions",
        severity=Severity.CRITICAL,
        namespace="builtin.kubernetes",
        description="Wildcard or escalation grants let a compromised service account take over the cluster.",
        recommendation=(
            "List the exact apiGroups, resources and verbs the workload needs. Avoid '*', keep "
            "'bind', 'escalate' and 'impersonate' for administrators, and scope secret access by resourceNames."
        ),
        frameworks=("default", "nsa", "cis"),
        specs=("k8s-nsa", "k8s-cis"),
    )
    kinds = frozenset({"Role", "ClusterRole"})

    def check(self, manifest: Dict[str, Any]) -> List[str]:
        messages = []
        rules = manifest.get("rules") or []
        if not isinstance(rules, list):
            return messages
        for index, rule in enumerate(rules):
            if not isinstance(rule, dict):
                continue
            issue = self._evaluate_rule(rule)
            if issue:
                messages.append(f"rules[{index}]: {issue}")
        return messages

    # ------------------------------------------------------------------
    # Evaluation logic
    # ------------------------------------------------------------------
    def _evaluate_rule(self, rule: Dict[str, Any]) -> str:
        verbs = {verb.lower() for verb in self._ensure_list(rule.get("verbs"))}
        resources = {resource.lower() for resource in self._ensure_list(rule.get("resources"))}
        api_groups = self._ensure_list(rule.get("apiGroups"))

        if WILDCARD in verbs and (WILDCARD in resources or WILDCARD in api_groups):
            return "grants every verb on wildcard resources"
        if WILDCARD in verbs:
            return f"grants every verb on {sorted(resources)}"
        if WILDCARD in resources:
            return f"grants {sorted(verbs)} on every resource"
        escalation = verbs & ESCALATION_VERBS
        if escalation:
            return f"grants privilege escalation verbs {sorted(escalation)}"
        sensitive = resources & SENSITIVE_RESOURCES
        if sensitive and verbs & SENSITIVE_VERBS and not rule.get("resourceNames"):
            return f"grants {sorted(verbs & SENSITIVE_VERBS)} on {sorted(sensitive)} without resourceNames"
        return ""

    def _ensure_list(self, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(item) for item in value]
        return [str(value)]


def get_check() -> Check:
    return RbacLeastPrivilegeCheck()
