"""Utility helpers for the scanner."""

from .fileio import RawDocument, iter_yaml_documents
from .k8s import WORKLOAD_KINDS, pod_spec, resource_label

__all__ = [
    "RawDocument",
    "iter_yaml_documents",
    "WORKLOAD_KINDS",
    "pod_spec",
    "resource_label",
]
