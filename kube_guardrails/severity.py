"""Severity definitions for policy results."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Enumerate the supported severity levels for policies."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"

    @classmethod
    def parse(cls, value: object) -> "Severity":
        """Return the severity named by ``value`` (case-insensitive)."""

        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"unknown severity {value!r}, expected one of {allowed}") from None

    @property
    def exit_priority(self) -> int:
        """Return an integer ranking to drive exit code decisions."""

        ordering = {
            Severity.CRITICAL: 2,
            Severity.HIGH: 2,
            Severity.MEDIUM: 1,
            Severity.LOW: 0,
            Severity.INFO: 0,
        }
        return ordering[self]
