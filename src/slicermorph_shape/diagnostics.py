"""
Structured diagnostics returned alongside imputation results.

Data-completeness problems (a pair with both sides missing, a missing
midline landmark) do not abort a reconstruction. They are collected as
:class:`Diagnostic` records and returned with the partial result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"


class Issue(str, Enum):
    """What a diagnostic is about."""

    COMPLETE = "complete"
    NO_BILATERAL_MISSING = "no_bilateral_missing"
    BOTH_SIDES_MISSING = "both_sides_missing"
    UNILATERAL_MISSING = "unilateral_missing"
    ENTIRE_SIDE_MISSING = "entire_side_missing"
    UNRESOLVED = "unresolved"


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
}


@dataclass(frozen=True)
class Diagnostic:
    """A single note about a configuration.

    Attributes:
        severity: INFO for notes, WARNING for landmarks that could not be
            reconstructed
        code: Kind of issue
        message: Human readable description
        landmarks: Landmark indices (0-based) the issue refers to
        specimen: Index of the configuration within a sample, if known
    """

    severity: Severity
    code: Issue
    message: str
    landmarks: tuple[int, ...] = ()
    specimen: int | None = None

    def for_specimen(self, specimen: int) -> Diagnostic:
        return replace(self, specimen=specimen)


def report(
    diagnostics: list[Diagnostic],
    logger: logging.Logger,
    severity: Severity,
    code: Issue,
    message: str,
    landmarks=(),
) -> Diagnostic:
    """Append a diagnostic to ``diagnostics`` and log it."""
    diagnostic = Diagnostic(
        severity=severity,
        code=code,
        message=message,
        landmarks=tuple(int(i) for i in landmarks),
    )
    diagnostics.append(diagnostic)
    logger.log(_LOG_LEVELS[severity], message)
    return diagnostic


def warnings_of(diagnostics: list[Diagnostic]) -> list[Diagnostic]:
    return [d for d in diagnostics if d.severity is Severity.WARNING]
