"""
Coverage gate.

Consumes a test-run report (pass/fail plus line coverage) and decides
whether a generated batch is acceptable. Reports come either from
arguments or from a coverage.py JSON report (``coverage json``).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 85.0


@dataclass(frozen=True)
class TestReport:
    """
    Outcome of a test run.

    Attributes:
        coverage: Line coverage in percent
        failed: Whether any test failed
    """

    __test__ = False

    coverage: float
    failed: bool = False

    @classmethod
    def from_coverage_json(cls, path: Path, failed: bool = False) -> TestReport:
        """
        Read ``totals.percent_covered`` from a coverage.py JSON report.

        Raises:
            ValueError: If the report has no totals
        """
        data = json.loads(path.read_text(encoding="utf-8"))
        try:
            percent = data["totals"]["percent_covered"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"{path} is not a coverage JSON report (missing totals)") from e
        return cls(coverage=float(percent), failed=failed)


@dataclass(frozen=True)
class GateResult:
    passed: bool
    coverage: float
    threshold: float
    reason: str


def check(report: TestReport, threshold: float = DEFAULT_THRESHOLD) -> GateResult:
    """
    Apply the gate: tests must pass and coverage must reach the threshold.

    Examples:
        >>> check(TestReport(coverage=85.0)).passed
        True
        >>> check(TestReport(coverage=84.9)).passed
        False
    """
    if report.failed:
        reason = "test run failed"
        passed = False
    elif report.coverage < threshold:
        reason = f"coverage {report.coverage:.1f}% is below {threshold:.1f}%"
        passed = False
    else:
        reason = f"coverage {report.coverage:.1f}% meets {threshold:.1f}%"
        passed = True

    logger.info("Coverage gate %s: %s", "passed" if passed else "failed", reason)
    return GateResult(passed=passed, coverage=report.coverage, threshold=threshold, reason=reason)
