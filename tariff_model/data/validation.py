"""
Data validation utilities for bracket tables.

Provides validation checks to ensure a bracket table is well formed before a
synthetic population is generated from it.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .destatis import BracketStat

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a validation check."""
    passed: bool
    message: str
    details: Optional[dict] = None

    def __str__(self) -> str:
        status = "✓ PASS" if self.passed else "✗ FAIL"
        return f"{status}: {self.message}"


class DataValidator:
    """
    Validation checks for bracket statistics.

    Checks that brackets:
    - Start at or above zero and have positive width
    - Partition the income axis contiguously (no gaps, no overlaps)
    - End in exactly one unbounded top bracket
    - Have positive taxpayer counts and non-negative totals
    """

    @staticmethod
    def validate_brackets(brackets: Sequence[BracketStat]) -> ValidationResult:
        """
        Validate a bracket table.

        Averages lying outside their bracket are reported under
        details['warnings'] but do not fail validation; the population
        generator clamps them.

        Args:
            brackets: Bracket table ordered by lower bound

        Returns:
            ValidationResult with pass/fail status and details
        """
        if not brackets:
            return ValidationResult(passed=False, message="Bracket table is empty")

        issues: List[str] = []
        warnings: List[str] = []
        last = len(brackets) - 1

        for i, b in enumerate(brackets):
            if not math.isfinite(b.lower_bound) or b.lower_bound < 0:
                issues.append(f"Bracket {i}: lower bound {b.lower_bound} must be finite and >= 0")
            if not b.lower_bound < b.upper_bound:
                issues.append(f"Bracket {i}: lower bound {b.lower_bound} not below upper bound {b.upper_bound}")
            if b.is_unbounded and i != last:
                issues.append(f"Bracket {i}: only the last bracket may be unbounded")
            if int(b.taxpayer_count) != b.taxpayer_count or b.taxpayer_count <= 0:
                issues.append(f"Bracket {i}: taxpayer count {b.taxpayer_count} must be a positive integer")
            if not math.isfinite(b.total_income) or b.total_income < 0:
                issues.append(f"Bracket {i}: total income {b.total_income} must be finite and >= 0")
            if not math.isfinite(b.total_tax) or b.total_tax < 0:
                issues.append(f"Bracket {i}: total tax {b.total_tax} must be finite and >= 0")

            if i < last and b.upper_bound != brackets[i + 1].lower_bound:
                issues.append(
                    f"Bracket {i}: upper bound {b.upper_bound} does not meet "
                    f"next lower bound {brackets[i + 1].lower_bound}"
                )

            if b.taxpayer_count > 0 and not (b.lower_bound <= b.avg_income <= b.upper_bound):
                warnings.append(
                    f"Bracket {i}: average income {b.avg_income:,.0f} outside "
                    f"[{b.lower_bound:,.0f}, {b.upper_bound:,.0f}]"
                )

        if not brackets[last].is_unbounded:
            issues.append("Last bracket must be unbounded (upper bound = inf)")

        for w in warnings:
            logger.warning(w)

        if issues:
            return ValidationResult(
                passed=False,
                message=f"Bracket table validation failed ({len(issues)} issues)",
                details={"issues": issues, "warnings": warnings},
            )

        return ValidationResult(
            passed=True,
            message=f"Bracket table with {len(brackets)} brackets passed validation",
            details={"warnings": warnings} if warnings else None,
        )


def ensure_valid_brackets(brackets: Sequence[BracketStat]) -> None:
    """
    Raise ValueError if the bracket table is malformed.

    Raises:
        ValueError: With every issue found, one per line
    """
    result = DataValidator.validate_brackets(brackets)
    if not result.passed:
        issues = result.details["issues"] if result.details else []
        raise ValueError("\n".join([result.message] + issues))
    logger.debug(str(result))
