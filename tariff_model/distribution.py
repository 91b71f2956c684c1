"""
Distributional Analysis Module

Aggregates point-level simulation results into named income groups.

Key features:
- Display groups mirroring the statistics brackets
- Summary groups (lower half, middle, upper, top 5%)
- Custom grouping schemes
- Tax share of total and average effective rate by group
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd


# =============================================================================
# INCOME GROUP DEFINITIONS
# =============================================================================

@dataclass(frozen=True)
class IncomeGroupDefinition:
    """
    A named half-open income range [lower_bound, upper_bound).

    Attributes:
        name: Human-readable name (e.g., "50 – 60k")
        lower_bound: Lower bound of gross income (euros)
        upper_bound: Upper bound (math.inf for the top group)
        representative_income: Typical gross income of the group, used for
            the per-taxpayer tax change
    """
    name: str
    lower_bound: float
    upper_bound: float
    representative_income: Optional[float] = None

    def __str__(self) -> str:
        upper_str = "+" if math.isinf(self.upper_bound) else f"-€{self.upper_bound:,.0f}"
        return f"{self.name} (€{self.lower_bound:,.0f}{upper_str})"


INF = math.inf

DISPLAY_GROUPS = (
    IncomeGroupDefinition("0 – 5k", 0, 5_000, 2_500),
    IncomeGroupDefinition("5 – 10k", 5_000, 10_000, 7_500),
    IncomeGroupDefinition("10 – 15k", 10_000, 15_000, 12_500),
    IncomeGroupDefinition("15 – 20k", 15_000, 20_000, 17_500),
    IncomeGroupDefinition("20 – 25k", 20_000, 25_000, 22_500),
    IncomeGroupDefinition("25 – 30k", 25_000, 30_000, 27_500),
    IncomeGroupDefinition("30 – 35k", 30_000, 35_000, 32_500),
    IncomeGroupDefinition("35 – 40k", 35_000, 40_000, 37_500),
    IncomeGroupDefinition("40 – 45k", 40_000, 45_000, 42_500),
    IncomeGroupDefinition("45 – 50k", 45_000, 50_000, 47_500),
    IncomeGroupDefinition("50 – 60k", 50_000, 60_000, 55_000),
    IncomeGroupDefinition("60 – 70k", 60_000, 70_000, 65_000),
    IncomeGroupDefinition("70 – 125k", 70_000, 125_000, 90_000),
    IncomeGroupDefinition("125 – 250k", 125_000, 250_000, 165_000),
    IncomeGroupDefinition("250 – 500k", 250_000, 500_000, 335_000),
    IncomeGroupDefinition("500k – 1M", 500_000, 1_000_000, 670_000),
    IncomeGroupDefinition("1M+", 1_000_000, INF, 2_850_000),
)

SUMMARY_GROUPS = (
    IncomeGroupDefinition("Lower 50% (under €32k)", 0, 32_000),
    IncomeGroupDefinition("Middle (€32k–90k)", 32_000, 90_000),
    IncomeGroupDefinition("Upper (€90k–250k)", 90_000, 250_000),
    IncomeGroupDefinition("Top 5% (€250k+)", 250_000, INF),
)

DISPLAY = "display"
SUMMARY = "summary"

DEFAULT_GROUPING_SCHEMES: Dict[str, Sequence[IncomeGroupDefinition]] = {
    DISPLAY: DISPLAY_GROUPS,
    SUMMARY: SUMMARY_GROUPS,
}


def validate_grouping(groups: Sequence[IncomeGroupDefinition]) -> None:
    """
    Check that a grouping scheme is a contiguous partition starting at zero.

    Raises:
        ValueError: If groups are empty, overlap or leave gaps
    """
    if not groups:
        raise ValueError("Grouping scheme has no groups")
    if groups[0].lower_bound > 0:
        raise ValueError(f"Grouping scheme starts at {groups[0].lower_bound}, not 0")
    for prev, nxt in zip(groups, groups[1:]):
        if prev.upper_bound != nxt.lower_bound:
            raise ValueError(f"Groups '{prev.name}' and '{nxt.name}' are not contiguous")
    for g in groups:
        if not g.lower_bound < g.upper_bound:
            raise ValueError(f"Group '{g.name}' has an empty range")
    if not math.isinf(groups[-1].upper_bound):
        raise ValueError(f"Last group '{groups[-1].name}' must be unbounded")


# =============================================================================
# GROUP RESULTS
# =============================================================================

@dataclass
class GroupResult:
    """
    Simulated tax of one income group.

    Attributes:
        name: Group name
        lower_bound: Lower bound of gross income (euros)
        upper_bound: Upper bound of gross income (euros)
        taxpayer_count: Taxpayers in the group (rounded)
        total_income: Total gross income of the group (euros)
        total_tax: Total tax of the group (euros)
        share_of_total_tax_percent: Share of the total tax (0-100)
        average_effective_rate_percent: total_tax / total_income (0-100)
    """
    name: str
    lower_bound: float
    upper_bound: float
    taxpayer_count: int = 0
    total_income: float = 0.0
    total_tax: float = 0.0
    share_of_total_tax_percent: float = 0.0
    average_effective_rate_percent: float = 0.0

    @property
    def avg_tax(self) -> float:
        """Average tax per taxpayer (euros)."""
        if self.taxpayer_count == 0:
            return 0.0
        return self.total_tax / self.taxpayer_count

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
            "taxpayer_count": self.taxpayer_count,
            "total_income": self.total_income,
            "total_tax": self.total_tax,
            "share_of_total_tax_percent": self.share_of_total_tax_percent,
            "average_effective_rate_percent": self.average_effective_rate_percent,
        }


def aggregate_groups(
    income: np.ndarray,
    weight: np.ndarray,
    tax: np.ndarray,
    groups: Sequence[IncomeGroupDefinition],
    total_tax: Optional[float] = None,
) -> List[GroupResult]:
    """
    Aggregate point-level taxes into income groups.

    Points are assigned by raw gross income, not by the calibrated taxable
    base.

    Args:
        income: Gross income of each point
        weight: Taxpayer weight of each point
        tax: Weighted tax of each point (tax per taxpayer * weight)
        groups: Grouping scheme
        total_tax: Denominator for tax shares (defaults to tax.sum())

    Returns:
        One GroupResult per group, in scheme order
    """
    if total_tax is None:
        total_tax = float(np.sum(tax))
    weighted_income = income * weight

    results = []
    for g in groups:
        members = (income >= g.lower_bound) & (income < g.upper_bound)
        group_tax = float(tax[members].sum())
        group_taxpayers = float(weight[members].sum())
        group_income = float(weighted_income[members].sum())

        results.append(GroupResult(
            name=g.name,
            lower_bound=g.lower_bound,
            upper_bound=g.upper_bound,
            taxpayer_count=int(round(group_taxpayers)),
            total_income=group_income,
            total_tax=group_tax,
            share_of_total_tax_percent=(group_tax / total_tax) * 100 if total_tax > 0 else 0.0,
            average_effective_rate_percent=(group_tax / group_income) * 100 if group_income > 0 else 0.0,
        ))
    return results


def groups_to_dataframe(results: Sequence[GroupResult]) -> pd.DataFrame:
    """Convert group results to a DataFrame for display."""
    rows = []
    for r in results:
        rows.append({
            "Income Group": r.name,
            "Taxpayers (M)": r.taxpayer_count / 1e6,
            "Income (€B)": r.total_income / 1e9,
            "Tax (€B)": r.total_tax / 1e9,
            "Avg Tax (€)": r.avg_tax,
            "Share of Total": r.share_of_total_tax_percent,
            "Avg Rate": r.average_effective_rate_percent,
        })
    return pd.DataFrame(rows)


@dataclass
class RepresentativeDelta:
    """
    Tax change of a typical taxpayer of a display group.

    The group's representative gross income is reduced by the calibrated
    offset of the bracket it falls in, and taxed under both tariffs.
    """
    name: str
    representative_income: float
    taxable_base: float
    reference_tax: int
    new_tax: int
    taxpayer_count: int = 0
    reference_share_percent: float = 0.0
    new_share_percent: float = 0.0

    @property
    def delta(self) -> int:
        return self.new_tax - self.reference_tax

    @property
    def monthly_delta(self) -> int:
        return int(round(self.delta / 12))


def share_comparison(
    reference: Sequence[GroupResult],
    reform: Sequence[GroupResult],
) -> pd.DataFrame:
    """Tax share of each group under both tariffs."""
    return pd.DataFrame({
        "Income Group": [r.name for r in reference],
        "Reference Share": [r.share_of_total_tax_percent for r in reference],
        "New Share": [r.share_of_total_tax_percent for r in reform],
        "Share Change (ppts)": [
            n.share_of_total_tax_percent - r.share_of_total_tax_percent
            for r, n in zip(reference, reform)
        ],
    })


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    # Definitions
    "IncomeGroupDefinition",
    "DISPLAY_GROUPS",
    "SUMMARY_GROUPS",
    "DISPLAY",
    "SUMMARY",
    "DEFAULT_GROUPING_SCHEMES",
    "validate_grouping",
    # Results
    "GroupResult",
    "RepresentativeDelta",
    "aggregate_groups",
    "groups_to_dataframe",
    "share_comparison",
]
