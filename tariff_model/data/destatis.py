"""
Destatis income tax statistics (Lohn- und Einkommensteuerstatistik) brackets.

This module provides the bracket table the simulator is calibrated against and
a loader for replacement tables stored as CSV.

Data Source: Destatis, Lohn- und Einkommensteuerstatistik 2021
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BracketStat:
    """
    One income bracket from the income tax statistics.

    Represents taxpayers whose total income (Gesamtbetrag der Einkünfte)
    falls in [lower_bound, upper_bound). All amounts in euros.
    """
    lower_bound: float  # Lower bound of the bracket (euros)
    upper_bound: float  # Upper bound (math.inf for the top bracket)
    taxpayer_count: int  # Number of taxpayers in bracket
    total_income: float  # Total income in bracket (euros)
    total_tax: float  # Total assessed income tax (euros)

    @property
    def is_unbounded(self) -> bool:
        return math.isinf(self.upper_bound)

    @property
    def width(self) -> float:
        """Bracket width (euros); infinite for the top bracket."""
        return self.upper_bound - self.lower_bound

    @property
    def avg_income(self) -> float:
        """Average income per taxpayer (euros)."""
        if self.taxpayer_count == 0:
            return 0.0
        return self.total_income / self.taxpayer_count

    @property
    def avg_tax(self) -> float:
        """Average tax per taxpayer (euros)."""
        if self.taxpayer_count == 0:
            return 0.0
        return self.total_tax / self.taxpayer_count

    @property
    def avg_tax_rate(self) -> float:
        """Average tax rate for this bracket."""
        if self.total_income == 0:
            return 0.0
        return self.total_tax / self.total_income

    @property
    def relative_average(self) -> float:
        """
        Position of the average income inside the bracket (0 = lower bound,
        1 = upper bound). Undefined for the unbounded top bracket.
        """
        if self.is_unbounded:
            raise ValueError("relative_average is undefined for the unbounded top bracket")
        return (self.avg_income - self.lower_bound) / self.width

    def __str__(self) -> str:
        upper_str = "no limit" if self.is_unbounded else f"€{self.upper_bound:,.0f}"
        return (f"Bracket €{self.lower_bound:,.0f}-{upper_str}: "
                f"{self.taxpayer_count/1e6:.2f}M taxpayers, "
                f"avg income €{self.avg_income:,.0f}, "
                f"avg tax rate {self.avg_tax_rate*100:.1f}%")


# =============================================================================
# REFERENCE TABLE
# =============================================================================

# Destatis 2021, 17 brackets
# (lower, upper, taxpayers, total_income_€, total_tax_€)
_DESTATIS_2021_ROWS = [
    (0, 5_000, 4_820_115, 7_480_434_000, 388_099_000),
    (5_000, 10_000, 2_353_352, 17_851_525_000, 483_628_000),
    (10_000, 15_000, 3_155_869, 39_902_164_000, 1_021_645_000),
    (15_000, 20_000, 3_594_246, 62_692_463_000, 2_920_989_000),
    (20_000, 25_000, 3_333_587, 75_016_710_000, 4_993_263_000),
    (25_000, 30_000, 3_329_026, 91_472_829_000, 7_430_891_000),
    (30_000, 35_000, 3_094_180, 100_440_834_000, 9_963_954_000),
    (35_000, 40_000, 2_794_992, 104_647_140_000, 12_127_197_000),
    (40_000, 45_000, 2_395_727, 101_619_120_000, 12_996_609_000),
    (45_000, 50_000, 1_985_854, 94_193_859_000, 12_881_294_000),
    (50_000, 60_000, 3_044_466, 166_523_902_000, 24_697_749_000),
    (60_000, 70_000, 2_147_178, 139_003_998_000, 22_473_103_000),
    (70_000, 125_000, 4_951_807, 448_444_143_000, 85_981_831_000),
    (125_000, 250_000, 1_607_958, 262_642_612_000, 68_248_810_000),
    (250_000, 500_000, 321_834, 107_367_770_000, 34_853_749_000),
    (500_000, 1_000_000, 83_268, 55_537_482_000, 19_665_687_000),
    (1_000_000, math.inf, 34_509, 98_259_228_000, 35_461_945_000),
]

DESTATIS_2021_BRACKETS = tuple(
    BracketStat(
        lower_bound=float(lower),
        upper_bound=float(upper),
        taxpayer_count=count,
        total_income=float(income),
        total_tax=float(tax),
    )
    for lower, upper, count, income, tax in _DESTATIS_2021_ROWS
)

BRACKET_COLUMNS = ["lower_bound", "upper_bound", "taxpayer_count", "total_income", "total_tax"]


def load_bracket_table(path: Union[str, Path]) -> List[BracketStat]:
    """
    Load a bracket table from CSV.

    The file must have the columns lower_bound, upper_bound, taxpayer_count,
    total_income and total_tax. An empty upper_bound (or "inf") marks the
    unbounded top bracket. The table is validated before it is returned.

    Args:
        path: CSV file path

    Returns:
        List of BracketStat ordered by lower bound

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If columns are missing or the table is malformed
    """
    from .validation import ensure_valid_brackets

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Bracket table not found at {file_path}")

    logger.info(f"Loading bracket table from {file_path}")
    df = pd.read_csv(file_path)

    missing = [c for c in BRACKET_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Bracket table {file_path} is missing columns: {missing}")

    df = df.sort_values("lower_bound").reset_index(drop=True)
    upper = pd.to_numeric(df["upper_bound"], errors="coerce").fillna(math.inf)

    brackets = [
        BracketStat(
            lower_bound=float(row.lower_bound),
            upper_bound=float(upper.iloc[idx]),
            taxpayer_count=int(row.taxpayer_count),
            total_income=float(row.total_income),
            total_tax=float(row.total_tax),
        )
        for idx, row in enumerate(df.itertuples(index=False))
    ]

    ensure_valid_brackets(brackets)
    logger.info(f"Parsed {len(brackets)} brackets from {file_path.name}")
    return brackets


def brackets_to_dataframe(brackets: Sequence[BracketStat]) -> pd.DataFrame:
    """Tabular view of a bracket table with per-taxpayer averages."""
    rows = []
    for b in brackets:
        rows.append({
            "lower_bound": b.lower_bound,
            "upper_bound": b.upper_bound,
            "taxpayer_count": b.taxpayer_count,
            "total_income": b.total_income,
            "total_tax": b.total_tax,
            "avg_income": b.avg_income,
            "avg_tax": b.avg_tax,
            "avg_tax_rate_pct": b.avg_tax_rate * 100,
        })
    return pd.DataFrame(rows)
