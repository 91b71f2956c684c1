"""
Income density histogram of the synthetic population.
"""

import math
from dataclasses import dataclass
from typing import List

import numpy as np


@dataclass(frozen=True)
class HistogramBin:
    income: int  # Bin centre (euros)
    density: float  # Taxpayers per euro of income


def build_histogram(
    income: np.ndarray,
    weight: np.ndarray,
    max_display_income: float = 200_000,
    bin_count: int = 200,
) -> List[HistogramBin]:
    """
    Fixed-width density histogram over [0, max_display_income).

    Points at or above max_display_income are left out. Densities are weight
    per euro, so changing the bin width does not change the curve's height.
    """
    if bin_count <= 0 or max_display_income <= 0:
        raise ValueError("bin_count and max_display_income must be positive")

    income = np.asarray(income, dtype=float)
    weight = np.asarray(weight, dtype=float)
    bin_width = max_display_income / bin_count

    shown = income < max_display_income
    bins = np.clip(np.floor(income[shown] / bin_width).astype(int), 0, bin_count - 1)
    counts = np.bincount(bins, weights=weight[shown], minlength=bin_count)

    return [
        HistogramBin(income=int(math.floor((i + 0.5) * bin_width + 0.5)), density=float(counts[i] / bin_width))
        for i in range(bin_count)
    ]
