"""
Average and marginal tax rate curves of a tariff, for plotting.
"""

from typing import Sequence

import numpy as np
import pandas as pd

from .tariff import REFERENCE_TARIFF_2021, TariffParameters, compute_tax_array

# Income points for the average rate curve (euros)
RATE_CURVE_INCOMES = (
    0, 5_000, 10_000, 15_000, 20_000, 25_000, 30_000, 35_000, 40_000, 45_000,
    50_000, 55_000, 60_000, 65_000, 70_000, 80_000, 90_000, 100_000, 120_000,
    150_000, 175_000, 200_000, 250_000, 275_000, 300_000, 350_000, 400_000,
    500_000, 600_000, 750_000, 1_000_000,
)


def average_rate_curve(
    params: TariffParameters,
    incomes: Sequence[float] = RATE_CURVE_INCOMES,
) -> pd.DataFrame:
    """
    Average tax rate (percent) at each income; 0 at income 0.

    Returns:
        DataFrame with columns income, tax, average_rate_pct
    """
    income = np.asarray(incomes, dtype=float)
    tax = compute_tax_array(income, params)
    with np.errstate(divide="ignore", invalid="ignore"):
        rate = np.where(income > 0, tax / income * 100, 0.0)
    return pd.DataFrame({"income": income, "tax": tax, "average_rate_pct": rate})


def marginal_rate_curve(
    params: TariffParameters,
    max_income: float = 400_000,
    step: float = 1_000,
) -> pd.DataFrame:
    """
    Marginal tax rate (percent) measured over the next `step` euros.

    Returns:
        DataFrame with columns income, marginal_rate_pct
    """
    income = np.arange(0, max_income + step, step, dtype=float)
    rate = (compute_tax_array(income + step, params) - compute_tax_array(income, params)) / step * 100
    return pd.DataFrame({"income": income, "marginal_rate_pct": rate})


def compare_rate_curves(
    params: TariffParameters,
    reference: TariffParameters = REFERENCE_TARIFF_2021,
) -> pd.DataFrame:
    """Average rate curves of the reference and a new tariff side by side."""
    ref = average_rate_curve(reference)
    new = average_rate_curve(params)
    return pd.DataFrame({
        "income": ref["income"],
        "reference_rate_pct": ref["average_rate_pct"],
        "new_rate_pct": new["average_rate_pct"],
        "rate_change_ppts": new["average_rate_pct"] - ref["average_rate_pct"],
    })
