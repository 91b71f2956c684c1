"""
Income Tax Tariff Simulator

Estimates income tax revenue and its distribution across income groups for
counterfactual tariffs, using a synthetic population reconstructed from
grouped income tax statistics and calibrated to reported revenue.
"""

from .data import BracketStat, DESTATIS_2021_BRACKETS, load_bracket_table
from .settings import SimulationSettings, ShapeFit
from .tariff import (
    TariffParameters,
    DerivedTariff,
    REFERENCE_TARIFF_2021,
    compute_tax,
    compute_tax_array,
    derive_full_params,
    normalize_params,
    update_param,
    reset_params,
)
from .distribution import DISPLAY_GROUPS, SUMMARY_GROUPS, GroupResult, IncomeGroupDefinition
from .histogram import HistogramBin, build_histogram
from .microsim import SimulationContext, SimulationResult, TariffComparison, generate_population

__version__ = "1.0.0"
__all__ = [
    "BracketStat",
    "DESTATIS_2021_BRACKETS",
    "load_bracket_table",
    "SimulationSettings",
    "ShapeFit",
    "TariffParameters",
    "DerivedTariff",
    "REFERENCE_TARIFF_2021",
    "compute_tax",
    "compute_tax_array",
    "derive_full_params",
    "normalize_params",
    "update_param",
    "reset_params",
    "DISPLAY_GROUPS",
    "SUMMARY_GROUPS",
    "GroupResult",
    "IncomeGroupDefinition",
    "HistogramBin",
    "build_histogram",
    "SimulationContext",
    "SimulationResult",
    "TariffComparison",
    "generate_population",
]
