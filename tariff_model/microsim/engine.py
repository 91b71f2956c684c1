import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..data.destatis import DESTATIS_2021_BRACKETS, BracketStat
from ..data.validation import ensure_valid_brackets
from ..distribution import (
    DEFAULT_GROUPING_SCHEMES,
    DISPLAY,
    SUMMARY,
    GroupResult,
    IncomeGroupDefinition,
    RepresentativeDelta,
    aggregate_groups,
    groups_to_dataframe,
    share_comparison,
    validate_grouping,
)
from ..histogram import HistogramBin, build_histogram
from ..settings import DEFAULT_SETTINGS, SimulationSettings
from ..tariff import REFERENCE_TARIFF_2021, TariffParameters, compute_tax, compute_tax_array, normalize_params
from .calibration import CalibrationReport, calibrate_brackets
from .data_generator import SyntheticPopulation, generate_population

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """
    Tax of the whole synthetic population under one tariff.

    Attributes:
        params: Tariff that was simulated
        total_tax: Total tax (euros)
        groups: Group results per grouping scheme name
    """
    params: TariffParameters
    total_tax: float
    groups: Dict[str, List[GroupResult]] = field(default_factory=dict)

    @property
    def display_groups(self) -> List[GroupResult]:
        return self.groups[DISPLAY]

    @property
    def summary_groups(self) -> List[GroupResult]:
        return self.groups[SUMMARY]

    def to_dataframe(self, scheme: str = DISPLAY) -> pd.DataFrame:
        return groups_to_dataframe(self.groups[scheme])

    def to_dict(self) -> dict:
        return {
            "total_tax": self.total_tax,
            "display_groups": [g.to_dict() for g in self.display_groups],
            "summary_groups": [g.to_dict() for g in self.summary_groups],
        }


@dataclass
class TariffComparison:
    """A tariff simulated against the calibrated reference tariff."""
    reference: SimulationResult
    reform: SimulationResult
    representative: List[RepresentativeDelta] = field(default_factory=list)

    @property
    def revenue_change(self) -> float:
        """Change in total tax (euros); positive = more revenue."""
        return self.reform.total_tax - self.reference.total_tax

    @property
    def revenue_change_pct(self) -> float:
        if self.reference.total_tax <= 0:
            return 0.0
        return self.revenue_change / self.reference.total_tax * 100

    def share_table(self, scheme: str = DISPLAY) -> pd.DataFrame:
        return share_comparison(self.reference.groups[scheme], self.reform.groups[scheme])

    def representative_table(self) -> pd.DataFrame:
        return pd.DataFrame([{
            "Income Group": r.name,
            "Taxpayers": r.taxpayer_count,
            "Representative Income (€)": r.representative_income,
            "Tax Change (€/year)": r.delta,
            "Tax Change (€/month)": r.monthly_delta,
            "Reference Share": r.reference_share_percent,
            "New Share": r.new_share_percent,
        } for r in self.representative])

    def summary(self) -> str:
        sign = "+" if self.revenue_change >= 0 else ""
        lines = [
            f"Reference revenue: €{self.reference.total_tax/1e9:,.1f}B",
            f"New revenue:       €{self.reform.total_tax/1e9:,.1f}B",
            f"Change:            {sign}€{self.revenue_change/1e9:,.2f}B ({sign}{self.revenue_change_pct:.2f}%)",
            "",
            "By Summary Group:",
            "-" * 60,
        ]
        for ref, new in zip(self.reference.summary_groups, self.reform.summary_groups):
            lines.append(
                f"  {ref.name:28s}: share {ref.share_of_total_tax_percent:5.1f}% -> "
                f"{new.share_of_total_tax_percent:5.1f}%, "
                f"avg rate {new.average_effective_rate_percent:5.1f}%"
            )
        return "\n".join(lines)


class SimulationContext:
    """
    Calibrated synthetic population, shared by every simulation run.

    Built once with SimulationContext.build(): the bracket table is validated,
    the population generated and the per-bracket offsets solved against the
    reference tariff. Offsets are never re-solved; simulate() only applies a
    tariff to the fixed population and offsets.
    """

    def __init__(
        self,
        brackets: Sequence[BracketStat],
        population: SyntheticPopulation,
        calibration: Sequence[CalibrationReport],
        reference: TariffParameters = REFERENCE_TARIFF_2021,
        settings: SimulationSettings = DEFAULT_SETTINGS,
        grouping_schemes: Optional[Mapping[str, Sequence[IncomeGroupDefinition]]] = None,
    ):
        if len(calibration) != len(brackets):
            raise ValueError(f"{len(calibration)} calibration results for {len(brackets)} brackets")

        self.brackets = tuple(brackets)
        self.population = population
        self.calibration = tuple(calibration)
        self.reference = reference
        self.settings = settings

        schemes = dict(DEFAULT_GROUPING_SCHEMES)
        if grouping_schemes:
            schemes.update(grouping_schemes)
        for name, groups in schemes.items():
            try:
                validate_grouping(groups)
            except ValueError as e:
                raise ValueError(f"Grouping scheme '{name}': {e}") from e
        self.grouping_schemes: Dict[str, Sequence[IncomeGroupDefinition]] = schemes

        self.offsets = np.array([r.offset for r in self.calibration], dtype=float)
        self.offsets.setflags(write=False)
        self._point_offsets = self.offsets[population.bracket_index]
        self._point_offsets.setflags(write=False)

        self._baseline: Optional[SimulationResult] = None
        self._histogram: Optional[List[HistogramBin]] = None

    @classmethod
    def build(
        cls,
        brackets: Sequence[BracketStat] = DESTATIS_2021_BRACKETS,
        reference: TariffParameters = REFERENCE_TARIFF_2021,
        settings: SimulationSettings = DEFAULT_SETTINGS,
        grouping_schemes: Optional[Mapping[str, Sequence[IncomeGroupDefinition]]] = None,
    ) -> "SimulationContext":
        """
        Validate brackets, generate the population and calibrate offsets.

        Raises:
            ValueError: If the bracket table or a grouping scheme is malformed
        """
        ensure_valid_brackets(brackets)
        population = generate_population(brackets, settings)
        calibration = calibrate_brackets(population, brackets, reference, settings)
        return cls(brackets, population, calibration, reference, settings, grouping_schemes)

    @property
    def baseline(self) -> SimulationResult:
        """Reference tariff result (computed on first use)."""
        if self._baseline is None:
            self._baseline = self.simulate(self.reference)
        return self._baseline

    @property
    def histogram(self) -> List[HistogramBin]:
        """Income density of the population (computed on first use)."""
        if self._histogram is None:
            self._histogram = build_histogram(
                self.population.income,
                self.population.weight,
                self.settings.display_max_income,
                self.settings.histogram_bins,
            )
        return self._histogram

    @property
    def total_taxpayers(self) -> float:
        return self.population.total_weight

    def _checked(self, params: TariffParameters) -> TariffParameters:
        if params.is_ordered(self.settings.min_zone_gap):
            return params
        fixed = normalize_params(params, self.settings.min_zone_gap)
        logger.warning(f"Tariff zone boundaries out of order, re-clamped to {fixed}")
        return fixed

    def taxable_base(self) -> np.ndarray:
        """Calibrated taxable income of every point: max(0, income - k)."""
        return np.maximum(0.0, self.population.income - self._point_offsets)

    def point_taxes(self, params: TariffParameters) -> np.ndarray:
        """Weighted tax of every point (tax per taxpayer * weight)."""
        params = self._checked(params)
        tax = np.maximum(0.0, compute_tax_array(self.taxable_base(), params))
        return tax * self.population.weight

    def simulate(self, params: Optional[TariffParameters] = None) -> SimulationResult:
        """
        Apply a tariff to the calibrated population.

        Point-level taxes are computed once and aggregated for every grouping
        scheme.
        """
        params = self._checked(params if params is not None else self.reference)
        tax = self.point_taxes(params)
        total_tax = float(tax.sum())

        groups = {
            name: aggregate_groups(self.population.income, self.population.weight, tax, scheme, total_tax)
            for name, scheme in self.grouping_schemes.items()
        }
        return SimulationResult(params=params, total_tax=total_tax, groups=groups)

    def bracket_index_of(self, income: float) -> int:
        """Index of the bracket containing a gross income, -1 if none."""
        for bi, b in enumerate(self.brackets):
            if b.lower_bound <= income < b.upper_bound:
                return bi
        return -1

    def representative_deltas(
        self,
        params: TariffParameters,
        result: Optional[SimulationResult] = None,
    ) -> List[RepresentativeDelta]:
        """
        Tax change for the representative taxpayer of each display group.

        The bracket's offset approximates the deductions; it cancels out of
        the change much more than out of the absolute tax level.
        """
        params = self._checked(params)
        if result is None:
            result = self.simulate(params)

        deltas = []
        for i, g in enumerate(self.grouping_schemes[DISPLAY]):
            if g.representative_income is None:
                continue
            bi = self.bracket_index_of(g.representative_income)
            k = self.offsets[bi] if bi >= 0 else 0.0
            base = max(0.0, g.representative_income - k)
            ref_group = self.baseline.display_groups[i]
            new_group = result.display_groups[i]
            deltas.append(RepresentativeDelta(
                name=g.name,
                representative_income=g.representative_income,
                taxable_base=base,
                reference_tax=compute_tax(base, self.reference),
                new_tax=compute_tax(base, params),
                taxpayer_count=ref_group.taxpayer_count,
                reference_share_percent=ref_group.share_of_total_tax_percent,
                new_share_percent=new_group.share_of_total_tax_percent,
            ))
        return deltas

    def compare(self, params: TariffParameters) -> TariffComparison:
        """Simulate a tariff and compare it with the reference tariff."""
        reform = self.simulate(params)
        return TariffComparison(
            reference=self.baseline,
            reform=reform,
            representative=self.representative_deltas(reform.params, reform),
        )

    def export(self, params: Optional[TariffParameters] = None) -> dict:
        """Plain-data output: total tax, group tables and histogram."""
        result = self.simulate(params)
        data = result.to_dict()
        data["histogram"] = [{"income": b.income, "density": b.density} for b in self.histogram]
        return data
