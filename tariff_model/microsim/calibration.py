"""
Deduction Calibration

The statistics report total income per bracket, but the tariff applies to
taxable income (zu versteuerndes Einkommen) after deductions that are not
observed individually. Each bracket therefore gets one offset k, subtracted
from every synthetic income before the tariff is applied, solved so that

    sum(max(0, tax(max(0, income - k))) * weight) == reported total tax

under the reference tariff. Offsets are solved once and then held fixed
while other tariffs are simulated: deductions do not change because the zone
boundaries move.

The solver brackets the root by expanding an upper bound geometrically and
then bisects a fixed number of times, so it always terminates and never
raises. A target that cannot be reached even with k = 0 converges to k = 0.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from ..data.destatis import BracketStat
from ..settings import DEFAULT_SETTINGS, SimulationSettings
from ..tariff import TariffParameters, compute_tax_array
from .data_generator import SyntheticPopulation

logger = logging.getLogger(__name__)


@dataclass
class CalibrationReport:
    """Outcome of calibrating one bracket."""
    bracket_index: int
    offset: float
    target_tax: float
    achieved_tax: float
    reachable: bool  # False if the target exceeds the tax at k = 0
    bracketed: bool  # False if expansion ran out before f(upper) <= target

    @property
    def relative_error(self) -> float:
        if self.target_tax == 0:
            return 0.0
        return (self.achieved_tax - self.target_tax) / self.target_tax


def bracket_tax_given_offset(
    income: np.ndarray,
    weight: np.ndarray,
    offset: float,
    params: TariffParameters,
) -> float:
    """Total tax of a bracket's points when each income is reduced by `offset`."""
    base = np.maximum(0.0, income - offset)
    tax = np.maximum(0.0, compute_tax_array(base, params))
    return float(np.sum(tax * weight))


def _solve(
    income: np.ndarray,
    weight: np.ndarray,
    target_total_tax: float,
    params: TariffParameters,
    settings: SimulationSettings,
) -> Tuple[float, bool]:
    lo, hi = 0.0, float(settings.solver_initial_upper)
    bracketed = False
    for _ in range(settings.solver_expansion_steps):
        if bracket_tax_given_offset(income, weight, hi, params) <= target_total_tax:
            bracketed = True
            break
        hi *= settings.solver_growth
    else:
        bracketed = bracket_tax_given_offset(income, weight, hi, params) <= target_total_tax

    for _ in range(settings.solver_bisection_steps):
        mid = 0.5 * (lo + hi)
        if bracket_tax_given_offset(income, weight, mid, params) > target_total_tax:
            lo = mid
        else:
            hi = mid
    return 0.5 * (lo + hi), bracketed


def solve_offset(
    income: np.ndarray,
    weight: np.ndarray,
    target_total_tax: float,
    params: TariffParameters,
    settings: SimulationSettings = DEFAULT_SETTINGS,
) -> float:
    """
    Find the offset k for which the bracket's total tax equals the target.

    Args:
        income: Synthetic incomes of the bracket
        weight: Taxpayer weight of each point
        target_total_tax: Reported total tax of the bracket (euros)
        params: Reference tariff
        settings: Solver constants

    Returns:
        Midpoint of the final bisection interval (euros)
    """
    offset, _ = _solve(np.asarray(income, dtype=float), np.asarray(weight, dtype=float),
                       target_total_tax, params, settings)
    return offset


def calibrate_brackets(
    population: SyntheticPopulation,
    brackets: Sequence[BracketStat],
    reference: TariffParameters,
    settings: SimulationSettings = DEFAULT_SETTINGS,
) -> List[CalibrationReport]:
    """
    Solve the offset of every bracket independently against the reference tariff.

    Returns:
        One CalibrationReport per bracket, in bracket order
    """
    if population.n_brackets != len(brackets):
        raise ValueError(
            f"Population has {population.n_brackets} brackets, table has {len(brackets)}"
        )

    reports = []
    for bi, bracket in enumerate(brackets):
        income, weight = population.bracket_arrays(bi)
        target = bracket.total_tax
        reachable = bracket_tax_given_offset(income, weight, 0.0, reference) >= target

        offset, bracketed = _solve(income, weight, target, reference, settings)
        achieved = bracket_tax_given_offset(income, weight, offset, reference)

        if not reachable:
            logger.warning(
                f"Bracket {bi} ({bracket.lower_bound:,.0f}-{bracket.upper_bound:,.0f}): "
                f"target tax €{target:,.0f} exceeds tax without deductions "
                f"(€{achieved:,.0f}), offset set to 0"
            )
        elif not bracketed:
            logger.warning(
                f"Bracket {bi}: offset search range exhausted, "
                f"achieved €{achieved:,.0f} against target €{target:,.0f}"
            )

        logger.debug(f"Bracket {bi}: k = {offset:,.2f}, tax €{achieved:,.0f} (target €{target:,.0f})")
        reports.append(CalibrationReport(
            bracket_index=bi,
            offset=offset,
            target_tax=target,
            achieved_tax=achieved,
            reachable=reachable,
            bracketed=bracketed,
        ))

    total_target = sum(r.target_tax for r in reports)
    total_achieved = sum(r.achieved_tax for r in reports)
    logger.info(
        f"Calibrated {len(reports)} brackets: €{total_achieved/1e9:,.2f}B "
        f"of €{total_target/1e9:,.2f}B reported tax"
    )
    return reports


def calibrate_offsets(
    population: SyntheticPopulation,
    brackets: Sequence[BracketStat],
    reference: TariffParameters,
    settings: SimulationSettings = DEFAULT_SETTINGS,
) -> np.ndarray:
    """Per-bracket offsets as an array indexed by bracket."""
    reports = calibrate_brackets(population, brackets, reference, settings)
    return np.array([r.offset for r in reports], dtype=float)
