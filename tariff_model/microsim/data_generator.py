import logging
import math
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

import numpy as np
import pandas as pd

from ..data.destatis import BracketStat
from ..settings import DEFAULT_SETTINGS, ShapeFit, SimulationSettings

logger = logging.getLogger(__name__)

# Search range for the fitted shape parameters (log space)
_SHAPE_SEARCH = (math.log(1e-3), math.log(1e3))
_PARETO_SEARCH = (math.log(1e-6), math.log(1e3))
_SHAPE_FIT_STEPS = 100


@dataclass(frozen=True)
class SyntheticPoint:
    """`weight` taxpayers sharing one income value."""
    income: float
    weight: float
    bracket_index: int


class SyntheticPopulation:
    """
    Synthetic taxpayers reconstructed from grouped bracket statistics.

    Points are stored column-wise and ordered by bracket, then by income.
    The arrays are read-only: the population is generated once and shared by
    the calibration solver and every simulation run.
    """

    def __init__(
        self,
        income: np.ndarray,
        weight: np.ndarray,
        bracket_index: np.ndarray,
        bracket_slices: Sequence[slice],
    ):
        self.income = np.asarray(income, dtype=float)
        self.weight = np.asarray(weight, dtype=float)
        self.bracket_index = np.asarray(bracket_index, dtype=int)
        self.bracket_slices: Tuple[slice, ...] = tuple(bracket_slices)
        for arr in (self.income, self.weight, self.bracket_index):
            arr.setflags(write=False)

    def __len__(self) -> int:
        return len(self.income)

    @property
    def n_brackets(self) -> int:
        return len(self.bracket_slices)

    @property
    def total_weight(self) -> float:
        """Total number of taxpayers represented."""
        return float(self.weight.sum())

    def bracket_arrays(self, bracket_index: int) -> Tuple[np.ndarray, np.ndarray]:
        """(income, weight) views for one bracket."""
        s = self.bracket_slices[bracket_index]
        return self.income[s], self.weight[s]

    def points(self) -> Iterator[SyntheticPoint]:
        for income, weight, bi in zip(self.income, self.weight, self.bracket_index):
            yield SyntheticPoint(float(income), float(weight), int(bi))

    def by_bracket(self, bracket_index: int) -> List[SyntheticPoint]:
        income, weight = self.bracket_arrays(bracket_index)
        return [SyntheticPoint(float(i), float(w), bracket_index) for i, w in zip(income, weight)]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({
            'income': self.income,
            'weight': self.weight,
            'bracket_index': self.bracket_index,
        })


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def point_count(bracket: BracketStat, settings: SimulationSettings = DEFAULT_SETTINGS) -> int:
    """
    Number of synthetic points for a bracket: proportional to its width
    relative to base_width, never fewer than base_points.
    """
    width = settings.base_width if bracket.is_unbounded else bracket.width
    return max(settings.base_points, _round_half_up(settings.base_points * width / settings.base_width))


def unit_midpoints(n: int) -> np.ndarray:
    """Evenly spaced midpoints (i + 0.5) / n of the unit interval."""
    return (np.arange(n) + 0.5) / n


def clamp_relative_average(rel: float, settings: SimulationSettings = DEFAULT_SETTINGS) -> float:
    return max(settings.rel_average_floor, min(settings.rel_average_ceiling, rel))


def closed_form_power_shape(rel: float, settings: SimulationSettings = DEFAULT_SETTINGS) -> float:
    """Exponent ln(0.5) / ln(rel), with rel clamped so the logarithm stays finite and negative."""
    return math.log(0.5) / math.log(clamp_relative_average(rel, settings))


def _power_incomes(bracket: BracketStat, u: np.ndarray, shape: float) -> np.ndarray:
    upper = max(bracket.lower_bound, bracket.upper_bound - 1)
    return np.clip(bracket.lower_bound + u ** shape * bracket.width, bracket.lower_bound, upper)


def _pareto_incomes(lower: float, u: np.ndarray, alpha: float, cap: float) -> np.ndarray:
    return np.minimum(lower / (1 - u) ** (1 / alpha), cap)


def _bisect_decreasing(func, target: float, lo: float, hi: float, steps: int) -> float:
    """Solve func(t) == target for a non-increasing func on [lo, hi]."""
    for _ in range(steps):
        mid = 0.5 * (lo + hi)
        if func(mid) > target:
            lo = mid
        else:
            hi = mid
    return 0.5 * (lo + hi)


def fit_power_shape(
    bracket: BracketStat,
    u: np.ndarray,
    settings: SimulationSettings = DEFAULT_SETTINGS,
) -> float:
    """
    Exponent for which the sampled incomes average exactly to the bracket's
    (clamped) average income.
    """
    rel = clamp_relative_average(bracket.relative_average, settings)
    target = bracket.lower_bound + rel * bracket.width
    log_shape = _bisect_decreasing(
        lambda t: _power_incomes(bracket, u, math.exp(t)).mean(),
        target,
        *_SHAPE_SEARCH,
        steps=_SHAPE_FIT_STEPS,
    )
    return math.exp(log_shape)


def fit_pareto_alpha(
    lower: float,
    avg: float,
    u: np.ndarray,
    settings: SimulationSettings = DEFAULT_SETTINGS,
) -> float:
    """Pareto shape for which the sampled, capped incomes average to `avg`."""
    log_excess = _bisect_decreasing(
        lambda t: _pareto_incomes(lower, u, 1 + math.exp(t), settings.pareto_cap).mean(),
        avg,
        *_PARETO_SEARCH,
        steps=_SHAPE_FIT_STEPS,
    )
    return 1 + math.exp(log_excess)


def generate_bracket_incomes(
    bracket: BracketStat,
    settings: SimulationSettings = DEFAULT_SETTINGS,
) -> np.ndarray:
    """
    Ordered representative incomes for one bracket.

    Bounded brackets use a power-law transform of the unit interval, skewed
    towards the reported average. The unbounded top bracket uses an inverse
    Pareto CDF anchored at its lower bound and capped at pareto_cap.
    """
    n = point_count(bracket, settings)
    u = unit_midpoints(n)
    lower = bracket.lower_bound
    avg = bracket.avg_income

    if bracket.is_unbounded:
        if lower <= 0 or avg <= lower:
            logger.warning(f"Top bracket average €{avg:,.0f} not above lower bound, using a point mass")
            return np.full(n, lower, dtype=float)
        if settings.shape_fit == ShapeFit.CLOSED_FORM:
            alpha = avg / (avg - lower)
        else:
            alpha = fit_pareto_alpha(lower, avg, u, settings)
        logger.debug(f"Top bracket: {n} points, Pareto alpha {alpha:.4f}")
        return _pareto_incomes(lower, u, alpha, settings.pareto_cap)

    if settings.shape_fit == ShapeFit.CLOSED_FORM:
        shape = closed_form_power_shape(bracket.relative_average, settings)
    else:
        shape = fit_power_shape(bracket, u, settings)
    logger.debug(f"Bracket €{lower:,.0f}-€{bracket.upper_bound:,.0f}: {n} points, shape {shape:.4f}")
    return _power_incomes(bracket, u, shape)


def generate_population(
    brackets: Sequence[BracketStat],
    settings: SimulationSettings = DEFAULT_SETTINGS,
) -> SyntheticPopulation:
    """
    Generate the synthetic population for a bracket table.

    Each point in a bracket carries the same weight, taxpayer_count / n, so
    the weights of a bracket sum to its taxpayer count.

    Raises:
        ValueError: If a bracket has no taxpayers
    """
    incomes, weights, indices, slices = [], [], [], []
    start = 0

    for bi, bracket in enumerate(brackets):
        if bracket.taxpayer_count <= 0:
            raise ValueError(f"Bracket {bi} has no taxpayers: {bracket}")

        income = generate_bracket_incomes(bracket, settings)
        n = len(income)
        incomes.append(income)
        weights.append(np.full(n, bracket.taxpayer_count / n))
        indices.append(np.full(n, bi, dtype=int))
        slices.append(slice(start, start + n))
        start += n

    population = SyntheticPopulation(
        income=np.concatenate(incomes) if incomes else np.empty(0),
        weight=np.concatenate(weights) if weights else np.empty(0),
        bracket_index=np.concatenate(indices) if indices else np.empty(0, dtype=int),
        bracket_slices=slices,
    )
    logger.info(
        f"Generated {len(population):,} synthetic points for {len(slices)} brackets "
        f"({population.total_weight:,.0f} taxpayers, shape fit {settings.shape_fit.value})"
    )
    return population


if __name__ == "__main__":
    from ..data.destatis import DESTATIS_2021_BRACKETS

    pop = generate_population(DESTATIS_2021_BRACKETS)
    print(pop.to_dataframe().describe())
