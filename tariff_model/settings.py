"""
Simulation settings.

Every numeric constant of the population generator, the calibration solver
and the display helpers, with the defaults the model is calibrated with.
"""

from dataclasses import dataclass
from enum import Enum


class ShapeFit(Enum):
    """How the within-bracket distribution shape is fitted to the bracket average."""
    MEAN_MATCHED = "mean_matched"   # Exponent solved so the sampled mean hits the average
    CLOSED_FORM = "closed_form"     # Logarithmic relation, pins the median instead


@dataclass(frozen=True)
class SimulationSettings:
    """
    Configuration for building a SimulationContext.

    Attributes:
        base_points: Minimum synthetic points per bracket
        base_width: Bracket width (euros) that receives base_points
        pareto_cap: Largest income the top bracket may generate (euros)
        shape_fit: Within-bracket shape policy
        rel_average_floor: Lower clamp for the relative average position
        rel_average_ceiling: Upper clamp for the relative average position
        solver_initial_upper: Initial upper bound of the offset search (euros)
        solver_growth: Upper bound multiplier per expansion step
        solver_expansion_steps: Maximum number of expansion steps
        solver_bisection_steps: Fixed number of bisection steps
        display_max_income: Histogram cut-off (euros)
        histogram_bins: Number of histogram bins
        min_zone_gap: Minimum distance between zone boundaries (euros)
    """
    base_points: int = 300
    base_width: float = 5_000
    pareto_cap: float = 50_000_000
    shape_fit: ShapeFit = ShapeFit.MEAN_MATCHED
    rel_average_floor: float = 0.05
    rel_average_ceiling: float = 0.95

    solver_initial_upper: float = 500_000
    solver_growth: float = 1.5
    solver_expansion_steps: int = 40
    solver_bisection_steps: int = 60

    display_max_income: float = 200_000
    histogram_bins: int = 200

    min_zone_gap: float = 500

    def __post_init__(self):
        if self.base_points <= 0:
            raise ValueError(f"base_points must be positive, got {self.base_points}")
        if self.base_width <= 0:
            raise ValueError(f"base_width must be positive, got {self.base_width}")
        if self.pareto_cap <= 0:
            raise ValueError(f"pareto_cap must be positive, got {self.pareto_cap}")
        if not 0 < self.rel_average_floor < self.rel_average_ceiling < 1:
            raise ValueError("relative average clamp must satisfy 0 < floor < ceiling < 1")
        if self.solver_initial_upper <= 0 or self.solver_growth <= 1:
            raise ValueError("solver needs a positive initial upper bound and growth > 1")
        if self.solver_expansion_steps < 0 or self.solver_bisection_steps <= 0:
            raise ValueError("solver step counts must be non-negative (expansion) and positive (bisection)")
        if self.display_max_income <= 0 or self.histogram_bins <= 0:
            raise ValueError("histogram needs a positive display maximum and bin count")
        if self.min_zone_gap < 0:
            raise ValueError(f"min_zone_gap must be >= 0, got {self.min_zone_gap}")


DEFAULT_SETTINGS = SimulationSettings()
