"""Synthetic population, calibration and simulation engine."""

from .data_generator import SyntheticPoint, SyntheticPopulation, generate_population
from .calibration import CalibrationReport, calibrate_offsets, solve_offset
from .engine import SimulationContext, SimulationResult, TariffComparison

__all__ = [
    "SyntheticPoint",
    "SyntheticPopulation",
    "generate_population",
    "CalibrationReport",
    "calibrate_offsets",
    "solve_offset",
    "SimulationContext",
    "SimulationResult",
    "TariffComparison",
]
