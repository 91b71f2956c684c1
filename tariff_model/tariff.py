"""
Income Tax Tariff

Five-zone piecewise income tax function in the form of §32a EStG:

- Zone 1: basic allowance (Grundfreibetrag), no tax
- Zone 2: lower progression, marginal rate rises linearly (quadratic tax)
- Zone 3: upper progression, marginal rate rises linearly to the top rate
- Zone 4: flat top rate (Spitzensteuersatz)
- Zone 5: flat rate for the highest incomes (Reichensteuer)

Only a handful of controls are user facing (TariffParameters). The quadratic
coefficients and the constants that keep the tax continuous at every zone
boundary are derived from them (DerivedTariff).
"""

import dataclasses
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional, Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)

# Income is normalized in steps of 10,000 euros inside the progression zones
PROGRESSION_UNIT = 10_000


@dataclass(frozen=True)
class TariffParameters:
    """
    User-facing tariff controls.

    Attributes:
        zero_threshold: Basic allowance, upper end of zone 1 (euros)
        zone2_end: Upper end of the lower progression zone (euros)
        zone2_entry_rate_basis: Entry marginal rate in basis points (1400 = 14%)
        zone3_end: Upper end of the upper progression zone (euros)
        zone4_end: Upper end of the first flat zone (euros)
        zone4_rate: Flat rate of zone 4 (0.42 = 42%)
        zone5_rate: Flat rate of zone 5
        mid_rate_override: Marginal rate at the zone 2/3 boundary; interpolated
            from entry and zone 4 rates when None
    """
    zero_threshold: float
    zone2_end: float
    zone2_entry_rate_basis: float
    zone3_end: float
    zone4_end: float
    zone4_rate: float
    zone5_rate: float
    mid_rate_override: Optional[float] = None

    @property
    def entry_rate(self) -> float:
        return self.zone2_entry_rate_basis / 10_000

    def is_ordered(self, min_gap: float = 0.0) -> bool:
        """Check zone boundaries are increasing by at least min_gap and zone5_rate >= zone4_rate."""
        return (
            self.zero_threshold < self.zone2_end
            and self.zone2_end < self.zone3_end
            and self.zone3_end < self.zone4_end
            and self.zero_threshold + min_gap <= self.zone2_end
            and self.zone2_end + min_gap <= self.zone3_end
            and self.zone3_end + min_gap <= self.zone4_end
            and self.zone5_rate >= self.zone4_rate
        )


@dataclass(frozen=True)
class DerivedTariff:
    """Coefficients derived from TariffParameters. Never stored beside them."""
    zone2_a: float
    zone2_b: float
    zone3_a: float
    zone3_b: float
    zone3_c: float
    zone4_sub: float
    zone5_sub: float
    mid_rate: float
    entry_rate: float


# =============================================================================
# REFERENCE TARIFF (2021)
# =============================================================================

REFERENCE_TARIFF_2021 = TariffParameters(
    zero_threshold=9_744,
    zone2_end=14_753,
    zone2_entry_rate_basis=1_400,
    zone3_end=57_918,
    zone4_end=274_612,
    zone4_rate=0.42,
    zone5_rate=0.45,
)

# Statutory 2021 quadratic coefficients; also used when a zone has zero width
REFERENCE_ZONE2_A = 995.21
REFERENCE_ZONE3_A = 208.85

# Marginal rate at the zone 2/3 boundary of the 2021 tariff (~23.97%)
REFERENCE_MID_RATE = (
    2 * REFERENCE_ZONE2_A
    * ((REFERENCE_TARIFF_2021.zone2_end - REFERENCE_TARIFF_2021.zero_threshold) / PROGRESSION_UNIT)
    + REFERENCE_TARIFF_2021.zone2_entry_rate_basis
) / 10_000

# Where the 2021 mid rate sits between entry (14%) and top (42%) rate.
# Derived from the 2021 tariff; must be re-derived if the reference tariff changes.
MID_RATE_FRACTION = (
    (REFERENCE_MID_RATE - REFERENCE_TARIFF_2021.entry_rate)
    / (REFERENCE_TARIFF_2021.zone4_rate - REFERENCE_TARIFF_2021.entry_rate)
)

DEFAULT_MIN_GAP = 500


@lru_cache(maxsize=256)
def derive_full_params(params: TariffParameters) -> DerivedTariff:
    """
    Derive zone coefficients from the tariff controls.

    The zone 2 and zone 3 quadratics are solved so the marginal rate is
    continuous across zones and reaches the mid rate at zone2_end and the
    zone 4 rate at zone3_end. Cumulative tax at each boundary gives the
    constants that make the tax itself continuous.

    Memoized on the parameter value; TariffParameters is immutable, so a
    changed tariff is a different cache key.
    """
    entry_rate = params.entry_rate
    y_top = (params.zone2_end - params.zero_threshold) / PROGRESSION_UNIT
    z_top = (params.zone3_end - params.zone2_end) / PROGRESSION_UNIT

    if params.mid_rate_override is not None:
        mid_rate = params.mid_rate_override
    else:
        mid_rate = entry_rate + MID_RATE_FRACTION * (params.zone4_rate - entry_rate)

    zone2_b = params.zone2_entry_rate_basis
    zone2_a = (mid_rate * 10_000 - zone2_b) / (2 * y_top) if y_top > 0 else REFERENCE_ZONE2_A
    zone3_b = mid_rate * 10_000
    zone3_a = (params.zone4_rate * 10_000 - zone3_b) / (2 * z_top) if z_top > 0 else REFERENCE_ZONE3_A

    tax_at_zone2_end = (zone2_a * y_top + zone2_b) * y_top
    zone3_c = tax_at_zone2_end
    tax_at_zone3_end = (zone3_a * z_top + zone3_b) * z_top + zone3_c
    zone4_sub = params.zone4_rate * params.zone3_end - tax_at_zone3_end
    tax_at_zone4_end = params.zone4_rate * params.zone4_end - zone4_sub
    zone5_sub = params.zone5_rate * params.zone4_end - tax_at_zone4_end

    return DerivedTariff(
        zone2_a=zone2_a,
        zone2_b=zone2_b,
        zone3_a=zone3_a,
        zone3_b=zone3_b,
        zone3_c=zone3_c,
        zone4_sub=zone4_sub,
        zone5_sub=zone5_sub,
        mid_rate=mid_rate,
        entry_rate=entry_rate,
    )


def compute_tax_array(income: Union[np.ndarray, Sequence[float]], params: TariffParameters) -> np.ndarray:
    """
    Vectorized tax for an array of taxable incomes.

    Income is floored to whole euros before the zone lookup and the tax is
    floored to whole euros afterwards.
    """
    d = derive_full_params(params)
    x = np.floor(np.asarray(income, dtype=float))
    y = (x - params.zero_threshold) / PROGRESSION_UNIT
    z = (x - params.zone2_end) / PROGRESSION_UNIT

    tax = np.select(
        [
            x <= params.zero_threshold,
            x <= params.zone2_end,
            x <= params.zone3_end,
            x <= params.zone4_end,
        ],
        [
            0.0,
            (d.zone2_a * y + d.zone2_b) * y,
            (d.zone3_a * z + d.zone3_b) * z + d.zone3_c,
            params.zone4_rate * x - d.zone4_sub,
        ],
        default=params.zone5_rate * x - d.zone5_sub,
    )
    return np.floor(tax)


def compute_tax(income: float, params: TariffParameters) -> int:
    """Tax owed (whole euros) on a single taxable income."""
    return int(compute_tax_array(np.array([income], dtype=float), params)[0])


# =============================================================================
# PARAMETER UPDATES
# =============================================================================

def normalize_params(params: TariffParameters, min_gap: float = DEFAULT_MIN_GAP) -> TariffParameters:
    """
    Restore the ordering invariants by pushing neighbouring boundaries.

    Boundaries are first pushed upwards from the basic allowance, then
    downwards from zone4_end, and zone5_rate is raised to zone4_rate if needed.
    """
    zero_threshold = params.zero_threshold
    zone2_end = params.zone2_end
    zone3_end = params.zone3_end
    zone4_end = params.zone4_end
    zone5_rate = params.zone5_rate

    if zero_threshold + min_gap > zone2_end:
        zone2_end = zero_threshold + min_gap
    if zone2_end + min_gap > zone3_end:
        zone3_end = zone2_end + min_gap
    if zone3_end + min_gap > zone4_end:
        zone4_end = zone3_end + min_gap
    if zone4_end - min_gap < zone3_end:
        zone3_end = zone4_end - min_gap
    if zone3_end - min_gap < zone2_end:
        zone2_end = zone3_end - min_gap
    if zone2_end - min_gap < zero_threshold:
        zero_threshold = zone2_end - min_gap
    if zone5_rate < params.zone4_rate:
        zone5_rate = params.zone4_rate

    return dataclasses.replace(
        params,
        zero_threshold=zero_threshold,
        zone2_end=zone2_end,
        zone3_end=zone3_end,
        zone4_end=zone4_end,
        zone5_rate=zone5_rate,
    )


_PARAM_FIELDS = frozenset(f.name for f in dataclasses.fields(TariffParameters))


def update_param(
    params: TariffParameters,
    key: str,
    value: Any,
    min_gap: float = DEFAULT_MIN_GAP,
) -> TariffParameters:
    """
    Set one tariff control and re-establish the ordering invariants.

    Args:
        params: Current tariff
        key: TariffParameters field name
        value: New value (None is only meaningful for mid_rate_override)
        min_gap: Minimum distance between zone boundaries

    Returns:
        New TariffParameters; the input is left untouched

    Raises:
        KeyError: If key is not a tariff control
    """
    if key not in _PARAM_FIELDS:
        raise KeyError(f"Unknown tariff parameter: {key}")
    return normalize_params(dataclasses.replace(params, **{key: value}), min_gap=min_gap)


def reset_params() -> TariffParameters:
    """Return the 2021 reference tariff."""
    return REFERENCE_TARIFF_2021
