"""
Tests for the five-zone tariff.

Tests cover:
- Derived coefficients of the 2021 tariff
- Zone boundaries, continuity and monotonicity
- Degenerate zone widths and mid-rate override
- Parameter updates restoring the ordering invariants
"""

import dataclasses
import math

import numpy as np
import pytest

from tariff_model.tariff import (
    MID_RATE_FRACTION,
    REFERENCE_TARIFF_2021,
    REFERENCE_ZONE2_A,
    REFERENCE_ZONE3_A,
    TariffParameters,
    compute_tax,
    compute_tax_array,
    derive_full_params,
    normalize_params,
    reset_params,
    update_param,
)


def boundaries(p):
    return [p.zero_threshold, p.zone2_end, p.zone3_end, p.zone4_end]


COUNTERFACTUAL = dataclasses.replace(
    REFERENCE_TARIFF_2021,
    zero_threshold=12_000,
    zone2_end=18_000,
    zone3_end=70_000,
    zone4_end=250_000,
    zone4_rate=0.44,
    zone5_rate=0.48,
)


class TestDerivedParameters:
    """Test coefficient derivation."""

    def test_reference_coefficients_match_statute(self, reference_params):
        """The 2021 tariff reproduces the statutory §32a coefficients."""
        d = derive_full_params(reference_params)

        assert d.entry_rate == pytest.approx(0.14)
        assert d.zone2_a == pytest.approx(REFERENCE_ZONE2_A, abs=0.01)
        assert d.zone2_b == 1400
        assert d.zone3_a == pytest.approx(REFERENCE_ZONE3_A, abs=0.01)
        assert d.zone3_b == pytest.approx(2397, abs=0.1)
        assert d.zone3_c == pytest.approx(950.96, abs=0.01)
        assert d.zone4_sub == pytest.approx(9136.63, abs=0.1)
        assert d.zone5_sub == pytest.approx(17374.99, abs=0.1)

    def test_mid_rate_fraction(self):
        """The 2021 mid rate sits about 36% of the way from entry to top rate."""
        assert MID_RATE_FRACTION == pytest.approx(0.356, abs=0.001)

    def test_mid_rate_interpolates_with_top_rate(self, reference_params):
        p = dataclasses.replace(reference_params, zone4_rate=0.50, zone5_rate=0.50)
        d = derive_full_params(p)
        assert d.mid_rate == pytest.approx(0.14 + MID_RATE_FRACTION * (0.50 - 0.14))

    def test_mid_rate_override(self, reference_params):
        """An explicit mid rate is the marginal rate at the zone 2/3 boundary."""
        p = dataclasses.replace(reference_params, mid_rate_override=0.25)
        d = derive_full_params(p)
        assert d.mid_rate == 0.25

        marginal = (compute_tax(p.zone2_end, p) - compute_tax(p.zone2_end - 100, p)) / 100
        assert marginal == pytest.approx(0.25, abs=0.02)

    def test_zero_width_zones_use_fallback_coefficients(self):
        p = TariffParameters(
            zero_threshold=10_000,
            zone2_end=10_000,
            zone2_entry_rate_basis=1_400,
            zone3_end=10_000,
            zone4_end=100_000,
            zone4_rate=0.42,
            zone5_rate=0.45,
        )
        d = derive_full_params(p)
        assert d.zone2_a == REFERENCE_ZONE2_A
        assert d.zone3_a == REFERENCE_ZONE3_A
        assert all(math.isfinite(v) for v in dataclasses.astuple(d))

    def test_derivation_memoized_per_parameter_set(self, reference_params):
        assert derive_full_params(reference_params) is derive_full_params(reference_params)

        changed = dataclasses.replace(reference_params, zone4_rate=0.45)
        assert derive_full_params(changed).mid_rate != derive_full_params(reference_params).mid_rate


class TestComputeTax:
    """Test the tax function."""

    def test_zero_zone_boundary(self, reference_params):
        """No tax up to and including the basic allowance."""
        assert compute_tax(0, reference_params) == 0
        assert compute_tax(9744, reference_params) == 0
        assert compute_tax(9744.99, reference_params) == 0

    def test_tax_starts_just_above_allowance(self, reference_params):
        """Tax becomes positive within a few euros of the allowance (whole-euro flooring)."""
        assert 0 <= compute_tax(9745, reference_params) <= 1
        assert compute_tax(9752, reference_params) == 1
        assert compute_tax(9760, reference_params) > 0

    def test_known_values(self, reference_params):
        assert compute_tax(14753, reference_params) == 950
        assert compute_tax(100_000, reference_params) == 32863
        assert compute_tax(300_000, reference_params) == pytest.approx(117625, abs=1)

    @pytest.mark.parametrize("params", [REFERENCE_TARIFF_2021, COUNTERFACTUAL])
    def test_continuous_at_boundaries(self, params):
        """No jump beyond flooring error at any zone boundary."""
        for b in boundaries(params):
            assert abs(compute_tax(b + 1, params) - compute_tax(b, params)) <= 1

    @pytest.mark.parametrize("params", [REFERENCE_TARIFF_2021, COUNTERFACTUAL])
    def test_monotone_in_income(self, params):
        incomes = np.arange(0, 1_000_000, 13, dtype=float)
        tax = compute_tax_array(incomes, params)
        assert np.all(np.diff(tax) >= 0)

    def test_array_matches_scalar(self, reference_params):
        incomes = [0, 5_000, 9_744, 12_000, 14_753, 30_000, 57_918, 100_000, 274_612, 1_000_000]
        tax = compute_tax_array(incomes, reference_params)
        assert list(tax) == [compute_tax(x, reference_params) for x in incomes]

    def test_top_rates(self, reference_params):
        """Marginal rate is the flat rate in zones 4 and 5."""
        assert compute_tax(101_000, reference_params) - compute_tax(100_000, reference_params) == 420
        assert compute_tax(401_000, reference_params) - compute_tax(400_000, reference_params) == 450


class TestParameterUpdates:
    """Test clamping of the zone ordering."""

    def test_zone2_end_below_threshold_is_pushed_up(self, reference_params):
        p = update_param(reference_params, "zone2_end", 9_000)
        assert p.zero_threshold == 9_744
        assert p.zone2_end == 9_744 + 500
        assert p.is_ordered(500)

    def test_zero_threshold_pushes_following_zones(self, reference_params):
        p = update_param(reference_params, "zero_threshold", 60_000)
        assert (p.zero_threshold, p.zone2_end, p.zone3_end, p.zone4_end) == (60_000, 60_500, 61_000, 274_612)
        assert p.is_ordered(500)

    def test_zone4_end_below_zone3_end(self, reference_params):
        p = update_param(reference_params, "zone4_end", 50_000)
        assert p.zone4_end == 57_918 + 500
        assert p.is_ordered(500)

    def test_zone5_rate_never_below_zone4_rate(self, reference_params):
        p = update_param(reference_params, "zone5_rate", 0.40)
        assert p.zone5_rate == 0.42

        p = update_param(reference_params, "zone4_rate", 0.47)
        assert p.zone5_rate == 0.47

    def test_update_leaves_input_untouched(self, reference_params):
        p = update_param(reference_params, "zone4_rate", 0.45)
        assert p.zone4_rate == 0.45
        assert reference_params.zone4_rate == 0.42

    def test_unknown_parameter(self, reference_params):
        with pytest.raises(KeyError):
            update_param(reference_params, "grundfreibetrag", 10_000)

    def test_mid_rate_override_can_be_cleared(self, reference_params):
        p = update_param(reference_params, "mid_rate_override", 0.2)
        p = update_param(p, "mid_rate_override", None)
        assert p == reference_params

    def test_normalize_is_noop_for_ordered_params(self, reference_params):
        assert normalize_params(reference_params) == reference_params

    def test_reset(self):
        assert reset_params() == REFERENCE_TARIFF_2021
