"""
Tests for the simulation context.

Tests cover:
- Calibration reproduces reported revenue under the reference tariff
- Grouping consistency and idempotence
- Revenue response to tariff changes
- Comparison, representative taxpayers and plain-data export
"""

import dataclasses
import logging
import math

import numpy as np
import pytest

from tariff_model.distribution import DISPLAY, SUMMARY, IncomeGroupDefinition
from tariff_model.microsim import SimulationContext, SimulationResult, TariffComparison
from tariff_model.tariff import TariffParameters


class TestCalibratedBaseline:
    """Test the reference tariff run."""

    def test_reproduces_reported_revenue(self, context, brackets):
        reported = sum(b.total_tax for b in brackets)
        simulated = context.simulate().total_tax
        assert abs(simulated - reported) / reported < 0.005

    def test_bracket_groups_match_reported_tax(self, context, brackets):
        """Display groups mirror the brackets, so reachable brackets match exactly."""
        groups = context.baseline.display_groups
        for bi in range(3, len(brackets)):
            assert groups[bi].total_tax == pytest.approx(brackets[bi].total_tax, rel=1e-3)

    def test_baseline_is_reference_run(self, context, reference_params):
        assert context.baseline.params == reference_params
        assert context.baseline.total_tax == context.simulate(reference_params).total_tax

    def test_offsets_fixed_and_read_only(self, context, reference_params):
        before = context.offsets.copy()
        context.simulate(dataclasses.replace(reference_params, zone4_rate=0.45))
        np.testing.assert_array_equal(context.offsets, before)
        with pytest.raises(ValueError):
            context.offsets[0] = 1.0

    def test_offsets_grow_with_income(self, context):
        """Deductions absorb more euros in higher brackets."""
        assert context.offsets[-1] > context.offsets[6] > 0


class TestSimulate:
    """Test aggregation of simulated taxes."""

    def test_idempotent(self, context, reference_params):
        p = dataclasses.replace(reference_params, zero_threshold=11_000)
        first = context.simulate(p)
        second = context.simulate(p)
        assert first.total_tax == second.total_tax
        assert first.groups == second.groups

    def test_display_groups_partition_total(self, context):
        result = context.simulate()
        assert sum(g.total_tax for g in result.display_groups) == pytest.approx(result.total_tax, rel=1e-9)
        assert sum(g.total_tax for g in result.summary_groups) == pytest.approx(result.total_tax, rel=1e-9)

    def test_shares_sum_to_hundred(self, context):
        result = context.simulate()
        assert sum(g.share_of_total_tax_percent for g in result.display_groups) == pytest.approx(100.0)
        assert sum(g.share_of_total_tax_percent for g in result.summary_groups) == pytest.approx(100.0)

    def test_taxpayers_and_income_preserved(self, context, brackets):
        result = context.simulate()
        total_taxpayers = sum(b.taxpayer_count for b in brackets)
        assert abs(sum(g.taxpayer_count for g in result.display_groups) - total_taxpayers) <= len(brackets)
        total_income = sum(g.total_income for g in result.display_groups)
        assert total_income == pytest.approx(sum(b.total_income for b in brackets), rel=1e-3)

    def test_average_rates_progressive(self, context):
        rates = [g.average_effective_rate_percent for g in context.baseline.summary_groups]
        assert rates == sorted(rates)
        assert 0 < rates[-1] < 45

    def test_higher_top_rate_raises_revenue(self, context, reference_params):
        p = dataclasses.replace(reference_params, zone4_rate=0.45)
        assert context.simulate(p).total_tax >= context.baseline.total_tax

    def test_higher_allowance_lowers_revenue(self, context, reference_params):
        p = dataclasses.replace(reference_params, zero_threshold=12_000)
        assert context.simulate(p).total_tax < context.baseline.total_tax

    def test_out_of_order_params_are_clamped(self, context, caplog):
        bad = TariffParameters(
            zero_threshold=20_000,
            zone2_end=15_000,
            zone2_entry_rate_basis=1_400,
            zone3_end=57_918,
            zone4_end=274_612,
            zone4_rate=0.42,
            zone5_rate=0.40,
        )
        with caplog.at_level(logging.WARNING, logger="tariff_model.microsim.engine"):
            result = context.simulate(bad)

        assert result.params.is_ordered(500)
        assert result.params.zone2_end == 20_500
        assert result.params.zone5_rate == 0.42
        assert any("out of order" in rec.getMessage() for rec in caplog.records)

    def test_to_dataframe(self, context):
        df = context.baseline.to_dataframe(SUMMARY)
        assert len(df) == 4
        assert "Share of Total" in df.columns


class TestCustomGrouping:
    """Test additional grouping schemes."""

    HALVES = (
        IncomeGroupDefinition("Below 50k", 0, 50_000),
        IncomeGroupDefinition("50k and over", 50_000, math.inf),
    )

    def test_extra_scheme(self, context):
        ctx = SimulationContext(
            context.brackets,
            context.population,
            context.calibration,
            grouping_schemes={"halves": self.HALVES},
        )
        result = ctx.simulate()
        assert set(result.groups) == {DISPLAY, SUMMARY, "halves"}
        assert sum(g.total_tax for g in result.groups["halves"]) == pytest.approx(result.total_tax)
        assert result.total_tax == context.baseline.total_tax

    def test_invalid_scheme_rejected(self, context):
        gap = (
            IncomeGroupDefinition("Low", 0, 40_000),
            IncomeGroupDefinition("High", 50_000, math.inf),
        )
        with pytest.raises(ValueError):
            SimulationContext(
                context.brackets,
                context.population,
                context.calibration,
                grouping_schemes={"gap": gap},
            )


class TestCompare:
    """Test comparison against the reference tariff."""

    def test_reference_has_no_change(self, context, reference_params):
        comparison = context.compare(reference_params)
        assert isinstance(comparison, TariffComparison)
        assert comparison.revenue_change == 0
        assert comparison.revenue_change_pct == 0
        assert all(r.delta == 0 for r in comparison.representative)

    def test_top_rate_increase(self, context, reference_params):
        p = dataclasses.replace(reference_params, zone4_rate=0.45)
        comparison = context.compare(p)

        assert comparison.revenue_change > 0
        assert comparison.revenue_change_pct == pytest.approx(
            comparison.revenue_change / comparison.reference.total_tax * 100
        )
        assert len(comparison.representative) == 17
        # Below the allowance nothing changes; high earners pay more
        assert comparison.representative[0].delta == 0
        assert comparison.representative[-1].delta > 0
        assert comparison.representative[-1].monthly_delta == round(comparison.representative[-1].delta / 12)

    def test_tables_and_summary(self, context, reference_params):
        comparison = context.compare(dataclasses.replace(reference_params, zero_threshold=11_000))
        assert len(comparison.share_table()) == 17
        assert len(comparison.representative_table()) == 17
        assert "Change:" in comparison.summary()


class TestExport:
    """Test the plain-data output boundary."""

    def test_export(self, context):
        data = context.export()
        assert set(data) == {"total_tax", "display_groups", "summary_groups", "histogram"}
        assert len(data["display_groups"]) == 17
        assert len(data["summary_groups"]) == 4
        assert len(data["histogram"]) == 200
        assert data["total_tax"] == context.baseline.total_tax

    def test_result_type(self, context):
        assert isinstance(context.simulate(), SimulationResult)
