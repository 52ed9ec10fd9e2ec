"""
Tests for the inflation calculators.
"""

import pytest

from models import PlannerInputs
from engine.inflation import (
    adjust_for_inflation,
    analyze_inflation_impact,
    calculate_inflation_analysis,
    calculate_inflation_protection,
    calculate_real_returns,
)


class TestAdjustForInflation:

    @pytest.mark.parametrize("nominal", [0, 1, 1_000, 2_500_000])
    @pytest.mark.parametrize("rate", [0, 0.5, 2.5, 10])
    @pytest.mark.parametrize("years", [0, 1, 7.5, 40])
    def test_real_never_exceeds_nominal(self, nominal, rate, years):
        assert adjust_for_inflation(nominal, rate, years) <= nominal

    @pytest.mark.parametrize("rate", [0, 2.5, 50])
    def test_zero_horizon_is_identity(self, rate):
        assert adjust_for_inflation(123_456, rate, 0) == 123_456

    def test_compound_value(self):
        assert adjust_for_inflation(100_000, 3, 10) == pytest.approx(100_000 / 1.03 ** 10)

    def test_simple_inflation(self):
        assert adjust_for_inflation(100_000, 2, 10, compounding=False) == pytest.approx(100_000 / 1.2)

    def test_invalid_inputs_are_total(self):
        assert adjust_for_inflation('abc', 3, 10) == 0
        assert adjust_for_inflation(1_000, None, 10) == 1_000

    def test_rate_at_minus_hundred_stays_finite(self):
        value = adjust_for_inflation(1_000, -100, 2)
        assert value > 0
        assert value != float('inf')


class TestRealReturns:

    def test_fisher_formula(self):
        result = calculate_real_returns({'pension': 7}, 2)
        assert result['pension'] == pytest.approx((1.07 / 1.02 - 1) * 100)

    def test_sequence_of_rates_is_averaged(self):
        assert calculate_real_returns({'a': 5}, [1, 3]) == calculate_real_returns({'a': 5}, 2)

    def test_non_mapping_yields_empty(self):
        assert calculate_real_returns([7, 6], 2) == {}
        assert calculate_real_returns(None, 2) == {}


class TestInflationProtection:

    def test_empty_plan_scores_zero(self):
        assert calculate_inflation_protection(PlannerInputs()) == 0

    def test_all_cash_scores_zero(self):
        assert calculate_inflation_protection(PlannerInputs(current_cash=100_000)) == 0

    def test_real_estate_is_highly_protected(self):
        assert calculate_inflation_protection(PlannerInputs(current_real_estate=1_000_000)) == 90

    def test_cash_dilutes_protection(self):
        inputs = PlannerInputs(current_savings=100_000, current_cash=100_000)
        assert calculate_inflation_protection(inputs) == 35

    def test_score_in_range(self):
        inputs = PlannerInputs(current_savings=1, current_crypto=1e9, current_personal_portfolio=5e5)
        assert 0 <= calculate_inflation_protection(inputs) <= 100


class TestInflationImpact:

    def test_projection_tables(self):
        inputs = PlannerInputs(current_age=30, retirement_age=67, current_cash=10_000, current_savings=1_000)
        analysis = analyze_inflation_impact(inputs, 25)
        assert len(analysis['purchasingPower']['moderate']) == 25
        assert set(analysis['inflationProjections']['pensionReturn']) == {
            'optimistic', 'moderate', 'pessimistic', 'historical'}

    def test_erosion_table_capped(self):
        analysis = analyze_inflation_impact(PlannerInputs(), 60)
        assert len(analysis['purchasingPower']['moderate']) == 40

    def test_recommendations(self):
        inputs = PlannerInputs(current_age=30, retirement_age=67, current_cash=10_000, current_savings=1_000)
        types = [r['type'] for r in analyze_inflation_impact(inputs, 25)['recommendations']]
        assert 'low_protection' in types
        assert 'long_term' in types

    def test_hebrew_recommendations(self):
        inputs = PlannerInputs(current_age=60, retirement_age=65, current_cash=10_000)
        recs = analyze_inflation_impact(inputs, 5, language='he')['recommendations']
        assert recs
        assert all(r['title'] and not r['title'].isascii() for r in recs)


class TestRetirementInflationAnalysis:

    def test_zero_income_ratio(self):
        result = calculate_inflation_analysis(PlannerInputs(), 0, {})
        assert result['realVsNominalRatio'] == 0
        assert result['purchasingPowerErosion'] == 0

    def test_real_values_discounted(self):
        result = calculate_inflation_analysis(PlannerInputs(inflation_rate=2), 10, {
            'total_pension_savings': 1_000_000,
            'total_net_income': 10_000,
        })
        assert result['realValues']['totalSavings'] == pytest.approx(1_000_000 / 1.02 ** 10)
        assert result['realVsNominalRatio'] == pytest.approx(1 / 1.02 ** 10)
        assert result['nominalReturns']['pensionReturn'] == 7.0
