"""
Tests for the accumulation phase and the year-by-year projection.
"""

import math

import pytest

from models import IndexAllocation, Person, PlannerInputs, WorkPeriod
from config.market_assumptions import (
    DEFAULT_EMPLOYEE_PENSION_RATE,
    DEFAULT_EMPLOYER_PENSION_RATE,
    DEFAULT_TRAINING_FUND_RATE,
)
from engine.accumulation import (
    calculate_progressive_savings,
    calculate_retirement,
    calculate_weighted_return,
    future_value,
    get_adjusted_return,
)
from utils.input_adapter import get_planner_inputs


def _numbers(value):
    if isinstance(value, dict):
        for item in value.values():
            yield from _numbers(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _numbers(item)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        yield value


@pytest.fixture
def young_professional():
    return get_planner_inputs({
        'currentAge': 30,
        'retirementAge': 67,
        'currentMonthlySalary': 20_000,
        'currentSavings': 100_000,
        'monthlyPensionContribution': 3_700,
        'trainingFund': 50_000,
        'monthlyTrainingFundContribution': 1_500,
        'targetReplacement': 70,
        'riskTolerance': 'moderate',
    })


class TestReturnHelpers:

    def test_weighted_return(self):
        allocations = [IndexAllocation(index='S&P 500', percentage=60),
                       IndexAllocation(index='Government Bonds', percentage=40)]
        assert calculate_weighted_return(allocations, 20) == pytest.approx(0.6 * 10.0 + 0.4 * 4.8)

    def test_custom_return_wins(self):
        allocations = [IndexAllocation(index='S&P 500', percentage=100, custom_return=3)]
        assert calculate_weighted_return(allocations, 20) == pytest.approx(3)

    def test_weights_are_normalized(self):
        allocations = [IndexAllocation(index='S&P 500', percentage=30, custom_return=8)]
        assert calculate_weighted_return(allocations, 20) == pytest.approx(8)

    def test_empty_track(self):
        assert calculate_weighted_return([], 20) == 0
        assert calculate_weighted_return(None) == 0

    def test_unknown_index_counts_as_zero(self, caplog):
        with caplog.at_level('WARNING'):
            assert calculate_weighted_return([IndexAllocation(index='Moon Fund', percentage=100)], 20) == 0
        assert 'Moon Fund' in caplog.text

    @pytest.mark.parametrize("risk, expected", [('conservative', 8.5), ('moderate', 10), ('unknown', 10), (None, 10)])
    def test_adjusted_return(self, risk, expected):
        assert get_adjusted_return(10, risk) == pytest.approx(expected)

    def test_future_value_zero_rate(self):
        assert future_value(1_000, 100, 0, 12) == 2_200

    def test_future_value_no_time(self):
        assert future_value(1_000, 100, 0.01, 0) == 1_000

    def test_future_value_compounds(self):
        assert future_value(1_000, 0, 0.01, 12) == pytest.approx(1_000 * 1.01 ** 12)


class TestCalculateRetirement:

    def test_young_professional(self, young_professional):
        result = calculate_retirement(young_professional)
        assert result['totalSavings'] > 100_000
        assert result['trainingFundValue'] > 50_000
        assert result['monthlyIncome'] > 0
        assert math.isfinite(result['monthlyIncome'])
        assert result['targetMonthlyIncome'] == 14_000

    def test_zero_scenario_has_no_nan(self):
        result = calculate_retirement(PlannerInputs(current_age=30, retirement_age=67))
        assert result['totalSavings'] == 0
        assert result['monthlyIncome'] == 0
        for value in _numbers(result):
            assert not math.isnan(value)

    @pytest.mark.parametrize("retirement_age", [30, 25])
    def test_no_accumulation_horizon(self, retirement_age):
        assert calculate_retirement(PlannerInputs(current_age=30, retirement_age=retirement_age)) is None

    def test_period_contributions(self):
        inputs = PlannerInputs(current_age=30, retirement_age=67)
        periods = [WorkPeriod(country='israel', start_age=30, end_age=67, monthly_contribution=3_000,
                              pension_return=0)]
        result = calculate_retirement(inputs, work_periods=periods)
        assert result['totalSavings'] == 3_000 * 37 * 12
        assert result['periodResults'][0]['countryName'] == 'Israel'

    def test_deposit_fee(self):
        inputs = PlannerInputs(current_age=30, retirement_age=67)
        periods = [WorkPeriod(country='israel', start_age=30, end_age=67, monthly_contribution=3_000,
                              pension_return=0, pension_deposit_fee=10)]
        result = calculate_retirement(inputs, work_periods=periods)
        assert result['totalSavings'] == 2_700 * 37 * 12

    def test_period_outside_horizon(self):
        inputs = PlannerInputs(current_age=50, retirement_age=67, current_savings=1_000)
        periods = [WorkPeriod(country='israel', start_age=20, end_age=40, monthly_contribution=3_000)]
        result = calculate_retirement(inputs, work_periods=periods, pension_index_allocation=[
            IndexAllocation(index='x', percentage=100, custom_return=0)])
        assert result['totalSavings'] == 1_000

    def test_unknown_country_period_skipped(self, caplog):
        inputs = PlannerInputs(current_age=30, retirement_age=67)
        periods = [WorkPeriod(country='atlantis', start_age=30, end_age=67, salary=10_000,
                              pension_contribution_rate=10)]
        with caplog.at_level('WARNING'):
            result = calculate_retirement(inputs, work_periods=periods)
        assert "unknown country 'atlantis'" in caplog.text
        assert result['periodResults'] == []
        assert result['socialSecurity'] == 0

    def test_training_fund_salary_ceiling(self):
        inputs = PlannerInputs(current_age=30, retirement_age=67, training_fund_return=0)
        periods = [WorkPeriod(country='israel', start_age=30, end_age=67, salary=30_000,
                              training_fund_contribution_rate=10)]
        result = calculate_retirement(inputs, work_periods=periods)
        assert result['trainingFundValue'] == round(15_792 * 0.10 * 37 * 12)

    def test_injected_income_calculator(self, young_professional):
        captured = {}

        def calculator(params):
            captured['params'] = params
            return {'ok': True}

        assert calculate_retirement(young_professional, income_calculator=calculator) == {'ok': True}
        assert captured['params'].years_to_retirement == 37

    def test_partner_accumulation(self):
        inputs = PlannerInputs(
            current_age=30, retirement_age=67, planning_type='couple',
            partner2=Person(current_age=40, retirement_age=67, current_savings=100_000),
        )
        partner_periods = [WorkPeriod(country='israel', start_age=40, end_age=67, monthly_contribution=2_000)]
        result = calculate_retirement(inputs, partner_work_periods=partner_periods)
        assert result['partnerResults']['totalPensionSavings'] > 100_000
        assert result['partnerResults']['yearsToRetirement'] == 27
        assert result['partnerNetIncome'] > 0

    def test_partner_portfolio_taxed_once(self):
        inputs = PlannerInputs(
            current_age=30, retirement_age=67, planning_type='couple',
            partner2=Person(current_age=66, retirement_age=67, current_personal_portfolio=1_200_000,
                            personal_portfolio_tax_rate=25),
        )
        partner_periods = [WorkPeriod(country='israel', start_age=66, end_age=67)]
        result = calculate_retirement(inputs, partner_work_periods=partner_periods)
        assert result['partnerResults']['totalPersonalPortfolio'] == 1_200_000
        # 4,000 gross withdrawal taxed at 25% plus the Israeli benefit
        assert result['partnerNetIncome'] == 3_000 + 2_500

    def test_non_mapping_expenses_ignored(self):
        inputs = get_planner_inputs({'currentAge': 30, 'retirementAge': 67, 'currentMonthlyExpenses': 8_000,
                                     'expenses': 'n/a'})
        result = calculate_retirement(inputs)
        assert result['expenseBreakdown'] is None
        assert result['futureMonthlyExpenses'] > 8_000

    def test_partner_without_periods(self):
        inputs = PlannerInputs(current_age=30, retirement_age=67, planning_type='couple')
        assert calculate_retirement(inputs)['partnerResults'] is None


class TestProgressiveSavings:

    def test_individual_projection(self):
        inputs = PlannerInputs(current_age=30, retirement_age=35, current_savings=100_000,
                               monthly_pension_contribution=1_000, current_personal_portfolio=100_000)
        projections = calculate_progressive_savings(inputs)
        primary = projections['primary']
        assert list(primary['age']) == [30, 31, 32, 33, 34, 35]
        assert primary['nominal'].is_monotonic_increasing
        assert (primary['real'] <= primary['nominal']).all()
        assert primary.loc[0, 'personalPortfolio'] == 75_000
        assert (projections['partner']['nominal'] == 0).all()
        assert (projections['combined']['nominal'] == primary['nominal']).all()

    def test_couple_projection(self):
        inputs = PlannerInputs(current_age=40, retirement_age=45, planning_type='couple',
                               partner2=Person(current_monthly_salary=10_000))
        partner = calculate_progressive_savings(inputs)['partner']
        assert partner.loc[0, 'nominal'] == 0
        assert partner['nominal'].iloc[-1] > 0
        rate = DEFAULT_EMPLOYEE_PENSION_RATE + DEFAULT_EMPLOYER_PENSION_RATE + DEFAULT_TRAINING_FUND_RATE
        assert partner.loc[0, 'yearlyContributions'] == round(10_000 * rate / 100 * 12)

    def test_missing_ages(self, caplog):
        with caplog.at_level('WARNING'):
            projections = calculate_progressive_savings(PlannerInputs(current_age=30))
        assert 'required' in caplog.text
        assert set(projections) == {'primary', 'partner', 'combined'}
        assert all(frame.empty for frame in projections.values())
        assert 'nominal' in projections['combined'].columns
