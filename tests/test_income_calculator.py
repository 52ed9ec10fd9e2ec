"""
Tests for the retirement income calculator.
"""

import math

import pytest

from models import CountryRules, IncomeParams, PartnerResults, Person, PlannerInputs, WorkPeriod
from engine.income_calculator import (
    RetirementIncome,
    calculate_readiness_score,
    calculate_retirement_income,
    goal_status,
)

MONETARY_KEYS = [
    'totalSavings', 'trainingFundValue', 'personalPortfolioValue', 'currentCrypto', 'currentRealEstate',
    'monthlyPension', 'pensionTax', 'netPension', 'socialSecurity', 'individualNetIncome',
    'partnerNetIncome', 'additionalIncomeTotal', 'totalNetIncome', 'futureMonthlyExpenses',
    'targetMonthlyIncome', 'targetGap',
]


def _walk(value):
    if isinstance(value, dict):
        for item in value.values():
            yield from _walk(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _walk(item)
    else:
        yield value


@pytest.fixture
def usa_params():
    """3M pension, one US work period at 20k/month, 70% replacement target."""
    period = WorkPeriod(country='usa', start_age=30, end_age=67, salary=20_000)
    return IncomeParams(
        inputs=PlannerInputs(current_age=30, retirement_age=67, target_replacement=70),
        years_to_retirement=37,
        total_pension_savings=3_000_000,
        period_results=[{'country': 'usa', 'growth': 1_000_000}],
        sorted_periods=[period],
        work_periods=[period],
    )


class TestReadiness:

    @pytest.mark.parametrize("income, target, score", [
        (12_000, 10_000, 100),
        (10_000, 10_000, 90),
        (8_000, 10_000, 70),
        (6_000, 10_000, 50),
        (4_000, 10_000, 30),
        (1_000, 10_000, 20),
        (1_000, 0, 50),
    ])
    def test_lookup(self, income, target, score):
        assert calculate_readiness_score(income, target) == score

    @pytest.mark.parametrize("score, status", [(100, 'on_track'), (90, 'on_track'), (70, 'needs_attention'),
                                               (50, 'needs_attention'), (30, 'at_risk')])
    def test_goal_status(self, score, status):
        assert goal_status(score) == status


class TestAllUndefined:
    """A plan with nothing filled in still yields a complete record."""

    @pytest.fixture
    def result(self):
        return calculate_retirement_income(IncomeParams(inputs=PlannerInputs()))

    def test_money_fields_are_zero(self, result):
        for key in MONETARY_KEYS:
            assert result[key] == 0, key

    def test_no_nan_anywhere(self, result):
        for value in _walk(result):
            if isinstance(value, float):
                assert not math.isnan(value)

    def test_defaults(self, result):
        assert result['weightedTaxRate'] == 25
        assert result['riskMultiplier'] == 1.0
        assert result['yearlyExpenseAdjustment'] == 2.5
        assert result['readinessScore'] == 50
        assert result['goalsAnalysis']['status'] == 'needs_attention'
        assert result['partnerResults'] is None
        assert result['isJointPlanning'] is False


class TestIncomeSources:

    def test_pension_taxed_at_period_country_rate(self, usa_params):
        result = calculate_retirement_income(usa_params)
        assert result['monthlyPension'] == 10_000
        assert result['pensionTax'] == 1_200
        assert result['netPension'] == 8_800
        assert result['weightedTaxRate'] == 12

    def test_social_security_from_last_period(self, usa_params):
        result = calculate_retirement_income(usa_params)
        assert result['socialSecurity'] == 1_800
        assert result['lastCountry']['name'] == 'USA'

    def test_years_to_retirement_reported(self, usa_params):
        assert calculate_retirement_income(usa_params)['yearsToRetirement'] == 37

    def test_target_and_readiness(self, usa_params):
        result = calculate_retirement_income(usa_params)
        assert result['targetMonthlyIncome'] == 14_000
        assert result['totalNetIncome'] == 10_600
        assert result['achievesTarget'] is False
        assert result['readinessScore'] == 50
        assert result['goalsAnalysis']['gap'] == 3_400

    def test_retirement_income_summary(self, usa_params):
        summary = calculate_retirement_income(usa_params)['retirementIncome']
        assert summary['pension'] == {'monthly': 8_800, 'annual': 105_600, 'tax': 1_200}
        assert summary['total']['monthly'] == 10_600

    def test_portfolio_default_tax(self):
        params = IncomeParams(inputs=PlannerInputs(), total_personal_portfolio=1_200_000)
        result = calculate_retirement_income(params)
        assert result['monthlyPersonalPortfolioIncome'] == 4_000
        assert result['personalPortfolioTax'] == 1_000

    def test_explicit_zero_portfolio_tax(self):
        params = IncomeParams(inputs=PlannerInputs(portfolio_tax_rate=0), total_personal_portfolio=1_200_000)
        assert calculate_retirement_income(params)['personalPortfolioTax'] == 0

    def test_expenses_grow_to_retirement(self):
        inputs = PlannerInputs(current_monthly_expenses=10_000, inflation_rate=2)
        result = calculate_retirement_income(IncomeParams(inputs=inputs, years_to_retirement=10))
        assert result['futureMonthlyExpenses'] == round(10_000 * 1.02 ** 10)
        assert result['remainingAfterExpenses'] == -result['futureMonthlyExpenses']


class TestPartner:

    def test_partner_income_mirrored(self):
        inputs = PlannerInputs(planning_type='couple', partner2=Person(current_age=40, retirement_age=67))
        params = IncomeParams(inputs=inputs, partner_results=PartnerResults(total_pension_savings=1_200_000))
        result = calculate_retirement_income(params)
        # 4,000 gross pension at the 25% fallback rate plus the Israeli benefit
        assert result['partnerNetIncome'] == 3_000 + 2_500
        assert result['partnerSocialSecurity'] == 2_500
        assert result['partnerResults']['totalPensionSavings'] == 1_200_000
        assert result['isJointPlanning'] is True

    def test_partner_portfolio_uses_household_rate(self):
        inputs = PlannerInputs(planning_type='couple', portfolio_tax_rate=10, partner2=Person(current_age=40))
        params = IncomeParams(inputs=inputs, partner_results=PartnerResults(total_personal_portfolio=1_200_000))
        assert calculate_retirement_income(params)['partnerNetIncome'] == 3_600 + 2_500

    def test_partner_portfolio_own_rate_wins(self):
        inputs = PlannerInputs(planning_type='couple', portfolio_tax_rate=10,
                               partner2=Person(personal_portfolio_tax_rate=0))
        params = IncomeParams(inputs=inputs, partner_results=PartnerResults(total_personal_portfolio=1_200_000))
        assert calculate_retirement_income(params)['partnerNetIncome'] == 4_000 + 2_500


class TestCollaborators:

    def test_failing_analysis_yields_none(self, usa_params, caplog):
        def broken(*args):
            raise RuntimeError("boom")

        baseline = calculate_retirement_income(usa_params)
        with caplog.at_level('WARNING'):
            result = RetirementIncome(inflation_analysis=broken, tax_optimization=broken) \
                .calculate_retirement_income(usa_params)

        assert result['inflationAnalysis'] is None
        assert result['taxOptimization'] is None
        assert 'boom' in caplog.text
        for key in MONETARY_KEYS + ['readinessScore', 'retirementIncome']:
            assert result[key] == baseline[key]

    def test_disabled_analyses(self, usa_params):
        result = calculate_retirement_income(usa_params, inflation_analysis=None, tax_optimization=None)
        assert result['inflationAnalysis'] is None
        assert result['taxOptimization'] is None

    def test_gross_fallback_without_strategy(self):
        params = IncomeParams(inputs=PlannerInputs(annual_bonus=12_000))
        result = RetirementIncome(additional_income=None).calculate_retirement_income(params)
        assert result['annualBonusMonthly'] == 1_000

    def test_custom_country_table(self, usa_params):
        table = {'usa': CountryRules(name='USA', pension_tax=0.5, social_security=0)}
        result = calculate_retirement_income(usa_params, country_data=table)
        assert result['pensionTax'] == 5_000
        assert result['socialSecurity'] == 0

    def test_other_income_apportioned(self):
        inputs = PlannerInputs(rental_income=3_000, dividend_income=1_000)
        result = calculate_retirement_income(IncomeParams(inputs=inputs))
        assert result['additionalRentalIncome'] == 3_000
        assert result['dividendIncome'] == 1_000
        assert result['additionalIncomeTotal'] == 4_000
