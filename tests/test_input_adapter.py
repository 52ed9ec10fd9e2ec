"""
Tests for building planner inputs from UI / stored-plan mappings.
"""

import pytest

from models import Couple, Individual, IndexAllocation, Person, PlannerInputs, WorkPeriod
from utils.input_adapter import (
    camel_to_snake,
    canonical_field,
    ensure_planner_inputs,
    get_index_allocation,
    get_planner_inputs,
    get_work_periods,
)


class TestFieldNames:

    @pytest.mark.parametrize("name, expected", [
        ('currentMonthlySalary', 'current_monthly_salary'),
        ('quarterlyRSU', 'quarterly_rsu'),
        ('rsuUnits', 'rsu_units'),
        ('current_age', 'current_age'),
        ('RSUTaxRate', 'rsu_tax_rate'),
    ])
    def test_camel_to_snake(self, name, expected):
        assert camel_to_snake(name) == expected

    @pytest.mark.parametrize("name, expected", [
        ('salary', 'current_monthly_salary'),
        ('currentSalary', 'current_monthly_salary'),
        ('age', 'current_age'),
        ('pension', 'current_savings'),
        ('bankAccount', 'current_cash'),
        ('portfolioTax', 'portfolio_tax_rate'),
    ])
    def test_aliases(self, name, expected):
        assert canonical_field(name) == expected


class TestPlannerInputs:

    def test_camel_case_mapping(self):
        inputs = get_planner_inputs({
            'currentAge': 35,
            'retirementAge': 67,
            'currentMonthlySalary': '25,000',
            'currentSavings': 'oops',
            'inflationRate': None,
            'unknownField': 1,
        })
        assert inputs.current_age == 35
        assert inputs.current_monthly_salary == 25_000
        assert inputs.current_savings == 0
        assert inputs.inflation_rate is None

    def test_keyword_overrides_win(self):
        inputs = get_planner_inputs({'currentAge': 35}, current_age=40)
        assert inputs.current_age == 40

    def test_empty_mapping(self):
        assert get_planner_inputs() == PlannerInputs()

    @pytest.mark.parametrize("expenses", ['n/a', [1_000, 2_000], 42])
    def test_non_mapping_expenses_dropped(self, expenses):
        assert get_planner_inputs({'expenses': expenses}).expenses is None

    def test_expense_mapping_kept(self):
        assert get_planner_inputs({'expenses': {'food': 2_000}}).expenses == {'food': 2_000}

    def test_individual_has_no_partners(self):
        inputs = get_planner_inputs({'salary': 10_000})
        assert inputs.partner1 is None
        assert inputs.partner2 is None
        assert isinstance(inputs.household, Individual)


class TestPartnerShapes:

    def test_flat_prefixed(self):
        inputs = get_planner_inputs({
            'planningType': 'couple',
            'partner1Salary': 20_000,
            'partner1Age': 40,
            'partner2Salary': 15_000,
            'partner2CurrentSavings': 300_000,
        })
        household = inputs.household
        assert isinstance(household, Couple)
        assert household.partner1.current_monthly_salary == 20_000
        assert household.partner1.current_age == 40
        assert household.partner2.current_savings == 300_000
        assert inputs.combined_income == 35_000

    def test_unprefixed_goes_to_second_partner(self):
        inputs = get_planner_inputs({'planningType': 'couple', 'partnerSalary': 12_000, 'partnerRetirementAge': 65})
        assert inputs.partner2.current_monthly_salary == 12_000
        assert inputs.partner2.retirement_age == 65
        assert inputs.partner1 is None

    def test_nested_records(self):
        inputs = get_planner_inputs({
            'planningType': 'couple',
            'partner1': {'currentMonthlySalary': 18_000},
            'partner': {'currentAge': 38, 'annualBonus': 24_000},
        })
        assert inputs.partner1.current_monthly_salary == 18_000
        assert inputs.partner2.current_age == 38
        assert inputs.partner2.annual_bonus == 24_000

    def test_person_instances_pass_through(self):
        partner = Person(current_monthly_salary=9_000)
        inputs = get_planner_inputs({'planningType': 'couple', 'partner2': partner})
        assert inputs.partner2 is partner

    def test_partner_planning_flag_stays_on_household(self):
        inputs = get_planner_inputs({'partnerPlanningEnabled': True, 'partnerSalary': 8_000})
        assert inputs.partner_planning_enabled is True
        assert inputs.is_couple
        assert inputs.partner2.current_monthly_salary == 8_000

    def test_invalid_partner_numbers(self):
        inputs = get_planner_inputs({'planningType': 'couple', 'partner2Salary': 'n/a'})
        assert inputs.partner2.current_monthly_salary == 0


class TestEnsurePlannerInputs:

    def test_passthrough(self):
        inputs = PlannerInputs(current_age=30)
        assert ensure_planner_inputs(inputs) is inputs

    def test_none(self):
        assert ensure_planner_inputs(None) == PlannerInputs()

    def test_mapping(self):
        assert ensure_planner_inputs({'currentAge': 30}).current_age == 30

    @pytest.mark.parametrize("bad", [[1, 2], 'plan', 42])
    def test_rejects_other_types(self, bad):
        with pytest.raises(TypeError):
            ensure_planner_inputs(bad)


class TestRows:

    def test_work_periods(self):
        periods = get_work_periods([
            {'id': 1, 'country': 'israel', 'startAge': 25, 'endAge': 45, 'salary': 20_000,
             'pensionContributionRate': 18.5},
            None,
            WorkPeriod(country='usa', start_age=45, end_age=67),
        ])
        assert len(periods) == 2
        assert periods[0].salary == 20_000
        assert periods[0].monthly_contribution == pytest.approx(3_700)
        assert periods[1].country == 'usa'

    def test_no_periods(self):
        assert get_work_periods(None) == []

    def test_index_allocation(self):
        allocations = get_index_allocation([{'index': 'S&P 500', 'percentage': '70', 'customReturn': ''}])
        assert allocations == [IndexAllocation(index='S&P 500', percentage=70.0, custom_return=None)]
