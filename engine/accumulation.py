# engine/accumulation.py
"""
Accumulation phase: grows every savings vehicle from today to retirement
and hands the balances to the retirement income calculator.
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from models import (
    CountryRules,
    IncomeParams,
    IndexAllocation,
    PartnerResults,
    Person,
    PlannerInputs,
    WorkPeriod,
)
from utils.numeric import parse_or_zero, safe_money
from config.country_data import get_country_rules
from config.market_assumptions import (
    HISTORICAL_RETURNS,
    RISK_SCENARIOS,
    DEFAULT_PENSION_ALLOCATION,
    DEFAULT_TRAINING_FUND_ALLOCATION,
    DEFAULT_PORTFOLIO_TAX_RATE,
    DEFAULT_EMPLOYEE_PENSION_RATE,
    DEFAULT_EMPLOYER_PENSION_RATE,
    DEFAULT_TRAINING_FUND_RATE,
    PROGRESSIVE_DEFAULT_RETURNS,
    PROGRESSIVE_BALANCE_CAPS,
    analysis_inflation_rate,
)
from engine.income_calculator import RetirementIncome

logger = logging.getLogger(__name__)

IncomeCalculator = Callable[[IncomeParams], Dict[str, Any]]


# --- 1. Return helpers ---

def get_adjusted_return(base_return: Any, risk_tolerance: Optional[str] = 'moderate') -> float:
    """Scales a return by the risk scenario multiplier (1.0 for unknown levels)."""
    multiplier = RISK_SCENARIOS.get(risk_tolerance or 'moderate', {}).get('multiplier', 1.0)
    return parse_or_zero(base_return) * multiplier


def _closest_horizon(time_horizon: float, horizons: Sequence[int]) -> int:
    return min(horizons, key=lambda h: (abs(h - time_horizon), h))


def calculate_weighted_return(
    allocations: Optional[Sequence[IndexAllocation]],
    time_horizon: float = 20,
    historical_returns: Optional[Mapping[int, Mapping[str, float]]] = None,
) -> float:
    """
    Allocation-weighted return of an investment track, in percent.

    Args:
        allocations: Index slices; a custom return wins over the historical table.
        time_horizon: Years invested; the closest tabulated horizon is used.
        historical_returns: {horizon: {index: return}}; defaults to HISTORICAL_RETURNS.

    Returns:
        Weighted return normalized by the total weight; 0 for an empty track.
    """
    if not allocations:
        return 0.0
    table = historical_returns if historical_returns else HISTORICAL_RETURNS
    horizon_returns = table[_closest_horizon(time_horizon, list(table.keys()))]

    total_weight = 0.0
    weighted = 0.0
    for allocation in allocations:
        weight = allocation.percentage / 100
        if weight <= 0:
            continue
        total_weight += weight

        if allocation.custom_return is not None:
            index_return = allocation.custom_return
        elif allocation.historical_return is not None:
            index_return = allocation.historical_return
        elif allocation.index in horizon_returns:
            index_return = horizon_returns[allocation.index]
        else:
            logger.warning(f"No historical return for index '{allocation.index}', counting it as 0%")
            index_return = 0.0
        weighted += weight * index_return

    if total_weight > 0:
        weighted /= total_weight
    return weighted


def future_value(present: float, monthly_contribution: float, monthly_rate: float, months: float) -> float:
    """Balance after `months` of monthly compounding with end-of-month contributions."""
    if months <= 0:
        return present
    if monthly_rate == 0:
        return present + monthly_contribution * months
    growth = max(1 + monthly_rate, 0.0) ** months
    return present * growth + monthly_contribution * (growth - 1) / monthly_rate


def _overlap_years(period: WorkPeriod, current_age: float, retirement_age: float) -> float:
    return max(0.0, min(period.end_age, retirement_age) - max(period.start_age, current_age))


def _training_fund_monthly(period: WorkPeriod, rules: Optional[CountryRules], override: float) -> float:
    """Explicit contribution first, then the period's own figure, then salary (capped) * rate."""
    if override > 0:
        return override
    if period.monthly_training_fund > 0:
        return period.monthly_training_fund
    if period.training_fund_contribution_rate > 0:
        ceiling = rules.training_fund_ceiling if rules is not None else None
        salary = min(period.salary, ceiling) if ceiling else period.salary
        return salary * period.training_fund_contribution_rate / 100
    return 0.0


# --- 2. Partner accumulation ---

def _accumulate_partner(
    inputs: PlannerInputs,
    partner: Person,
    partner_work_periods: List[WorkPeriod],
    pension_allocation: Sequence[IndexAllocation],
    training_fund_allocation: Sequence[IndexAllocation],
    historical_returns: Mapping,
    country_data: Optional[Mapping[str, CountryRules]],
) -> Optional[PartnerResults]:
    years = partner.years_to_retirement
    if years <= 0:
        return None

    risk = inputs.risk_tolerance
    periods = sorted(partner_work_periods, key=lambda p: p.start_age)

    pension = partner.current_savings
    period_results = []
    for period in periods:
        period_years = _overlap_years(period, partner.current_age, partner.retirement_age)
        if period_years <= 0:
            continue
        period_return = get_adjusted_return(
            calculate_weighted_return(pension_allocation, period_years, historical_returns), risk)
        months = period_years * 12
        new_total = future_value(pension, period.monthly_contribution, period_return / 100 / 12, months)
        period_results.append({
            'country': period.country,
            'years': period_years,
            'growth': new_total - pension,
            'contributions': period.monthly_contribution * months,
        })
        pension = new_total

    tf_return = get_adjusted_return(
        calculate_weighted_return(training_fund_allocation, years, historical_returns), risk)
    tf_monthly_rate = tf_return / 100 / 12
    training_fund = future_value(partner.current_training_fund, 0, tf_monthly_rate, years * 12)
    for period in periods:
        period_years = _overlap_years(period, partner.current_age, partner.retirement_age)
        if period_years <= 0:
            continue
        rules = get_country_rules(period.country, country_data)
        monthly = _training_fund_monthly(period, rules, partner.monthly_training_fund_contribution)
        training_fund += future_value(0, monthly, tf_monthly_rate, period_years * 12)

    # Grows gross; capital gains tax comes off at withdrawal
    portfolio_return = get_adjusted_return(partner.personal_portfolio_return, risk)
    portfolio = future_value(partner.current_personal_portfolio,
                             partner.personal_portfolio_monthly, portfolio_return / 100 / 12, years * 12)

    return PartnerResults(
        total_pension_savings=pension,
        total_training_fund=training_fund,
        total_personal_portfolio=portfolio,
        years_to_retirement=years,
        period_results=period_results,
    )


# --- 3. Orchestrator ---

def calculate_retirement(
    inputs: PlannerInputs,
    work_periods: Optional[List[WorkPeriod]] = None,
    pension_index_allocation: Optional[List[IndexAllocation]] = None,
    training_fund_index_allocation: Optional[List[IndexAllocation]] = None,
    historical_returns: Optional[Mapping[int, Mapping[str, float]]] = None,
    monthly_training_fund_contribution: Optional[float] = None,
    partner_work_periods: Optional[List[WorkPeriod]] = None,
    country_data: Optional[Mapping[str, CountryRules]] = None,
    income_calculator: Optional[IncomeCalculator] = None,
) -> Optional[Dict[str, Any]]:
    """
    Projects every vehicle to retirement and computes the retirement income.

    Args:
        inputs: Planner inputs (see utils.input_adapter.get_planner_inputs).
        work_periods: Career intervals of the primary planner.
        pension_index_allocation / training_fund_index_allocation: Investment tracks;
            empty tracks fall back to the default mixed / conservative tracks.
        historical_returns: Index returns by horizon.
        monthly_training_fund_contribution: Overrides the per-period training fund amount.
        partner_work_periods: Career intervals of the partner (couple mode).
        country_data: Country rules table; defaults to config.country_data.COUNTRY_DATA.
        income_calculator: Callable turning IncomeParams into the result record.

    Returns:
        The calculation result, or None when retirement age is not after current age.
    """
    years_to_retirement = inputs.years_to_retirement
    if years_to_retirement <= 0:
        logger.debug(f"No accumulation: retirement age {inputs.retirement_age} <= current age {inputs.current_age}")
        return None

    work_periods = list(work_periods or [])
    historical_returns = historical_returns or HISTORICAL_RETURNS
    pension_allocation = pension_index_allocation or DEFAULT_PENSION_ALLOCATION
    training_fund_allocation = training_fund_index_allocation or DEFAULT_TRAINING_FUND_ALLOCATION
    risk = inputs.risk_tolerance

    base_pension_return = calculate_weighted_return(pension_allocation, years_to_retirement, historical_returns)
    base_tf_return = calculate_weighted_return(training_fund_allocation, years_to_retirement, historical_returns)
    effective_pension_return = inputs.pension_return if inputs.pension_return is not None else base_pension_return
    effective_tf_return = inputs.training_fund_return if inputs.training_fund_return is not None else base_tf_return

    pension_weighted_return = get_adjusted_return(effective_pension_return, risk)
    training_fund_weighted_return = get_adjusted_return(effective_tf_return, risk)

    # Pension, period by period
    total_pension = inputs.current_savings
    period_results = []
    sorted_periods = sorted(work_periods, key=lambda p: p.start_age)
    period_rules = {}

    for period in sorted_periods:
        rules = get_country_rules(period.country, country_data, default=False)
        if rules is None:
            logger.warning(f"Skipping work period {period.start_age}-{period.end_age}: "
                           f"unknown country '{period.country}'")
            continue
        period_rules[id(period)] = rules

        period_years = _overlap_years(period, inputs.current_age, inputs.retirement_age)
        if period_years <= 0:
            continue

        base = period.pension_return if period.pension_return is not None else effective_pension_return
        adjusted = get_adjusted_return(base, risk)
        effective = adjusted - period.pension_annual_fee
        months = period_years * 12
        net_contribution = period.monthly_contribution * (1 - period.pension_deposit_fee / 100)
        new_total = future_value(total_pension, net_contribution, effective / 100 / 12, months)

        period_results.append({
            'country': period.country,
            'countryName': rules.name,
            'flag': rules.flag,
            'years': period_years,
            'contributions': period.monthly_contribution * months,
            'netContributions': net_contribution * months,
            'growth': new_total - total_pension,
            'pensionReturn': adjusted,
            'pensionDepositFee': period.pension_deposit_fee,
            'pensionAnnualFee': period.pension_annual_fee,
            'pensionEffectiveReturn': effective,
            'monthlyTrainingFund': period.monthly_training_fund,
        })
        total_pension = new_total

    months_to_retirement = years_to_retirement * 12
    if not period_results:
        # No career history: the planner's own contribution runs over the whole horizon
        total_pension = future_value(inputs.current_savings, inputs.monthly_pension_contribution,
                                     pension_weighted_return / 100 / 12, months_to_retirement)

    # Training fund
    training_fund_net_return = training_fund_weighted_return - inputs.training_fund_management_fee
    tf_monthly_rate = training_fund_net_return / 100 / 12
    total_training_fund = (inputs.current_training_fund
                           * max(1 + training_fund_net_return / 100, 0.0) ** years_to_retirement)

    tf_override = parse_or_zero(monthly_training_fund_contribution) or inputs.monthly_training_fund_contribution
    contributing = [p for p in sorted_periods if id(p) in period_rules]
    if contributing:
        for period in contributing:
            period_years = _overlap_years(period, inputs.current_age, inputs.retirement_age)
            if period_years > 0:
                monthly = _training_fund_monthly(period, period_rules[id(period)], tf_override)
                total_training_fund += future_value(0, monthly, tf_monthly_rate, period_years * 12)
    else:
        total_training_fund += future_value(0, tf_override, tf_monthly_rate, months_to_retirement)

    # Personal portfolio, crypto and real estate grow over the whole horizon
    def grow(balance: float, monthly: float, annual_return: float) -> float:
        return future_value(balance, monthly, get_adjusted_return(annual_return, risk) / 100 / 12,
                            months_to_retirement)

    total_personal_portfolio = grow(inputs.current_personal_portfolio, inputs.personal_portfolio_monthly,
                                    inputs.personal_portfolio_return)
    total_crypto = grow(inputs.current_crypto, inputs.crypto_monthly, inputs.crypto_return)
    total_real_estate = grow(inputs.current_real_estate, inputs.real_estate_monthly, inputs.real_estate_return)
    real_estate_rental_income = total_real_estate * inputs.real_estate_rental_yield / 100 / 12

    partner_results = None
    if inputs.is_couple and partner_work_periods:
        partner = inputs.household.partner2
        partner_results = _accumulate_partner(inputs, partner, list(partner_work_periods), pension_allocation,
                                              training_fund_allocation, historical_returns, country_data)

    logger.debug(f"Accumulated over {years_to_retirement} years: pension={total_pension:.0f}, "
                 f"training_fund={total_training_fund:.0f}, portfolio={total_personal_portfolio:.0f}")

    params = IncomeParams(
        inputs=inputs,
        years_to_retirement=years_to_retirement,
        total_pension_savings=total_pension,
        total_training_fund=total_training_fund,
        total_personal_portfolio=total_personal_portfolio,
        total_crypto=total_crypto,
        total_real_estate=total_real_estate,
        real_estate_rental_income=real_estate_rental_income,
        period_results=period_results,
        sorted_periods=sorted_periods,
        work_periods=work_periods,
        partner_results=partner_results,
        pension_weighted_return=pension_weighted_return,
        training_fund_weighted_return=training_fund_weighted_return,
        training_fund_net_return=training_fund_net_return,
        combined_income=inputs.combined_income,
    )

    if income_calculator is None:
        income_calculator = RetirementIncome(country_data=country_data).calculate_retirement_income
    return income_calculator(params)


# --- 4. Year-by-year projection ---

_PROJECTION_COLUMNS = {
    'primary': ['age', 'nominal', 'real', 'pensionSavings', 'trainingFund', 'personalPortfolio',
                'yearlyContributions'],
    'partner': ['age', 'nominal', 'real', 'pensionSavings', 'trainingFund', 'personalPortfolio',
                'yearlyContributions'],
    'combined': ['age', 'nominal', 'real', 'primaryTotal', 'partnerTotal', 'totalYearlyContributions'],
}


def _empty_projections() -> Dict[str, pd.DataFrame]:
    return {key: pd.DataFrame(columns=cols) for key, cols in _PROJECTION_COLUMNS.items()}


def _step_year(balance: float, monthly_contribution: float, annual_rate: float, cap: float) -> float:
    for _ in range(12):
        balance = min(balance * (1 + annual_rate / 12) + monthly_contribution, cap)
    return balance


def calculate_progressive_savings(inputs: PlannerInputs) -> Dict[str, pd.DataFrame]:
    """
    Year-by-year balance projection for charts.

    Returns:
        {'primary', 'partner', 'combined'} DataFrames, one row per age from the
        current age to the retirement age, nominal and inflation-adjusted.
    """
    if not inputs.current_age or not inputs.retirement_age:
        logger.warning("calculate_progressive_savings: current and retirement age are required")
        return _empty_projections()

    inflation = (inputs.inflation_rate or analysis_inflation_rate) / 100
    pension_rate = (inputs.pension_return or PROGRESSIVE_DEFAULT_RETURNS['pension']) / 100
    tf_rate = (inputs.training_fund_return or PROGRESSIVE_DEFAULT_RETURNS['training_fund']) / 100
    portfolio_rate = (inputs.personal_portfolio_return or PROGRESSIVE_DEFAULT_RETURNS['personal_portfolio']) / 100

    couple = inputs.is_couple
    household = inputs.household

    primary_contrib = {
        'pension': inputs.monthly_pension_contribution,
        'training_fund': inputs.monthly_training_fund_contribution,
        'personal_portfolio': inputs.personal_portfolio_monthly,
    }
    if couple and household.partner1.personal_portfolio_tax_rate is not None:
        primary_tax = household.partner1.personal_portfolio_tax_rate
    elif inputs.portfolio_tax_rate is not None:
        primary_tax = inputs.portfolio_tax_rate
    else:
        primary_tax = DEFAULT_PORTFOLIO_TAX_RATE
    primary = {
        'pension': inputs.current_savings,
        'training_fund': inputs.current_training_fund,
        'personal_portfolio': inputs.current_personal_portfolio * (1 - primary_tax / 100),
    }

    partner = {'pension': 0.0, 'training_fund': 0.0, 'personal_portfolio': 0.0}
    partner_contrib = dict(partner)
    if couple:
        p2 = household.partner2
        p2_tax = p2.personal_portfolio_tax_rate if p2.personal_portfolio_tax_rate is not None \
            else DEFAULT_PORTFOLIO_TAX_RATE
        partner = {
            'pension': p2.current_savings,
            'training_fund': p2.current_training_fund,
            'personal_portfolio': p2.current_personal_portfolio * (1 - p2_tax / 100),
        }
        if p2.current_monthly_salary > 0:
            partner_contrib['pension'] = p2.monthly_pension_contribution or (
                p2.current_monthly_salary * (DEFAULT_EMPLOYEE_PENSION_RATE + DEFAULT_EMPLOYER_PENSION_RATE) / 100)
            partner_contrib['training_fund'] = p2.monthly_training_fund_contribution or (
                p2.current_monthly_salary * DEFAULT_TRAINING_FUND_RATE / 100)
        partner_contrib['personal_portfolio'] = p2.personal_portfolio_monthly

    rates = {'pension': pension_rate, 'training_fund': tf_rate, 'personal_portfolio': portfolio_rate}
    primary_yearly = sum(primary_contrib.values()) * 12
    partner_yearly = sum(partner_contrib.values()) * 12

    rows = {'primary': [], 'partner': [], 'combined': []}
    start_age = int(inputs.current_age)
    for age in range(start_age, int(inputs.retirement_age) + 1):
        years_from_start = age - start_age
        if years_from_start > 0:
            for vehicle, rate in rates.items():
                cap = PROGRESSIVE_BALANCE_CAPS[vehicle]
                primary[vehicle] = _step_year(primary[vehicle], primary_contrib[vehicle], rate, cap)
                if couple:
                    partner[vehicle] = _step_year(partner[vehicle], partner_contrib[vehicle], rate, cap)

        primary_total = sum(primary.values())
        partner_total = sum(partner.values())
        combined_total = primary_total + partner_total
        deflator = (1 + inflation) ** years_from_start

        rows['primary'].append({
            'age': age,
            'nominal': safe_money(primary_total),
            'real': safe_money(primary_total / deflator),
            'pensionSavings': safe_money(primary['pension']),
            'trainingFund': safe_money(primary['training_fund']),
            'personalPortfolio': safe_money(primary['personal_portfolio']),
            'yearlyContributions': safe_money(primary_yearly),
        })
        rows['partner'].append({
            'age': age,
            'nominal': safe_money(partner_total),
            'real': safe_money(partner_total / deflator),
            'pensionSavings': safe_money(partner['pension']),
            'trainingFund': safe_money(partner['training_fund']),
            'personalPortfolio': safe_money(partner['personal_portfolio']),
            'yearlyContributions': safe_money(partner_yearly),
        })
        rows['combined'].append({
            'age': age,
            'nominal': safe_money(combined_total),
            'real': safe_money(combined_total / deflator),
            'primaryTotal': safe_money(primary_total),
            'partnerTotal': safe_money(partner_total),
            'totalYearlyContributions': safe_money(primary_yearly + partner_yearly),
        })

    return {key: pd.DataFrame(data, columns=_PROJECTION_COLUMNS[key]) for key, data in rows.items()}
