"""
Tax calculators for supplemental (additional) income: annual bonus, RSU vesting,
freelance, rental and dividend income.
Bracket tables live in utils.tax_utils; this module turns gross amounts into
monthly after-tax figures, for the household and for each partner separately.
"""
from typing import Dict, Tuple, Any, Optional
import numpy as np
import logging

logger = logging.getLogger(__name__)

from models import Person, PlannerInputs
from utils.numeric import parse_or_zero, safe_money
from utils.tax_utils import (
    resolve_tax_country,
    ISRAEL_BRACKETS_2025,
    ISRAEL_HEALTH_INSURANCE_RATE,
    ISRAEL_NATIONAL_INSURANCE_RATE,
    ISRAEL_NATIONAL_INSURANCE_CEILING,
    UK_PERSONAL_ALLOWANCE,
    UK_ALLOWANCE_TAPER_START,
    UK_BASIC_RATE_LIMIT,
    UK_HIGHER_RATE_LIMIT,
    UK_RATES,
    UK_NI_THRESHOLD,
    UK_NI_UPPER_LIMIT,
    UK_NI_MAIN_RATE,
    UK_NI_UPPER_RATE,
    US_STANDARD_DEDUCTION,
    US_BRACKETS_2024,
    US_SS_RATE,
    US_SS_WAGE_BASE,
    US_MEDICARE_RATE,
    US_ADDITIONAL_MEDICARE_RATE,
    US_ADDITIONAL_MEDICARE_THRESHOLD,
    DEFAULT_SUPPLEMENTAL_TAX_RATE,
    FREQUENCY_MULTIPLIERS,
    MARGINAL_RATE_TABLES,
)

OTHER_INCOME_SOURCES = ('freelance', 'rental', 'dividend')

# --- 1. Internal Helper Functions ---

def _bracket_tax(taxable: float, brackets) -> float:
    """Progressive tax over (low, high, rate) brackets."""
    tax = 0.0
    remaining = taxable
    for low, high, rate in brackets:
        if remaining <= 0:
            break
        bracket_income = min(remaining, high - low) if np.isfinite(high) else remaining
        tax += bracket_income * rate
        remaining -= bracket_income
    return tax


def _israel_tax(income: float) -> Tuple[float, Dict[str, float]]:
    income_tax = _bracket_tax(income, ISRAEL_BRACKETS_2025)
    health = income * ISRAEL_HEALTH_INSURANCE_RATE
    national = min(income, ISRAEL_NATIONAL_INSURANCE_CEILING) * ISRAEL_NATIONAL_INSURANCE_RATE
    breakdown = {'incomeTax': income_tax, 'healthInsurance': health, 'nationalInsurance': national}
    return income_tax + health + national, breakdown


def _uk_tax(income: float) -> Tuple[float, Dict[str, float]]:
    allowance = UK_PERSONAL_ALLOWANCE
    if income > UK_ALLOWANCE_TAPER_START:
        reduction = min(UK_PERSONAL_ALLOWANCE, (income - UK_ALLOWANCE_TAPER_START) / 2)
        allowance = max(0, UK_PERSONAL_ALLOWANCE - reduction)

    taxable = max(0, income - allowance)
    income_tax = 0.0
    if taxable > 0:
        basic_band = UK_BASIC_RATE_LIMIT - allowance
        basic = min(taxable, basic_band) * UK_RATES['basic']
        higher_income = max(0, min(taxable - basic_band, UK_HIGHER_RATE_LIMIT - UK_BASIC_RATE_LIMIT))
        additional_income = max(0, taxable - (UK_HIGHER_RATE_LIMIT - allowance))
        income_tax = basic + higher_income * UK_RATES['higher'] + additional_income * UK_RATES['additional']

    national = 0.0
    if income > UK_NI_THRESHOLD:
        primary = min(income - UK_NI_THRESHOLD, UK_NI_UPPER_LIMIT - UK_NI_THRESHOLD) * UK_NI_MAIN_RATE
        upper = max(0, income - UK_NI_UPPER_LIMIT) * UK_NI_UPPER_RATE
        national = primary + upper

    return income_tax + national, {'incomeTax': income_tax, 'nationalInsurance': national}


def _us_tax(income: float) -> Tuple[float, Dict[str, float]]:
    federal = _bracket_tax(max(0, income - US_STANDARD_DEDUCTION), US_BRACKETS_2024)
    social_security = min(income, US_SS_WAGE_BASE) * US_SS_RATE
    medicare = income * US_MEDICARE_RATE
    if income > US_ADDITIONAL_MEDICARE_THRESHOLD:
        medicare += (income - US_ADDITIONAL_MEDICARE_THRESHOLD) * US_ADDITIONAL_MEDICARE_RATE
    breakdown = {'federalTax': federal, 'socialSecurity': social_security, 'medicare': medicare}
    return federal + social_security + medicare, breakdown


_COUNTRY_TAX_FUNCS = {
    'israel': _israel_tax,
    'uk': _uk_tax,
    'us': _us_tax,
}


def annualize_income(amount: float, frequency: Optional[str]) -> float:
    """Converts a periodic amount to a yearly one; unknown frequencies count as monthly."""
    if not amount:
        return 0.0
    return amount * FREQUENCY_MULTIPLIERS.get((frequency or 'monthly').lower(), 12)


def _incremental_tax(gross: float, base_income: float, country: Optional[str]) -> Optional[float]:
    """Tax caused by stacking `gross` on top of `base_income`; None when no table applies."""
    tax_country = resolve_tax_country(country)
    if tax_country is None or base_income <= 0:
        return None
    with_extra, _ = calculate_annual_tax(base_income + gross, tax_country)
    without_extra, _ = calculate_annual_tax(base_income, tax_country)
    return with_extra - without_extra


def _supplemental_tax(
    gross: float,
    base_income: float,
    country: Optional[str],
    tax_rate: Optional[float],
) -> Dict[str, float]:
    """Shared bonus/RSU rule: explicit rate, else marginal brackets, else the 40% default."""
    if gross <= 0:
        return {'tax': 0.0, 'net': 0.0, 'effectiveRate': 0.0}

    if tax_rate is not None:
        tax = gross * tax_rate / 100
    else:
        tax = _incremental_tax(gross, base_income, country)
        if tax is None:
            tax = gross * DEFAULT_SUPPLEMENTAL_TAX_RATE / 100

    return {'tax': tax, 'net': gross - tax, 'effectiveRate': tax / gross * 100}

# --- 2. Public Calculators ---

def annualize_rsu(units: Any, price: Any, frequency: Optional[str] = 'quarterly') -> float:
    """
    Annual RSU value from a vesting grant: units * price * vestings per year.
    A missing price or unit count yields 0.
    """
    u = parse_or_zero(units)
    p = parse_or_zero(price)
    if not u or not p:
        return 0.0
    return u * p * FREQUENCY_MULTIPLIERS.get((frequency or 'quarterly').lower(), 4)


def annual_rsu_value(person: Person) -> float:
    """Grant-based RSU value, falling back to the legacy per-quarter amount."""
    annual = annualize_rsu(person.rsu_units, person.rsu_current_stock_price, person.rsu_frequency)
    if annual > 0:
        return annual
    return person.quarterly_rsu * 4


def calculate_annual_tax(annual_income: float, country: Optional[str]) -> Tuple[float, Dict[str, float]]:
    """
    Total annual tax (income tax plus social charges) for a country.

    Returns:
        (total_tax, breakdown). Countries without a table pay zero tax.
    """
    tax_country = resolve_tax_country(country)
    tax_func = _COUNTRY_TAX_FUNCS.get(tax_country)
    if tax_func is None:
        return 0.0, {}
    return tax_func(max(0.0, parse_or_zero(annual_income)))


def get_marginal_tax_rate(annual_income: float, country: Optional[str]) -> float:
    """Marginal income-tax rate in percent; 0 for countries without a table."""
    table = MARGINAL_RATE_TABLES.get(resolve_tax_country(country))
    if not table:
        return 0
    income = parse_or_zero(annual_income)
    for threshold, rate in table:
        if income > threshold or threshold == 0:
            return rate
    return 0


def calculate_bonus_tax(
    annual_bonus: float,
    base_salary: float,
    country: Optional[str],
    tax_rate: Optional[float] = None,
) -> Dict[str, float]:
    """Tax on an annual bonus stacked on the annual base salary."""
    return _supplemental_tax(parse_or_zero(annual_bonus), parse_or_zero(base_salary), country, tax_rate)


def calculate_rsu_tax(
    rsu_value: float,
    base_income: float,
    country: Optional[str],
    tax_rate: Optional[float] = None,
) -> Dict[str, float]:
    """RSUs are taxed as ordinary income at vesting, on top of salary and bonus."""
    return _supplemental_tax(parse_or_zero(rsu_value), parse_or_zero(base_income), country, tax_rate)


def _other_income_net(person: Person, source: str) -> float:
    """Annual net of a freelance/rental/dividend stream; untaxed unless a rate is given."""
    amount = getattr(person, f'{source}_income')
    frequency = getattr(person, f'{source}_income_frequency')
    tax_rate = getattr(person, f'{source}_income_tax_rate')
    annual = annualize_income(amount, frequency)
    if tax_rate is None:
        return annual
    return annual * (1 - tax_rate / 100)


def after_tax_additional_income(person: Person, country: Optional[str] = None) -> Dict[str, Any]:
    """
    Monthly after-tax additional income for one person.

    Args:
        person: A Person (or the PlannerInputs themselves for the primary planner).
        country: Tax country; defaults to the person's own country.

    Returns:
        {monthlyNetBonus, monthlyNetRSU, monthlyNetOther, totalMonthlyNet, breakdown}
    """
    country = country or person.country
    base_salary = person.current_monthly_salary * 12

    bonus = calculate_bonus_tax(person.annual_bonus, base_salary, country, person.bonus_tax_rate)
    rsu = calculate_rsu_tax(annual_rsu_value(person), base_salary + person.annual_bonus,
                            country, person.rsu_tax_rate)

    other_annual = {source: _other_income_net(person, source) for source in OTHER_INCOME_SOURCES}
    other_total = sum(other_annual.values())

    return {
        'monthlyNetBonus': safe_money(bonus['net'] / 12),
        'monthlyNetRSU': safe_money(rsu['net'] / 12),
        'monthlyNetOther': safe_money(other_total / 12),
        'totalMonthlyNet': safe_money((bonus['net'] + rsu['net'] + other_total) / 12),
        'breakdown': {
            'bonus': {'gross': person.annual_bonus, 'tax': safe_money(bonus['tax']),
                      'net': safe_money(bonus['net']), 'rate': safe_money(bonus['effectiveRate'])},
            'rsu': {'gross': annual_rsu_value(person), 'tax': safe_money(rsu['tax']),
                    'net': safe_money(rsu['net']), 'rate': safe_money(rsu['effectiveRate'])},
            **{source: {'annual': value, 'monthly': safe_money(value / 12)}
               for source, value in other_annual.items()},
        },
    }


def gross_additional_income(person: Person) -> Dict[str, Any]:
    """
    Gross-based approximation of the same figures, with no tax withheld.
    Used when the after-tax strategy is not wanted.
    """
    bonus_monthly = person.annual_bonus / 12
    rsu_monthly = annual_rsu_value(person) / 12
    other_monthly = {source: annualize_income(getattr(person, f'{source}_income'),
                                        getattr(person, f'{source}_income_frequency')) / 12
                     for source in OTHER_INCOME_SOURCES}
    other_total = sum(other_monthly.values())

    return {
        'monthlyNetBonus': safe_money(bonus_monthly),
        'monthlyNetRSU': safe_money(rsu_monthly),
        'monthlyNetOther': safe_money(other_total),
        'totalMonthlyNet': safe_money(bonus_monthly + rsu_monthly + other_total),
        'breakdown': {source: {'annual': value * 12, 'monthly': safe_money(value)}
                      for source, value in other_monthly.items()},
    }


def _partner_person(inputs: PlannerInputs, partner_key: str) -> Optional[Person]:
    if partner_key not in ('partner1', 'partner2'):
        raise ValueError(f"Unknown partner key: {partner_key}")
    return getattr(inputs, partner_key)


def partner_after_tax_additional_income(inputs: PlannerInputs, partner_key: str) -> Dict[str, Any]:
    """Per-partner variant: the partner's own salary and grants, taxed independently."""
    person = _partner_person(inputs, partner_key)
    if person is None:
        return after_tax_additional_income(Person(), inputs.country)
    return after_tax_additional_income(person, person.country or inputs.country)

# --- 3. Strategy objects injected into the income calculator ---

class AfterTaxAdditionalIncome:
    """Default strategy: marginal-bracket / per-item tax treatment."""

    name = 'after_tax'

    def household(self, inputs: PlannerInputs) -> Dict[str, Any]:
        return after_tax_additional_income(inputs, inputs.country)

    def partner(self, inputs: PlannerInputs, partner_key: str) -> Dict[str, Any]:
        return partner_after_tax_additional_income(inputs, partner_key)


class GrossAdditionalIncome:
    """Fallback strategy: gross amounts, no tax withheld."""

    name = 'gross'

    def household(self, inputs: PlannerInputs) -> Dict[str, Any]:
        logger.warning("Additional income tax utilities not available, using gross values")
        return gross_additional_income(inputs)

    def partner(self, inputs: PlannerInputs, partner_key: str) -> Dict[str, Any]:
        person = _partner_person(inputs, partner_key)
        return gross_additional_income(person if person is not None else Person())
