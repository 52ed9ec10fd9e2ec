# engine/tax_optimization.py
"""
Tax benefit of Israeli pension and training-fund contributions.
Other countries get a limited-analysis record.
"""
import logging
from typing import Any, Dict

from models import PlannerInputs
from utils.numeric import safe_money, safe_rate
from utils.tax_utils import ISRAEL_BRACKETS_2025
from config.country_data import ISRAEL_TRAINING_FUND_CEILING

logger = logging.getLogger(__name__)

DEFAULT_PENSION_RATE = 7.0  # percent; the deductible maximum
TRAINING_FUND_DEDUCTIBLE_SHARE = 0.10


def calculate_israeli_income_tax(annual_income: float) -> Dict[str, float]:
    """Income tax only (no health / national insurance), with the marginal bracket reached."""
    total_tax = 0.0
    marginal_rate = 0.0
    remaining = max(0.0, annual_income)

    for low, high, rate in ISRAEL_BRACKETS_2025:
        if remaining <= 0:
            break
        taxable = min(remaining, high - low)
        if taxable > 0:
            total_tax += taxable * rate
            marginal_rate = rate
            remaining -= taxable

    return {
        'totalTax': total_tax,
        'marginalRate': marginal_rate * 100,
        'effectiveRate': total_tax / annual_income * 100 if annual_income > 0 else 0,
    }


def calculate_tax_savings_from_deduction(annual_income: float, deduction: float) -> Dict[str, float]:
    without = calculate_israeli_income_tax(annual_income)
    with_deduction = calculate_israeli_income_tax(annual_income - deduction)
    return {'savings': without['totalTax'] - with_deduction['totalTax'], 'marginalRate': without['marginalRate']}


def calculate_pension_tax_savings(gross_annual_salary: float, contribution_rate: float,
                                  country: str = 'israel') -> Dict[str, Any]:
    if country != 'israel':
        return {'taxSavings': 0, 'effectiveRate': 0, 'details': {}}

    contribution = gross_annual_salary * contribution_rate / 100
    without = calculate_israeli_income_tax(gross_annual_salary)
    with_pension = calculate_israeli_income_tax(gross_annual_salary - contribution)
    annual_savings = without['totalTax'] - with_pension['totalTax']

    return {
        'annualPensionContribution': safe_money(contribution),
        'monthlyPensionContribution': safe_money(contribution / 12),
        'annualTaxSavings': safe_money(annual_savings),
        'monthlyTaxSavings': safe_money(annual_savings / 12),
        'effectiveRate': safe_rate(annual_savings / contribution * 100 if contribution > 0 else 0),
        'marginalTaxRate': without['marginalRate'],
        'netCostOfContribution': safe_money(contribution - annual_savings),
        'details': {
            'taxWithoutPension': without,
            'taxWithPension': with_pension,
            'taxableReduction': safe_money(contribution),
        },
    }


def calculate_training_fund_tax_savings(gross_monthly_salary: float, monthly_contribution: float,
                                        country: str = 'israel') -> Dict[str, Any]:
    """Full deduction below the salary ceiling; above it, at most 10% of the ceiling."""
    if country != 'israel':
        return {'taxSavings': 0, 'isDeductible': False, 'details': {}}

    annual_salary = gross_monthly_salary * 12
    annual_contribution = monthly_contribution * 12
    threshold = ISRAEL_TRAINING_FUND_CEILING * 12

    if annual_salary <= threshold:
        deductible = annual_contribution
    else:
        deductible = min(annual_contribution, threshold * TRAINING_FUND_DEDUCTIBLE_SHARE)
    taxable = annual_contribution - deductible

    savings = calculate_tax_savings_from_deduction(annual_salary, deductible)
    return {
        'monthlyContribution': safe_money(monthly_contribution),
        'annualContribution': safe_money(annual_contribution),
        'deductibleAmount': safe_money(deductible),
        'taxableAmount': safe_money(taxable),
        'annualTaxSavings': safe_money(savings['savings']),
        'monthlyTaxSavings': safe_money(savings['savings'] / 12),
        'effectiveRate': safe_rate(savings['savings'] / annual_contribution * 100 if annual_contribution > 0 else 0),
        'isAboveThreshold': annual_salary > threshold,
        'marginalRate': savings['marginalRate'],
    }


def calculate_optimal_contribution(gross_monthly_salary: float, country: str = 'israel') -> Dict[str, Any]:
    if country != 'israel':
        return {'optimalRate': DEFAULT_PENSION_RATE, 'reasoning': 'Default rate for non-Israeli calculations'}

    annual_salary = gross_monthly_salary * 12
    marginal_rate = calculate_israeli_income_tax(annual_salary)['marginalRate']

    if marginal_rate >= 35:
        optimal_rate, reasoning = 7, 'Maximum 7% recommended due to high marginal tax rate (35%+)'
    elif marginal_rate >= 20:
        optimal_rate, reasoning = 7, 'Maximum 7% recommended due to good marginal tax rate (20%+)'
    elif marginal_rate >= 14:
        optimal_rate, reasoning = 5, 'Consider 5% due to moderate marginal tax rate (14%)'
    else:
        optimal_rate, reasoning = 3, 'Lower contribution may be sufficient due to low marginal tax rate (10%)'

    savings = calculate_pension_tax_savings(annual_salary, optimal_rate, country)
    return {
        'optimalRate': optimal_rate,
        'reasoning': reasoning,
        'marginalTaxRate': marginal_rate,
        'projectedAnnualSavings': savings['annualTaxSavings'],
        'projectedMonthlySavings': savings['monthlyTaxSavings'],
        'netMonthlyCost': safe_money(annual_salary * optimal_rate / 100 / 12 - savings['monthlyTaxSavings']),
    }


def generate_tax_recommendations(pension: Dict[str, Any], training_fund: Dict[str, Any],
                                 optimal: Dict[str, Any], current_rate: float) -> list:
    recommendations = []

    if current_rate < optimal['optimalRate']:
        extra = safe_money(optimal['projectedMonthlySavings'] - pension['monthlyTaxSavings'])
        recommendations.append({
            'type': 'pension_increase',
            'priority': 'high',
            'title': 'Increase Pension Contribution',
            'description': f"Consider increasing pension contribution from {current_rate}% to {optimal['optimalRate']}%",
            'impact': f"Additional monthly tax savings: ₪{extra}",
            'action': f"Set pension rate to {optimal['optimalRate']}%",
        })

    if training_fund['isAboveThreshold'] and training_fund['taxableAmount'] > 0:
        recommendations.append({
            'type': 'training_fund_optimization',
            'priority': 'medium',
            'title': 'Optimize Training Fund Contribution',
            'description': 'You are above the training fund threshold - consider reducing excess contribution',
            'impact': f"₪{training_fund['taxableAmount']} annually is not tax-deductible",
            'action': 'Consider reducing training fund to maximize tax efficiency',
        })
    elif (not training_fund['isAboveThreshold']
          and training_fund['monthlyContribution'] < ISRAEL_TRAINING_FUND_CEILING * TRAINING_FUND_DEDUCTIBLE_SHARE):
        recommendations.append({
            'type': 'training_fund_increase',
            'priority': 'medium',
            'title': 'Consider Training Fund Contribution',
            'description': 'You can contribute more to training fund with full tax benefits',
            'impact': 'Additional tax-deductible savings opportunity',
            'action': 'Consider increasing training fund contribution',
        })

    if pension['marginalTaxRate'] >= 35:
        recommendations.append({
            'type': 'high_earner_strategy',
            'priority': 'high',
            'title': 'High Earner Tax Strategy',
            'description': 'At your income level, maximizing tax-advantaged savings is crucial',
            'impact': f"Your marginal tax rate is {pension['marginalTaxRate']}%",
            'action': 'Maximize all available tax-deferred savings options',
        })

    return recommendations


def analyze_personal_tax_situation(inputs: PlannerInputs) -> Dict[str, Any]:
    """
    Full tax-optimization record for the primary planner.

    Returns:
        salary / pension / trainingFund / optimal / summary / recommendations, or
        {'analysis': ...} when the planner is outside Israel or has no salary.
    """
    monthly_salary = inputs.current_monthly_salary
    annual_salary = monthly_salary * 12
    country = (inputs.tax_country or 'israel').lower()

    if country != 'israel' or monthly_salary == 0:
        return {'analysis': 'Limited analysis for non-Israeli or zero salary'}

    current_rate = inputs.pension_contribution_rate or DEFAULT_PENSION_RATE
    pension = calculate_pension_tax_savings(annual_salary, current_rate, country)
    training_fund = calculate_training_fund_tax_savings(monthly_salary, inputs.monthly_training_fund_contribution,
                                                        country)
    optimal = calculate_optimal_contribution(monthly_salary, country)

    total_monthly = pension['monthlyTaxSavings'] + training_fund['monthlyTaxSavings']
    total_annual = pension['annualTaxSavings'] + training_fund['annualTaxSavings']
    logger.debug(f"Tax optimization: {total_annual} annual savings on {annual_salary} salary")

    return {
        'salary': {
            'monthly': safe_money(monthly_salary),
            'annual': safe_money(annual_salary),
            'marginalTaxRate': pension['marginalTaxRate'],
        },
        'pension': pension,
        'trainingFund': training_fund,
        'optimal': optimal,
        'summary': {
            'totalMonthlySavings': safe_money(total_monthly),
            'totalAnnualSavings': safe_money(total_annual),
            'effectiveTaxReduction': safe_rate(total_annual / annual_salary * 100) if annual_salary > 0 else 0,
        },
        'recommendations': generate_tax_recommendations(pension, training_fund, optimal, current_rate),
    }
