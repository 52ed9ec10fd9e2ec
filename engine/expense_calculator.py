# engine/expense_calculator.py
# Category-based expense projections and ratio analysis

from typing import Any, Dict, Mapping, Optional

import pandas as pd

from models import PlannerInputs
from utils.numeric import parse_or_zero, safe_divide
from config.expense_assumptions import (
    CATEGORY_INFLATION_ADJUSTMENTS,
    RECOMMENDED_EXPENSE_RATIOS,
    CATEGORY_NAMES_HE,
    default_yearly_adjustment,
    default_projection_years,
    minimum_savings_rate,
    excellent_savings_rate,
)

# Settings stored alongside the amounts in an expenses mapping
_SETTING_KEYS = ('yearlyAdjustment', 'yearly_adjustment')


def _check_mapping(expenses: Any) -> Mapping:
    if expenses is None:
        return {}
    if not isinstance(expenses, Mapping):
        raise TypeError(f"expenses must be a mapping, got {type(expenses).__name__}")
    return expenses


def _amounts(expenses: Any) -> Dict[str, float]:
    return {k: parse_or_zero(v) for k, v in _check_mapping(expenses).items() if k not in _SETTING_KEYS}


def get_yearly_adjustment(expenses: Any, fallback: Optional[float] = None) -> float:
    """The breakdown's own adjustment rate, else the fallback, else 2.5%."""
    expenses = _check_mapping(expenses)
    for key in _SETTING_KEYS:
        value = parse_or_zero(expenses.get(key))
        if value:
            return value
    return fallback or default_yearly_adjustment


def calculate_total_expenses(expenses: Any) -> float:
    """Monthly total over all categories; None gives 0."""
    return sum(_amounts(expenses).values())


def project_expenses(expenses: Any, yearly_adjustment: float = default_yearly_adjustment,
                     years_ahead: float = 1) -> Dict[str, float]:
    """Each category compounds at the base adjustment plus its own premium."""
    projected = {}
    for category, amount in _amounts(expenses).items():
        rate = (parse_or_zero(yearly_adjustment) + CATEGORY_INFLATION_ADJUSTMENTS.get(category, 0)) / 100
        projected[category] = amount * (1 + rate) ** years_ahead
    return projected


def generate_expense_projections(expenses: Any, yearly_adjustment: float = default_yearly_adjustment,
                                 years_to_project: int = default_projection_years) -> pd.DataFrame:
    """
    Year-by-year projection table.

    Returns:
        DataFrame indexed by year (0..years_to_project) with one column per
        category plus 'total' and 'inflationMultiplier'.
    """
    rows = []
    for year in range(int(years_to_project) + 1):
        projected = project_expenses(expenses, yearly_adjustment, year)
        row = {'year': year, **projected}
        row['total'] = sum(projected.values())
        row['inflationMultiplier'] = (1 + parse_or_zero(yearly_adjustment) / 100) ** year
        rows.append(row)
    return pd.DataFrame(rows).set_index('year')


def calculate_expense_breakdown(expenses: Any) -> Dict[str, float]:
    """Share of the total per category, in percent."""
    total = calculate_total_expenses(expenses)
    if not total:
        return {}
    return {category: amount / total * 100 for category, amount in _amounts(expenses).items()}


def _category_label(category: str, language: str) -> str:
    if language == 'he':
        return CATEGORY_NAMES_HE.get(category, category)
    return category.capitalize()


def analyze_expense_ratios(expenses: Any, monthly_income: float, language: str = 'en') -> Dict[str, Any]:
    """Compares each category's share of income with the recommended range."""
    monthly_income = parse_or_zero(monthly_income)
    if not monthly_income:
        return {'analysis': {}, 'recommendations': []}

    analysis, recommendations = {}, []
    total = calculate_total_expenses(expenses)

    for category, amount in _amounts(expenses).items():
        ratio = amount / monthly_income * 100
        recommended = RECOMMENDED_EXPENSE_RATIOS.get(category, RECOMMENDED_EXPENSE_RATIOS['other'])
        if ratio <= recommended['ideal']:
            status = 'good'
        elif ratio <= recommended['max']:
            status = 'acceptable'
        else:
            status = 'high'
        analysis[category] = {'amount': amount, 'ratio': ratio, 'status': status}

        if ratio > recommended['max']:
            if language == 'he':
                message = (f"הוצאות {_category_label(category, 'he')} גבוהות ({ratio:.1f}% מההכנסה). "
                           f"מומלץ להפחית ל-{recommended['max']}% או פחות.")
            else:
                message = (f"{_category_label(category, 'en')} expenses are high ({ratio:.1f}% of income). "
                           f"Consider reducing to {recommended['max']}% or less.")
            recommendations.append({'category': category, 'type': 'warning', 'message': message})

    savings = monthly_income - total
    savings_rate = savings / monthly_income * 100
    if savings_rate >= excellent_savings_rate:
        savings_status = 'excellent'
    elif savings_rate >= minimum_savings_rate:
        savings_status = 'good'
    else:
        savings_status = 'low'
    analysis['savings'] = {'amount': savings, 'ratio': savings_rate, 'status': savings_status}

    if savings_rate < minimum_savings_rate:
        if language == 'he':
            message = f"שיעור החיסכון נמוך ({savings_rate:.1f}%). מומלץ להגיע לפחות ל-10% חיסכון חודשי."
        else:
            message = f"Savings rate is low ({savings_rate:.1f}%). Aim for at least 10% monthly savings."
        recommendations.append({'category': 'savings', 'type': 'critical', 'message': message})

    return {'analysis': analysis, 'recommendations': recommendations,
            'savingsRate': savings_rate, 'totalExpenses': total}


def calculate_savings_potential(expenses: Any, monthly_income: float) -> Dict[str, Any]:
    """How much each over-ideal category could give back."""
    monthly_income = parse_or_zero(monthly_income)
    potential: Dict[str, Any] = {}
    total_saving = 0.0

    for category, amount in _amounts(expenses).items():
        recommended = RECOMMENDED_EXPENSE_RATIOS.get(category, RECOMMENDED_EXPENSE_RATIOS['other'])
        ideal_amount = recommended['ideal'] / 100 * monthly_income
        if amount > ideal_amount:
            saving = amount - ideal_amount
            potential[category] = {
                'currentAmount': amount,
                'idealAmount': ideal_amount,
                'potentialSaving': saving,
                'percentReduction': round(safe_divide(saving, amount) * 100, 1),
            }
            total_saving += saving

    potential['total'] = total_saving
    potential['additionalSavingsRate'] = safe_divide(total_saving, monthly_income) * 100
    return potential


def generate_expense_summary_for_retirement(inputs: PlannerInputs, years_to_retirement: float) -> Dict[str, Any]:
    expenses = inputs.expenses or {}
    yearly_adjustment = get_yearly_adjustment(expenses)
    projected = project_expenses(expenses, yearly_adjustment, years_to_retirement)

    return {
        'currentMonthlyExpenses': calculate_total_expenses(expenses),
        'projectedMonthlyExpenses': sum(projected.values()),
        'yearlyAdjustmentRate': yearly_adjustment,
        'categoryBreakdown': calculate_expense_breakdown(expenses),
        'inflationMultiplier': (1 + yearly_adjustment / 100) ** years_to_retirement,
    }
