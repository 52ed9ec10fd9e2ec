import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from models import PlannerInputs
from utils.numeric import format_currency_output, format_percent_output

EXPORT_VERSION = '0.1.0'
EXPORT_TOOL = 'retirement-income-engine'
EXPORT_PURPOSE = 'LLM Analysis and Recommendations'

RECOMMENDATION_AREAS = [
    'asset_allocation_optimization',
    'savings_rate_improvement',
    'tax_optimization_strategies',
    'risk_management',
    'retirement_timing_analysis',
    'diversification_opportunities',
    'cost_reduction_strategies',
    'income_replacement_strategies',
]


def _json_default(obj: Any):
    """Lets json.dumps handle the numpy / pandas values found in engine results."""
    if isinstance(obj, pd.DataFrame):
        return obj.reset_index().to_dict(orient='records')
    if isinstance(obj, pd.Series):
        return obj.to_dict()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def build_export_snapshot(inputs: PlannerInputs, results: Optional[Dict[str, Any]] = None,
                          partner_results: Optional[Dict[str, Any]] = None,
                          export_date: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Collects the plan and its projection into one record for external analysis.

    Args:
        inputs: The planner record.
        results: calculate_retirement output (may be None).
        partner_results: Optional per-partner breakdown.
        export_date: Timestamp to stamp; defaults to now (UTC).
    """
    results = results or {}
    export_date = export_date or datetime.now(timezone.utc)

    return {
        'metadata': {
            'exportDate': export_date.isoformat(),
            'version': EXPORT_VERSION,
            'tool': EXPORT_TOOL,
            'purpose': EXPORT_PURPOSE,
        },
        'personalInfo': {
            'currentAge': inputs.current_age,
            'retirementAge': inputs.retirement_age,
            'planningType': inputs.planning_type or 'individual',
            'riskTolerance': inputs.risk_tolerance,
        },
        'financialData': {
            'currentSavings': inputs.current_savings,
            'currentSalary': inputs.current_monthly_salary,
            'monthlyExpenses': inputs.current_monthly_expenses,
            'targetReplacement': inputs.target_replacement,
            'inflationRate': inputs.inflation_rate,
        },
        'investmentPortfolio': {
            'trainingFund': {
                'current': inputs.current_training_fund,
                'return': inputs.training_fund_return,
                'managementFee': inputs.training_fund_management_fee,
            },
            'personalPortfolio': {
                'current': inputs.current_personal_portfolio,
                'monthly': inputs.personal_portfolio_monthly,
                'return': inputs.personal_portfolio_return,
                'taxRate': inputs.personal_portfolio_tax_rate,
            },
            'realEstate': {
                'current': inputs.current_real_estate,
                'monthly': inputs.real_estate_monthly,
                'return': inputs.real_estate_return,
                'rentalYield': inputs.real_estate_rental_yield,
            },
            'cryptocurrency': {
                'current': inputs.current_crypto,
                'monthly': inputs.crypto_monthly,
                'return': inputs.crypto_return,
            },
        },
        'rsuData': {
            'units': inputs.rsu_units,
            'currentStockPrice': inputs.rsu_current_stock_price,
            'frequency': inputs.rsu_frequency,
        } if inputs.rsu_units else None,
        'projectionResults': {
            'totalSavingsAtRetirement': results.get('totalSavings'),
            'monthlyPensionIncome': results.get('monthlyIncome'),
            'readinessScore': results.get('readinessScore'),
            'yearsToRetirement': results.get('yearsToRetirement'),
            'inflationAdjustedIncome': results.get('inflationAdjustedIncome'),
            'goalsAnalysis': results.get('goalsAnalysis'),
        },
        'partnerData': partner_results,
        'recommendationAreas': list(RECOMMENDATION_AREAS),
    }


def export_json(inputs: PlannerInputs, results: Optional[Dict[str, Any]] = None,
                partner_results: Optional[Dict[str, Any]] = None, indent: int = 2,
                export_date: Optional[datetime] = None) -> str:
    """The export snapshot as a pretty-printed JSON string (Hebrew text kept unescaped)."""
    snapshot = build_export_snapshot(inputs, results, partner_results, export_date)
    return json.dumps(snapshot, indent=indent, ensure_ascii=False, default=_json_default)


def generate_analysis_prompt(inputs: PlannerInputs, results: Optional[Dict[str, Any]] = None) -> str:
    """Plain-text briefing asking for recommendations on the plan."""
    results = results or {}
    readiness = results.get('readinessScore')

    prompt = f"""
Please analyze this retirement planning data and provide comprehensive, personalized recommendations:

**Personal Information:**
- Current Age: {inputs.current_age:g}
- Target Retirement Age: {inputs.retirement_age:g}
- Planning Type: {inputs.planning_type or 'individual'}
- Risk Tolerance: {inputs.risk_tolerance}

**Current Financial Situation:**
- Current Savings: {format_currency_output(inputs.current_savings)}
- Current Salary: {format_currency_output(inputs.current_monthly_salary)}/month
- Monthly Expenses: {format_currency_output(inputs.current_monthly_expenses)}
- Target Income Replacement: {format_percent_output(inputs.target_replacement, 0)}

**Investment Portfolio:**
- Training Fund: {format_currency_output(inputs.current_training_fund)} ({format_percent_output(inputs.training_fund_return) or 'default'} return)
- Personal Portfolio: {format_currency_output(inputs.current_personal_portfolio)} + {format_currency_output(inputs.personal_portfolio_monthly)}/month
- Real Estate: {format_currency_output(inputs.current_real_estate)}
- Cryptocurrency: {format_currency_output(inputs.current_crypto)}

**Projected Results:**
- Total Savings at Retirement: {format_currency_output(results.get('totalSavings'))}
- Monthly Pension Income: {format_currency_output(results.get('monthlyIncome'))}
- Retirement Readiness Score: {readiness if readiness is not None else 'N/A'}

Please provide specific, actionable recommendations for:
1. **Asset Allocation Optimization** - How to improve portfolio balance
2. **Savings Rate Enhancement** - Strategies to increase monthly contributions
3. **Tax Optimization** - Legal methods to reduce tax burden
4. **Risk Management** - Insurance and diversification strategies
5. **Timeline Analysis** - Whether to adjust retirement age
6. **Investment Opportunities** - Specific asset classes or instruments to consider
7. **Cost Reduction** - Ways to minimize fees and expenses
8. **Income Strategies** - Post-retirement income generation methods

Focus on actionable advice specific to Israeli retirement planning, tax laws, and investment options.
"""
    return prompt.strip()
