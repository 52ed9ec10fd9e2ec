# engine/monte_carlo.py
"""
Monte Carlo risk analysis of a retirement plan.

Every simulation grows the planner's vehicles through randomly drawn yearly
returns (see engine.market_generator), adds contributions while still working,
and converts the final balance to a monthly income with a 4% withdrawal rule.
All simulations run at once as numpy arrays; a seed makes the run reproducible.
"""
import logging
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from models import PlannerInputs
from engine.market_generator import generate_returns, cumulative_inflation
from utils.numeric import safe_money, safe_round
from config.market_assumptions import (
    ECONOMIC_SCENARIOS,
    default_stock_percentage,
    mc_withdrawal_rate,
    mc_default_target_income,
    mc_default_monthly_contribution,
    mc_pension_contribution_share,
)

logger = logging.getLogger(__name__)

VEHICLES = ('pension', 'training_fund', 'personal_portfolio', 'real_estate', 'crypto')
PERCENTILES = (10, 25, 75, 90)
DRAWDOWN_PERCENTILES = (75, 90, 95)

CONTENT = {
    'en': {
        'lowSuccess': {
            'title': 'Low Retirement Success Probability',
            'description': 'Only {probability}% chance of meeting retirement income goals',
            'actions': ['Increase monthly savings contributions',
                        'Consider working 2-3 additional years',
                        'Consider higher-return investments',
                        'Review and reduce retirement expense targets'],
        },
        'highSuccess': {
            'title': 'High Retirement Success Probability',
            'description': '{probability}% chance of exceeding retirement goals',
            'actions': ['Consider reducing portfolio risk',
                        'You may be able to retire earlier',
                        'Consider upgrading retirement lifestyle plans'],
        },
        'highDrawdown': {
            'title': 'High Portfolio Drawdown Risk',
            'description': '90% chance of experiencing {drawdown}% portfolio decline',
            'actions': ['Improve portfolio diversification',
                        'Consider reducing bond allocation during accumulation',
                        'Add alternative investments for stability'],
        },
        'shortfall': {
            'title': 'Significant Shortfall Risk',
            'description': 'Average income shortfall of {shortfall}% in worst scenarios',
            'actions': ['Review retirement income targets',
                        'Significantly boost monthly savings',
                        'Optimize asset allocation for better risk-adjusted returns'],
        },
    },
    'he': {
        'lowSuccess': {
            'title': 'הסתברות נמוכה להצלחה בפרישה',
            'description': 'רק {probability}% סיכוי לעמוד ביעדי הכנסה בפרישה',
            'actions': ['הגדל הפקדות חודשיות',
                        'שקול עבודה 2-3 שנים נוספות',
                        'שקול השקעות עם תשואה גבוהה יותר',
                        'סקור והקטן יעדי הוצאות פרישה'],
        },
        'highSuccess': {
            'title': 'הסתברות גבוהה להצלחה בפרישה',
            'description': '{probability}% סיכוי לחרוג מיעדי הפרישה',
            'actions': ['שקול הפחתת סיכון התיק',
                        'תוכל לפרוש מוקדם יותר',
                        'שקול שיפור תוכניות אורח חיים בפרישה'],
        },
        'highDrawdown': {
            'title': 'סיכון גבוה לירידת תיק',
            'description': '90% סיכוי לחוות ירידה של {drawdown}% בתיק',
            'actions': ['שפר פיזור תיק ההשקעות',
                        'שקול הפחתת הקצאת אג״ח בתקופת צבירה',
                        'הוסף השקעות אלטרנטיביות ליציבות'],
        },
        'shortfall': {
            'title': 'סיכון מחסור משמעותי',
            'description': 'מחסור הכנסה ממוצע של {shortfall}% בתרחישים גרועים',
            'actions': ['סקור יעדי הכנסה בפרישה',
                        'הגדל משמעותית חיסכון חודשי',
                        'אופטם הקצאת נכסים לתשואה מותאמת סיכון טובה יותר'],
        },
    },
}


# --- 1. Internal Helper Functions ---

def _starting_balances(inputs: PlannerInputs) -> Dict[str, float]:
    return {
        'pension': inputs.current_savings,
        'training_fund': inputs.current_training_fund,
        'personal_portfolio': inputs.current_personal_portfolio,
        'real_estate': inputs.current_real_estate,
        'crypto': inputs.current_crypto,
    }


def _expected_returns(inputs: PlannerInputs) -> Dict[str, Optional[float]]:
    """Planner-supplied returns (percent); blanks fall back to the simulation defaults."""
    return {
        'pension': inputs.pension_return,
        'training_fund': inputs.training_fund_return,
        'real_estate': inputs.real_estate_return,
        'crypto': inputs.crypto_return,
    }


def _summary(values: np.ndarray, percentiles=PERCENTILES, money: bool = True) -> Dict[str, Any]:
    fmt = safe_money if money else (lambda v: safe_round(v, 4))
    return {
        'mean': fmt(np.mean(values)),
        'median': fmt(np.median(values)),
        'std': fmt(np.std(values)),
        'min': fmt(np.min(values)),
        'max': fmt(np.max(values)),
        'percentiles': {f'p{p}': fmt(np.percentile(values, p)) for p in percentiles},
    }


def _max_drawdown(initial_total: np.ndarray, totals: np.ndarray) -> np.ndarray:
    """Largest peak-to-trough decline per simulation, as a fraction of the peak."""
    path = np.column_stack([initial_total, totals])
    peaks = np.maximum.accumulate(path, axis=1)
    with np.errstate(divide='ignore', invalid='ignore'):
        drawdowns = np.where(peaks > 0, (peaks - path) / peaks, 0.0)
    return drawdowns.max(axis=1)


# --- 2. Statistics ---

def calculate_statistics(final_values: np.ndarray, real_incomes: np.ndarray,
                         max_drawdowns: np.ndarray) -> Dict[str, Any]:
    """Distribution summaries of final portfolio value, real monthly income and drawdown."""
    drawdown = _summary(max_drawdowns, DRAWDOWN_PERCENTILES, money=False)
    # min and std of drawdown are not reported
    drawdown.pop('min')
    drawdown.pop('std')
    return {
        'portfolio': _summary(final_values),
        'income': _summary(real_incomes),
        'drawdown': drawdown,
    }


def calculate_expected_shortfall(real_incomes: np.ndarray) -> float:
    """Mean income of the worst 5% of simulations (0 when there are fewer than 20)."""
    worst_count = int(np.floor(len(real_incomes) * 0.05))
    if worst_count == 0:
        return 0
    return safe_money(np.mean(np.sort(real_incomes)[:worst_count]))


def calculate_risk_metrics(final_values: np.ndarray, real_incomes: np.ndarray,
                           target_income: float) -> Dict[str, Any]:
    """
    Success and shortfall odds against the target monthly income, plus value at risk.

    Args:
        final_values: Final nominal portfolio value per simulation.
        real_incomes: Inflation-adjusted monthly income per simulation.
        target_income: Monthly income goal (today's money).
    """
    n = len(final_values)
    successes = real_incomes >= target_income
    shortfalls = np.maximum(0.0, target_income - real_incomes) / target_income
    positive = shortfalls[shortfalls > 0]

    return {
        'successProbability': safe_round(successes.sum() / n, 4),
        'shortfallProbability': safe_round((n - successes.sum()) / n, 4),
        'averageShortfall': safe_round(positive.mean(), 4) if positive.size else 0,
        'worstCaseShortfall': safe_round(positive.max(), 4) if positive.size else 0,
        'valueAtRisk': {
            'var95': safe_money(np.percentile(final_values, 5)),
            'var99': safe_money(np.percentile(final_values, 1)),
        },
        'expectedShortfall': calculate_expected_shortfall(real_incomes),
    }


def analyze_scenarios(regimes: np.ndarray, totals: np.ndarray) -> Dict[str, Dict[str, Any]]:
    """How often each economic regime occurred and the mean portfolio value in those years."""
    names = list(ECONOMIC_SCENARIOS)
    scenarios = {}
    for idx in np.unique(regimes):
        mask = regimes == idx
        scenarios[names[idx]] = {
            'occurrences': int(mask.sum()),
            'frequency': safe_round(mask.sum() / regimes.size, 4),
            'averageValue': safe_money(totals[mask].mean()),
        }
    return scenarios


def generate_risk_recommendations(statistics: Dict[str, Any], risk_metrics: Dict[str, Any],
                                  language: str = 'en') -> list:
    content = CONTENT['he' if language == 'he' else 'en']
    recommendations = []

    def add(kind, priority, key, **values):
        recommendations.append({
            'type': kind,
            'priority': priority,
            'title': content[key]['title'],
            'description': content[key]['description'].format(**values),
            'actions': list(content[key]['actions']),
        })

    success = risk_metrics['successProbability']
    if success < 0.7:
        add('low_success_probability', 'high', 'lowSuccess', probability=round(success * 100))
    elif success > 0.9:
        add('high_success_probability', 'low', 'highSuccess', probability=round(success * 100))

    p90_drawdown = statistics['drawdown']['percentiles']['p90']
    if p90_drawdown > 0.4:
        add('high_drawdown_risk', 'medium', 'highDrawdown', drawdown=round(p90_drawdown * 100))

    if risk_metrics['averageShortfall'] > 0.2:
        add('shortfall_risk', 'high', 'shortfall', shortfall=round(risk_metrics['averageShortfall'] * 100))

    return recommendations


# --- 3. Main Simulation ---

def run_simulation(inputs: PlannerInputs, projection_years: int = 30, simulations: int = 10_000,
                   seed: Optional[int] = None, language: str = 'en',
                   include_recommendations: bool = True) -> Dict[str, Any]:
    """
    Runs the Monte Carlo risk analysis.

    Args:
        inputs: The planner record.
        projection_years: Years to simulate (at least one).
        simulations: Number of independent paths (at least one).
        seed: Seed for numpy's Generator; the same seed gives the same results.
        language: 'en' or 'he' for recommendation texts.
        include_recommendations: Skip recommendation generation when False.

    Returns:
        dict with simulations, projectionYears, statistics, riskMetrics,
        scenarios, recommendations and 'paths', a DataFrame of the p10/p50/p90
        total value per year.
    """
    n_years = max(1, int(projection_years))
    nsims = max(1, int(simulations))
    rng = np.random.default_rng(seed)
    logger.debug(f"Starting Monte Carlo simulation with {nsims} iterations over {n_years} years")

    years_to_retirement = inputs.retirement_age - inputs.current_age
    target_income = inputs.target_monthly_income or mc_default_target_income
    monthly_contribution = (inputs.monthly_contributions if inputs.monthly_contributions is not None
                            else mc_default_monthly_contribution)
    stock_share = (inputs.stock_percentage if inputs.stock_percentage is not None
                   else default_stock_percentage) / 100

    market = generate_returns(rng, nsims, n_years, _expected_returns(inputs), stock_share)

    balances = {v: np.full(nsims, amount, dtype=float) for v, amount in _starting_balances(inputs).items()}
    initial_total = sum(balances.values())
    totals = np.empty((nsims, n_years))

    annual_contribution = monthly_contribution * 12
    for year in range(n_years):
        for vehicle in VEHICLES:
            balances[vehicle] = balances[vehicle] * (1 + market[vehicle][:, year])
        if year + 1 <= years_to_retirement:
            balances['pension'] += annual_contribution * mc_pension_contribution_share
            balances['personal_portfolio'] += annual_contribution * (1 - mc_pension_contribution_share)
        totals[:, year] = sum(balances.values())

    price_index = cumulative_inflation(market['inflation'])
    final_values = totals[:, -1]
    final_monthly_income = final_values * mc_withdrawal_rate / 12
    real_incomes = final_monthly_income / price_index[:, -1]
    max_drawdowns = _max_drawdown(initial_total, totals)

    statistics = calculate_statistics(final_values, real_incomes, max_drawdowns)
    risk_metrics = calculate_risk_metrics(final_values, real_incomes, target_income)

    paths = pd.DataFrame({
        'year': np.arange(1, n_years + 1),
        'p10': np.percentile(totals, 10, axis=0),
        'p50': np.percentile(totals, 50, axis=0),
        'p90': np.percentile(totals, 90, axis=0),
    }).set_index('year')

    logger.debug(f"Monte Carlo simulation completed: success probability {risk_metrics['successProbability']}")
    return {
        'simulations': nsims,
        'projectionYears': n_years,
        'statistics': statistics,
        'riskMetrics': risk_metrics,
        'scenarios': analyze_scenarios(market['regime'], totals),
        'recommendations': (generate_risk_recommendations(statistics, risk_metrics, language)
                            if include_recommendations else []),
        'paths': paths,
    }
