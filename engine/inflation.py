# engine/inflation.py
"""
Real (inflation-adjusted) values, real returns and the portfolio's inflation
protection score. Everything here is total: any numeric input returns a number.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from models import PlannerInputs
from utils.numeric import parse_or_zero, safe_divide
from config.market_assumptions import (
    INFLATION_DATA,
    ASSET_INFLATION_PROTECTION,
    ANALYSIS_NOMINAL_RETURNS,
    analysis_inflation_rate,
    default_stock_percentage,
)

logger = logging.getLogger(__name__)

# Keeps (1 + rate) strictly positive for rates at or below -100%
_MIN_GROWTH_FACTOR = 1e-9

# Purchasing-power tables stop at 40 years
MAX_EROSION_YEARS = 40
PURCHASING_POWER_BASE = 100_000

LOW_PROTECTION_THRESHOLD = 50
LOW_REAL_RETURN_THRESHOLD = 1.5
EROSION_WARNING_THRESHOLD = 35
CASH_LIKE_WARNING_THRESHOLD = 30

CONTENT = {
    'en': {
        'lowProtection': {
            'title': 'Low Inflation Protection',
            'description': 'Your portfolio has only {protection}% inflation protection',
            'actions': ['Increase stock allocation for better inflation hedge',
                        'Consider adding real estate investments',
                        'Reduce cash holdings to productive assets'],
            'impact': 'Improve protection to 65%',
        },
        'lowRealReturns': {
            'title': 'Low Real Returns Expected',
            'description': 'Some assets may not beat inflation in moderate scenario',
            'actions': ['Review return assumptions for conservative assets',
                        'Diversify into inflation-resistant asset classes',
                        'Consider inflation-linked bonds'],
        },
        'purchasingPower': {
            'title': 'Significant Purchasing Power Erosion',
            'description': 'Inflation may erode {erosion}% of purchasing power over 20 years',
            'actions': ['Add inflation-linked government bonds',
                        'Increase allocation to real assets (real estate, commodities)',
                        'Consider international diversification'],
        },
        'excessCash': {
            'title': 'High Cash Allocation Risk',
            'description': '{percentage}% in cash-equivalent assets loses to inflation',
            'actions': ['Gradually invest in stock-based assets',
                        'Consider REITs for inflation protection',
                        'Use dollar-cost averaging for gradual investment'],
        },
        'longTerm': {
            'title': 'Long-term Inflation Strategy',
            'description': 'With 20+ years to retirement, prioritize growth over inflation protection',
            'actions': ['Emphasize growth assets (stocks, real estate)',
                        'Accept short-term volatility for long-term growth',
                        'Rebalance regularly to maintain target allocation'],
        },
        'nearRetirement': {
            'title': 'Near-Retirement Inflation Planning',
            'description': 'Balance growth needs with inflation protection as retirement approaches',
            'actions': ['Balance growth assets with inflation-protected securities',
                        'Consider Treasury Inflation-Protected Securities (TIPS)',
                        'Plan withdrawal strategy accounting for inflation'],
        },
    },
    'he': {
        'lowProtection': {
            'title': 'הגנה נמוכה מפני אינפלציה',
            'description': 'לתיק שלך יש רק {protection}% הגנה מפני אינפלציה',
            'actions': ['הגדל הקצאת מניות להגנה טובה יותר מפני אינפלציה',
                        'שקול הוספת השקעות נדל״ן',
                        'הפחת אחזקות מזומן לטובת נכסים יצרניים'],
            'impact': 'שיפור הגנה ל-65%',
        },
        'lowRealReturns': {
            'title': 'תשואות ריאליות נמוכות צפויות',
            'description': 'חלק מהנכסים עלולים לא לנצח את האינפלציה',
            'actions': ['סקור הנחות תשואה לנכסים שמרניים',
                        'פזר השקעות לסוגי נכסים עמידים באינפלציה',
                        'שקול אג״ח צמודי אינפלציה'],
        },
        'purchasingPower': {
            'title': 'שחיקת כוח קנייה משמעותית',
            'description': 'אינפלציה עלולה לשחוק {erosion}% מכוח הקנייה תוך 20 שנה',
            'actions': ['הוסף אג״ח ממשלתיים צמודי אינפלציה',
                        'הגדל הקצאה לנכסים ריאליים (נדל״ן, סחורות)',
                        'שקול פיזור בינלאומי'],
        },
        'excessCash': {
            'title': 'סיכון הקצאת מזומן גבוהה',
            'description': '{percentage}% בנכסים דמויי מזומן מפסידים לאינפלציה',
            'actions': ['השקע בהדרגה בנכסים מבוססי מניות',
                        'שקול קרנות נדל״ן להגנה מפני אינפלציה',
                        'השתמש בהשקעה הדרגתית'],
        },
        'longTerm': {
            'title': 'אסטרטגיית אינפלציה ארוכת טווח',
            'description': 'עם 20+ שנים לפרישה, תן עדיפות לצמיחה על פני הגנה מאינפלציה',
            'actions': ['הדגש נכסי צמיחה (מניות, נדל״ן)',
                        'קבל תנודתיות קצרת טווח למען צמיחה ארוכת טווח',
                        'בצע איזון תיק סדיר לשמירה על הקצאת יעד'],
        },
        'nearRetirement': {
            'title': 'תכנון אינפלציה לקראת פרישה',
            'description': 'איזן בין צרכי צמיחה להגנה מאינפלציה',
            'actions': ['איזן נכסי צמיחה עם ניירות הגנה מאינפלציה',
                        'שקול אג״ח הגנה מאינפלציה',
                        'תכנן אסטרטגיית משיכה המתחשבת באינפלציה'],
        },
    },
}


def _growth_factor(rate_percent: float) -> float:
    return max(1 + parse_or_zero(rate_percent) / 100, _MIN_GROWTH_FACTOR)


def adjust_for_inflation(nominal_value: Any, inflation_rate: Any, years: Any, compounding: bool = True) -> float:
    """
    Discounts a nominal amount to today's money.

    Args:
        nominal_value: Future (nominal) amount.
        inflation_rate: Yearly inflation in percent.
        years: Horizon in years; zero or negative returns the nominal unchanged.
        compounding: Compound yearly (default) or simple inflation.

    Returns:
        nominal / (1 + rate/100) ** years
    """
    nominal = parse_or_zero(nominal_value)
    years = parse_or_zero(years)
    if not nominal or years <= 0:
        return nominal

    if compounding:
        return nominal / _growth_factor(inflation_rate) ** years
    simple = max(1 + parse_or_zero(inflation_rate) / 100 * years, _MIN_GROWTH_FACTOR)
    return nominal / simple


def _average_rate(inflation_rate: Union[float, Sequence[float], None]) -> float:
    if isinstance(inflation_rate, (list, tuple, np.ndarray)):
        values = [parse_or_zero(v) for v in inflation_rate]
        return float(np.mean(values)) if values else 0.0
    return parse_or_zero(inflation_rate)


def calculate_real_returns(nominal_returns: Mapping[str, Any], inflation_rate) -> Dict[str, float]:
    """Fisher real return per vehicle, in percent. A sequence of rates is averaged first."""
    if not isinstance(nominal_returns, Mapping):
        return {}

    inflation_factor = _growth_factor(_average_rate(inflation_rate))
    return {
        asset: ((1 + parse_or_zero(nominal) / 100) / inflation_factor - 1) * 100
        for asset, nominal in nominal_returns.items()
    }


def calculate_total_current_savings(inputs: PlannerInputs) -> float:
    return (inputs.current_savings + inputs.current_training_fund + inputs.current_personal_portfolio
            + inputs.current_real_estate + inputs.current_crypto)


def calculate_inflation_protection(inputs: PlannerInputs) -> int:
    """
    Balance-weighted share of the household's assets that keeps pace with
    inflation, 0-100. The personal portfolio is split stocks/bonds by
    stock_percentage; cash counts toward the total with no protection.
    """
    stock_share = inputs.stock_percentage if inputs.stock_percentage is not None else default_stock_percentage
    stock_share = min(max(stock_share, 0), 100) / 100

    weights = {
        'pension': inputs.current_savings,
        'training_fund': inputs.current_training_fund,
        'stocks': inputs.current_personal_portfolio * stock_share,
        'bonds': inputs.current_personal_portfolio * (1 - stock_share),
        'real_estate': inputs.current_real_estate,
        'crypto': inputs.current_crypto,
        'cash': inputs.current_cash,
    }
    # Negative balances carry no protection weight
    weights = {k: max(v, 0.0) for k, v in weights.items()}
    total = sum(weights.values())
    if total <= 0:
        return 0

    protection = sum(weights[k] * ASSET_INFLATION_PROTECTION[k] for k in weights) / total
    return int(min(max(round(protection * 100), 0), 100))


def _inflation_scenarios(country: str) -> Dict[str, float]:
    data = INFLATION_DATA.get(country) or INFLATION_DATA['israel']
    return {
        'optimistic': data['targetRate'],
        'moderate': data['currentProjection'],
        'pessimistic': data['recentAverage'],
        'historical': data['historicalAverage'],
    }


def _nominal_returns(inputs: PlannerInputs, use_defaults: bool) -> Dict[str, float]:
    values = {
        'pensionReturn': inputs.pension_return,
        'trainingFundReturn': inputs.training_fund_return,
        'personalPortfolioReturn': inputs.personal_portfolio_return,
        'realEstateReturn': inputs.real_estate_return,
        'cryptoReturn': inputs.crypto_return,
    }
    if use_defaults:
        return {k: (v or ANALYSIS_NOMINAL_RETURNS[k]) for k, v in values.items()}
    return {k: (v or 0.0) for k, v in values.items()}


def analyze_inflation_impact(
    inputs: PlannerInputs,
    projection_years: int,
    country: str = 'israel',
    language: str = 'en',
) -> Dict[str, Any]:
    """
    Scenario analysis: real returns per vehicle under four inflation paths,
    the purchasing-power erosion table, the real value of today's savings and
    recommendations in the requested language.
    """
    scenarios = _inflation_scenarios(country)
    projection_years = int(parse_or_zero(projection_years))

    base = _nominal_returns(inputs, use_defaults=False)
    projections = {
        asset: {name: calculate_real_returns({asset: nominal}, rate)[asset] for name, rate in scenarios.items()}
        for asset, nominal in base.items()
    }

    purchasing_power = {}
    for name, rate in scenarios.items():
        rows = []
        for year in range(1, min(projection_years, MAX_EROSION_YEARS) + 1):
            real_value = adjust_for_inflation(PURCHASING_POWER_BASE, rate, year)
            rows.append({
                'year': year,
                'realValue': real_value,
                'erosionPercentage': (PURCHASING_POWER_BASE - real_value) / PURCHASING_POWER_BASE * 100,
                'equivalentNominal': PURCHASING_POWER_BASE * _growth_factor(rate) ** year,
            })
        purchasing_power[name] = rows

    total_savings = calculate_total_current_savings(inputs)
    analysis = {
        'baseProjections': base,
        'inflationProjections': projections,
        'purchasingPower': purchasing_power,
        'realValueAnalysis': {
            'currentNominal': total_savings,
            'projectedReal': {name: adjust_for_inflation(total_savings, rate, projection_years)
                              for name, rate in scenarios.items()},
            'inflationProtection': calculate_inflation_protection(inputs),
        },
    }
    analysis['recommendations'] = generate_inflation_recommendations(analysis, inputs, language)
    return analysis


def _recommendation(content: Dict[str, Any], rec_type: str, key: str, priority: str, **fmt) -> Dict[str, Any]:
    text = content[key]
    rec = {
        'type': rec_type,
        'priority': priority,
        'title': text['title'],
        'description': text['description'].format(**fmt) if fmt else text['description'],
        'actions': list(text['actions']),
    }
    if 'impact' in text:
        rec['impact'] = text['impact']
    return rec


def generate_inflation_recommendations(
    analysis: Dict[str, Any],
    inputs: PlannerInputs,
    language: str = 'en',
) -> List[Dict[str, Any]]:
    content = CONTENT.get(language, CONTENT['en'])
    recommendations = []

    protection = analysis['realValueAnalysis']['inflationProtection']
    if protection < LOW_PROTECTION_THRESHOLD:
        recommendations.append(_recommendation(content, 'low_protection', 'lowProtection', 'high',
                                               protection=protection))

    if any(s['moderate'] < LOW_REAL_RETURN_THRESHOLD for s in analysis['inflationProjections'].values()):
        recommendations.append(_recommendation(content, 'low_real_returns', 'lowRealReturns', 'medium'))

    at_20 = next((p for p in analysis['purchasingPower'].get('moderate', []) if p['year'] == 20), None)
    if at_20 and at_20['erosionPercentage'] > EROSION_WARNING_THRESHOLD:
        recommendations.append(_recommendation(content, 'purchasing_power', 'purchasingPower', 'high',
                                               erosion=round(at_20['erosionPercentage'])))

    # The training fund is treated as the cash-like holding here
    cash_like = safe_divide(inputs.current_training_fund, calculate_total_current_savings(inputs)) * 100
    if cash_like > CASH_LIKE_WARNING_THRESHOLD:
        recommendations.append(_recommendation(content, 'excess_cash', 'excessCash', 'medium',
                                               percentage=round(cash_like)))

    years_to_retirement = (inputs.retirement_age or 67) - (inputs.current_age or 30)
    if years_to_retirement > 20:
        recommendations.append(_recommendation(content, 'long_term', 'longTerm', 'low'))
    elif years_to_retirement < 10:
        recommendations.append(_recommendation(content, 'near_retirement', 'nearRetirement', 'medium'))

    return recommendations


def calculate_inflation_analysis(
    inputs: PlannerInputs,
    years_to_retirement: float,
    values: Mapping[str, float],
) -> Optional[Dict[str, Any]]:
    """
    Real-vs-nominal view of the projected balances and income at retirement.

    Args:
        values: total_pension_savings, total_training_fund, total_personal_portfolio,
            total_crypto, total_real_estate, total_net_income.
    """
    inflation_rate = inputs.inflation_rate or analysis_inflation_rate
    nominal = {
        'totalSavings': parse_or_zero(values.get('total_pension_savings')),
        'trainingFundValue': parse_or_zero(values.get('total_training_fund')),
        'personalPortfolioValue': parse_or_zero(values.get('total_personal_portfolio')),
        'currentCrypto': parse_or_zero(values.get('total_crypto')),
        'currentRealEstate': parse_or_zero(values.get('total_real_estate')),
        'totalNetIncome': parse_or_zero(values.get('total_net_income')),
    }
    real = {k: adjust_for_inflation(v, inflation_rate, years_to_retirement) for k, v in nominal.items()}

    nominal_returns = _nominal_returns(inputs, use_defaults=True)
    income = nominal['totalNetIncome']
    logger.debug(f"Inflation analysis at {inflation_rate}% over {years_to_retirement} years")

    return {
        'inflationRate': inflation_rate,
        'yearsToRetirement': years_to_retirement,
        'realValues': real,
        'nominalValues': nominal,
        'inflationProtection': calculate_inflation_protection(inputs),
        'realReturns': calculate_real_returns(nominal_returns, inflation_rate),
        'nominalReturns': nominal_returns,
        'purchasingPowerErosion': safe_divide(income - real['totalNetIncome'], income) * 100,
        'realVsNominalRatio': safe_divide(real['totalNetIncome'], income),
    }
