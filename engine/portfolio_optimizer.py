# engine/portfolio_optimizer.py

import copy
import logging
from typing import Any, Dict, List, Optional

import numpy as np

from models import AssetClass, PlannerInputs
from utils.numeric import parse_or_zero
from config.market_assumptions import (
    ASSET_CLASSES,
    MODEL_PORTFOLIOS,
    risk_free_rate,
    rebalancing_threshold,
    high_priority_threshold,
    glide_path_years,
    max_glide_path_reduction,
    default_stock_percentage,
)

logger = logging.getLogger(__name__)

Portfolio = Dict[str, Dict[str, float]]

# Age-based defaults when the plan leaves them blank
DEFAULT_CURRENT_AGE = 30
DEFAULT_RETIREMENT_AGE = 67

CONTENT = {
    'he': {
        'recommendations': {
            'nearRetirement': {
                'title': 'התאמת תיק לפרישה קרובה',
                'description': 'אתה מתקרב לפרישה. מומלץ להפחית סיכון',
                'action': 'העבר נכסים למכשירים סולידיים יותר',
            },
            'reduceRisk': {
                'title': 'הפחתת סיכון',
                'description': 'הקצאת המניות הנוכחית ({current}%) גבוהה מהמומלץ ({optimal}%)',
                'action': 'שקול מכירת חלק מהמניות והעברה לאג"ח',
            },
            'improveDiversification': {
                'title': 'שיפור פיזור',
                'description': 'התיק שלך מרוכז מדי בנכסים מעטים',
                'action': 'הוסף נכסים מסוגים שונים לפיזור סיכון',
            },
            'reduceCash': {
                'title': 'הפחתת מזומן',
                'description': 'יש לך {percentage}% במזומן - גבוה מדי',
                'action': 'השקע חלק מהמזומן בנכסים מניבים',
            },
            'addInternational': {
                'title': 'הוספת חשיפה בינלאומית',
                'description': 'חשיפה נמוכה לשווקים בינלאומיים',
                'action': 'שקול הוספת מניות או קרנות בינלאומיות',
            },
        },
        'actions': {'buy': 'רכוש', 'sell': 'מכור'},
        'reasons': {'highPriority': 'סטייה משמעותית מהיעד', 'rebalancing': 'איזון תיק'},
    },
    'en': {
        'recommendations': {
            'nearRetirement': {
                'title': 'Adjust Portfolio for Near Retirement',
                'description': 'You are approaching retirement. Consider reducing risk',
                'action': 'Shift assets to more conservative instruments',
            },
            'reduceRisk': {
                'title': 'Reduce Risk',
                'description': 'Current stock allocation ({current}%) is higher than recommended ({optimal}%)',
                'action': 'Consider selling some stocks and moving to bonds',
            },
            'improveDiversification': {
                'title': 'Improve Diversification',
                'description': 'Your portfolio is too concentrated in few assets',
                'action': 'Add different asset types to spread risk',
            },
            'reduceCash': {
                'title': 'Reduce Cash Holdings',
                'description': 'You have {percentage}% in cash - too high',
                'action': 'Invest some cash in income-producing assets',
            },
            'addInternational': {
                'title': 'Add International Exposure',
                'description': 'Low exposure to international markets',
                'action': 'Consider adding international stocks or funds',
            },
        },
        'actions': {'buy': 'Buy', 'sell': 'Sell'},
        'reasons': {'highPriority': 'Significant deviation from target', 'rebalancing': 'Portfolio rebalancing'},
    },
}


def empty_portfolio() -> Portfolio:
    return {
        'stocks': {'domestic': 0.0, 'international': 0.0, 'emerging': 0.0},
        'bonds': {'government': 0.0, 'corporate': 0.0, 'highYield': 0.0},
        'alternatives': {'realEstate': 0.0, 'commodities': 0.0, 'crypto': 0.0},
        'cash': {'savings': 0.0},
    }


def portfolio_total(portfolio: Portfolio) -> float:
    return sum(sum(category.values()) for category in portfolio.values())


def _stock_total(portfolio: Portfolio) -> float:
    stocks = portfolio.get('stocks', {})
    return stocks.get('domestic', 0) + stocks.get('international', 0) + stocks.get('emerging', 0)


class PortfolioOptimizer:
    """
    Age- and risk-based asset allocation, rebalancing actions and portfolio metrics.
    Holds only reference data; no method mutates the portfolios passed to it.
    """
    def __init__(self,
                 asset_classes: Optional[Dict[str, Dict[str, AssetClass]]] = None,
                 model_portfolios: Optional[Dict[str, Portfolio]] = None):
        self.asset_classes = asset_classes if asset_classes is not None else ASSET_CLASSES
        self.model_portfolios = model_portfolios if model_portfolios is not None else MODEL_PORTFOLIOS

    @staticmethod
    def _content(language: str) -> Dict[str, Any]:
        return CONTENT.get(language, CONTENT['en'])

    @staticmethod
    def calculate_total_assets(inputs: PlannerInputs) -> float:
        return (inputs.current_savings + inputs.current_personal_portfolio + inputs.current_real_estate
                + inputs.current_crypto + inputs.current_training_fund)

    def optimize_portfolio(self, inputs: PlannerInputs, language: str = 'en') -> Dict[str, Any]:
        """Runs the full pipeline: current -> optimal -> rebalancing -> metrics -> advice."""
        current_age = int(inputs.current_age or DEFAULT_CURRENT_AGE)
        retirement_age = int(inputs.retirement_age or DEFAULT_RETIREMENT_AGE)
        risk_tolerance = inputs.risk_tolerance or 'moderate'

        current = self.parse_current_portfolio(inputs)
        optimal = self.calculate_optimal_allocation(current_age, retirement_age, risk_tolerance, inputs)
        actions = self.calculate_rebalancing(current, optimal, inputs)

        return {
            'currentAllocation': current,
            'optimalAllocation': optimal,
            'rebalancingActions': actions,
            'currentMetrics': self.calculate_portfolio_metrics(current),
            'optimalMetrics': self.calculate_portfolio_metrics(optimal),
            'recommendations': self.generate_recommendations(current, optimal, inputs, language),
            'implementationPlan': self.create_implementation_plan(actions, language),
        }

    def parse_current_portfolio(self, inputs: PlannerInputs) -> Portfolio:
        """
        Derives current allocation percentages from balances. Pension and personal
        portfolio are split stocks/bonds by stock_percentage, each side 60/40.
        Whatever is left unallocated is cash.
        """
        total_assets = self.calculate_total_assets(inputs)
        portfolio = empty_portfolio()
        if total_assets == 0:
            return portfolio

        stock_pct = inputs.stock_percentage if inputs.stock_percentage is not None else default_stock_percentage
        invested = inputs.current_personal_portfolio + inputs.current_savings
        stock_value = invested * stock_pct / 100
        bond_value = invested * (100 - stock_pct) / 100

        portfolio['stocks']['domestic'] = stock_value * 0.6 / total_assets * 100
        portfolio['stocks']['international'] = stock_value * 0.4 / total_assets * 100
        portfolio['bonds']['government'] = bond_value * 0.6 / total_assets * 100
        portfolio['bonds']['corporate'] = bond_value * 0.4 / total_assets * 100
        portfolio['alternatives']['realEstate'] = inputs.current_real_estate / total_assets * 100
        portfolio['alternatives']['crypto'] = inputs.current_crypto / total_assets * 100

        portfolio['cash']['savings'] = max(0.0, 100 - portfolio_total(portfolio))
        return portfolio

    def calculate_optimal_allocation(
        self,
        current_age: float,
        retirement_age: float,
        risk_tolerance: str,
        inputs: Optional[PlannerInputs] = None,
    ) -> Portfolio:
        """
        Model portfolio for the risk level, moved along the glide path.

        Args:
            current_age / retirement_age: Define the years left to retirement.
            risk_tolerance: conservative | moderate | aggressive (others use moderate).
            inputs: Optional; holding real estate keeps a 5% real-estate floor.

        Returns:
            Portfolio whose percentages sum to 100.
        """
        model = self.model_portfolios.get(risk_tolerance)
        if model is None:
            logger.debug(f"No model portfolio for '{risk_tolerance}', using moderate")
            model = self.model_portfolios['moderate']
        portfolio = copy.deepcopy(model)

        years_to_retirement = parse_or_zero(retirement_age) - parse_or_zero(current_age)
        age_factor = min(max(years_to_retirement / glide_path_years, 0), 1)
        stock_reduction = (1 - age_factor) * max_glide_path_reduction

        total_stocks = _stock_total(portfolio)
        stock_adjustment = stock_reduction / total_stocks if total_stocks > 0 else 0
        for asset in portfolio['stocks']:
            portfolio['stocks'][asset] *= (1 - stock_adjustment)

        portfolio['bonds']['government'] += stock_reduction * 0.7
        portfolio['bonds']['corporate'] += stock_reduction * 0.3

        if inputs is not None and inputs.current_real_estate > 0:
            portfolio['alternatives']['realEstate'] = max(5, portfolio['alternatives']['realEstate'])

        if years_to_retirement < 10:
            portfolio['cash']['savings'] = max(5, portfolio['cash']['savings'])

        total = portfolio_total(portfolio)
        if total > 0 and total != 100:
            factor = 100 / total
            for category in portfolio.values():
                for asset in category:
                    category[asset] *= factor

        return portfolio

    def calculate_rebalancing(
        self,
        current: Portfolio,
        optimal: Portfolio,
        inputs: Optional[PlannerInputs] = None,
    ) -> List[Dict[str, Any]]:
        """One buy/sell action per asset drifting more than the threshold from target."""
        total_assets = self.calculate_total_assets(inputs) if inputs is not None else 0.0
        actions = []

        for category, assets in optimal.items():
            for asset, target in assets.items():
                current_pct = current.get(category, {}).get(asset, 0) or 0
                target_pct = target or 0
                difference = target_pct - current_pct

                if abs(difference) > rebalancing_threshold:
                    actions.append({
                        'category': category,
                        'asset': asset,
                        'action': 'buy' if difference > 0 else 'sell',
                        'currentPercentage': current_pct,
                        'targetPercentage': target_pct,
                        'differencePercentage': difference,
                        'amount': abs(difference / 100 * total_assets),
                        # A drift of exactly the threshold already counts as high priority
                        'priority': 'high' if abs(difference) >= high_priority_threshold else 'medium',
                    })

        actions.sort(key=lambda a: (a['priority'] != 'high', -abs(a['differencePercentage'])))
        return actions

    def calculate_portfolio_metrics(self, portfolio: Portfolio) -> Dict[str, float]:
        """
        Expected return, volatility, Sharpe ratio, diversification and risk scores.

        Volatility treats assets as independent: sqrt(sum((w * sigma)^2)).
        """
        weights, returns, vols = [], [], []
        for category, assets in portfolio.items():
            for asset, pct in assets.items():
                asset_data = self.asset_classes.get(category, {}).get(asset)
                if asset_data is None or not pct or pct <= 0:
                    continue
                weights.append(pct / 100)
                returns.append(asset_data.expected_return)
                vols.append(asset_data.volatility)

        w = np.array(weights, dtype=float)
        expected_return = float(np.dot(w, returns)) if w.size else 0.0
        variance = float(np.sum((w * np.array(vols, dtype=float)) ** 2)) if w.size else 0.0
        volatility = float(np.sqrt(variance))
        sharpe = (expected_return - risk_free_rate) / volatility if volatility > 0 else 0.0

        return {
            'expectedReturn': expected_return,
            'volatility': volatility,
            'sharpeRatio': sharpe,
            'diversificationScore': self.calculate_diversification_score(portfolio),
            'riskScore': self.calculate_risk_score(portfolio),
        }

    @staticmethod
    def calculate_diversification_score(portfolio: Portfolio) -> int:
        allocations = [pct for assets in portfolio.values() for pct in assets.values() if pct and pct > 0]
        asset_count = len(allocations)
        max_allocation = max(allocations, default=0)

        score = 100.0
        if max_allocation > 40:
            score -= max_allocation - 40
        score = min(100.0, score + asset_count * 5)
        if asset_count < 3:
            score -= 20

        return int(min(max(round(score), 0), 100))

    @staticmethod
    def calculate_risk_score(portfolio: Portfolio) -> int:
        alternatives = portfolio.get('alternatives', {})
        alternative_total = (alternatives.get('realEstate', 0) + alternatives.get('commodities', 0)
                             + alternatives.get('crypto', 0))

        risk = _stock_total(portfolio) * 0.7 + alternative_total * 0.3
        crypto = alternatives.get('crypto', 0)
        if crypto > 5:
            risk += crypto * 0.5

        return int(min(max(round(risk), 0), 100))

    def generate_recommendations(
        self,
        current: Portfolio,
        optimal: Portfolio,
        inputs: PlannerInputs,
        language: str = 'en',
    ) -> List[Dict[str, Any]]:
        text = self._content(language)['recommendations']
        recommendations = []

        def add(rec_type: str, key: str, priority: str, **fmt):
            item = text[key]
            recommendations.append({
                'type': rec_type,
                'priority': priority,
                'title': item['title'],
                'description': item['description'].format(**fmt) if fmt else item['description'],
                'action': item['action'],
            })

        years_to_retirement = (int(inputs.retirement_age or DEFAULT_RETIREMENT_AGE)
                               - int(inputs.current_age or DEFAULT_CURRENT_AGE))
        if years_to_retirement < 10:
            add('age_based', 'nearRetirement', 'high')

        current_stocks = _stock_total(current)
        optimal_stocks = _stock_total(optimal)
        if current_stocks > optimal_stocks + 10:
            add('risk_reduction', 'reduceRisk', 'high',
                current=round(current_stocks), optimal=round(optimal_stocks))

        if self.calculate_diversification_score(current) < 60:
            add('diversification', 'improveDiversification', 'medium')

        cash = current.get('cash', {}).get('savings', 0)
        if cash > 20:
            add('cash_reduction', 'reduceCash', 'medium', percentage=round(cash))

        stocks = current.get('stocks', {})
        if stocks.get('international', 0) + stocks.get('emerging', 0) < 15:
            add('international', 'addInternational', 'low')

        return recommendations

    def create_implementation_plan(self, actions: List[Dict[str, Any]], language: str = 'en') -> Dict[str, List]:
        """Buckets rebalancing actions into immediate / shortTerm / longTerm steps."""
        content = self._content(language)
        plan = {'immediate': [], 'shortTerm': [], 'longTerm': []}

        for action in actions:
            asset_data = self.asset_classes.get(action['category'], {}).get(action['asset'])
            name = asset_data.name.get(language, asset_data.name['en']) if asset_data else action['asset']
            step = {
                'action': content['actions'][action['action']],
                'asset': name,
                'amount': action['amount'],
                'percentage': action['differencePercentage'],
                'reason': (content['reasons']['highPriority'] if action['priority'] == 'high'
                           else content['reasons']['rebalancing']),
            }

            if action['priority'] == 'high':
                plan['immediate'].append(step)
            elif abs(action['differencePercentage']) > 7:
                plan['shortTerm'].append(step)
            else:
                plan['longTerm'].append(step)

        return plan


def optimize_portfolio(inputs: PlannerInputs, language: str = 'en') -> Dict[str, Any]:
    return PortfolioOptimizer().optimize_portfolio(inputs, language)
