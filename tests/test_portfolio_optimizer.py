"""
Tests for the portfolio optimizer.
"""

import copy

import pytest

from models import PlannerInputs
from config.market_assumptions import MODEL_PORTFOLIOS
from engine.portfolio_optimizer import PortfolioOptimizer, optimize_portfolio, portfolio_total


@pytest.fixture
def optimizer():
    return PortfolioOptimizer()


@pytest.fixture
def balanced_inputs():
    return PlannerInputs(
        current_age=40,
        retirement_age=67,
        current_savings=400_000,
        current_personal_portfolio=200_000,
        current_real_estate=300_000,
        current_crypto=20_000,
        current_training_fund=80_000,
    )


class TestOptimalAllocation:

    @pytest.mark.parametrize("risk", ['conservative', 'moderate', 'aggressive'])
    @pytest.mark.parametrize("age", [20, 35, 50, 60, 66])
    def test_allocation_sums_to_100(self, optimizer, risk, age):
        portfolio = optimizer.calculate_optimal_allocation(age, 67, risk)
        assert portfolio_total(portfolio) == pytest.approx(100, abs=0.01)

    def test_model_portfolios_not_mutated(self, optimizer):
        before = copy.deepcopy(MODEL_PORTFOLIOS)
        optimizer.calculate_optimal_allocation(60, 67, 'aggressive', PlannerInputs(current_real_estate=1))
        assert MODEL_PORTFOLIOS == before

    def test_glide_path_reduces_stocks(self, optimizer):
        young = optimizer.calculate_optimal_allocation(25, 67, 'moderate')
        old = optimizer.calculate_optimal_allocation(62, 67, 'moderate')
        assert sum(old['stocks'].values()) < sum(young['stocks'].values())

    def test_no_reduction_beyond_glide_path(self, optimizer):
        portfolio = optimizer.calculate_optimal_allocation(20, 67, 'moderate')
        assert portfolio == MODEL_PORTFOLIOS['moderate']

    def test_near_retirement_holds_cash(self, optimizer):
        portfolio = optimizer.calculate_optimal_allocation(60, 67, 'moderate')
        assert portfolio['cash']['savings'] > 0

    def test_unknown_risk_uses_moderate(self, optimizer):
        assert (optimizer.calculate_optimal_allocation(30, 67, 'yolo')
                == optimizer.calculate_optimal_allocation(30, 67, 'moderate'))


class TestRebalancing:

    def test_single_sell_action(self, optimizer):
        optimal = copy.deepcopy(MODEL_PORTFOLIOS['aggressive'])
        current = copy.deepcopy(optimal)
        current['stocks']['domestic'] = 50
        assert optimal['stocks']['domestic'] == 40

        actions = optimizer.calculate_rebalancing(current, optimal)
        assert len(actions) == 1
        action = actions[0]
        assert action['asset'] == 'domestic'
        assert action['action'] == 'sell'
        assert action['differencePercentage'] == pytest.approx(-10)
        assert action['priority'] == 'high'

    def test_small_drift_ignored(self, optimizer):
        optimal = copy.deepcopy(MODEL_PORTFOLIOS['moderate'])
        current = copy.deepcopy(optimal)
        current['bonds']['government'] += 5
        assert optimizer.calculate_rebalancing(current, optimal) == []

    def test_high_priority_first(self, optimizer):
        optimal = copy.deepcopy(MODEL_PORTFOLIOS['moderate'])
        current = copy.deepcopy(optimal)
        current['stocks']['domestic'] += 7
        current['bonds']['government'] -= 12
        actions = optimizer.calculate_rebalancing(current, optimal)
        assert [a['priority'] for a in actions] == ['high', 'medium']
        assert actions[0]['action'] == 'buy'

    def test_amount_uses_total_assets(self, optimizer, balanced_inputs):
        optimal = copy.deepcopy(MODEL_PORTFOLIOS['aggressive'])
        current = copy.deepcopy(optimal)
        current['stocks']['domestic'] = 50
        action = optimizer.calculate_rebalancing(current, optimal, balanced_inputs)[0]
        assert action['amount'] == pytest.approx(0.10 * 1_000_000)


class TestMetrics:

    def test_metrics_idempotent(self, optimizer):
        portfolio = copy.deepcopy(MODEL_PORTFOLIOS['moderate'])
        snapshot = copy.deepcopy(portfolio)
        first = optimizer.calculate_portfolio_metrics(portfolio)
        second = optimizer.calculate_portfolio_metrics(portfolio)
        assert first == second
        assert portfolio == snapshot

    @pytest.mark.parametrize("balances", [
        {},
        {'current_savings': 1_000_000},
        {'current_crypto': 5_000_000, 'current_savings': 1},
        {'current_real_estate': 2_000_000, 'current_personal_portfolio': 100_000},
        {'current_savings': 100, 'current_training_fund': 100_000, 'stock_percentage': 0},
    ])
    def test_diversification_score_in_range(self, optimizer, balances):
        current = optimizer.parse_current_portfolio(PlannerInputs(**balances))
        metrics = optimizer.calculate_portfolio_metrics(current)
        assert 0 <= metrics['diversificationScore'] <= 100
        assert 0 <= metrics['riskScore'] <= 100

    def test_empty_portfolio_metrics(self, optimizer):
        metrics = optimizer.calculate_portfolio_metrics(optimizer.parse_current_portfolio(PlannerInputs()))
        assert metrics['expectedReturn'] == 0
        assert metrics['volatility'] == 0
        assert metrics['sharpeRatio'] == 0

    def test_single_asset_metrics(self, optimizer):
        portfolio = {'stocks': {'domestic': 100}}
        metrics = optimizer.calculate_portfolio_metrics(portfolio)
        assert metrics['expectedReturn'] == pytest.approx(9.5)
        assert metrics['volatility'] == pytest.approx(18.5)
        assert metrics['sharpeRatio'] == pytest.approx((9.5 - 2.0) / 18.5)


class TestCurrentPortfolio:

    def test_parse_sums_to_100(self, optimizer, balanced_inputs):
        current = optimizer.parse_current_portfolio(balanced_inputs)
        assert portfolio_total(current) == pytest.approx(100)

    def test_training_fund_counts_as_cash(self, optimizer):
        current = optimizer.parse_current_portfolio(PlannerInputs(current_training_fund=50_000))
        assert current['cash']['savings'] == pytest.approx(100)


class TestOptimizePortfolio:

    def test_full_pipeline(self, balanced_inputs):
        result = optimize_portfolio(balanced_inputs)
        assert set(result) == {'currentAllocation', 'optimalAllocation', 'rebalancingActions',
                               'currentMetrics', 'optimalMetrics', 'recommendations', 'implementationPlan'}
        plan = result['implementationPlan']
        assert len(plan['immediate']) + len(plan['shortTerm']) + len(plan['longTerm']) == len(
            result['rebalancingActions'])

    def test_hebrew_plan(self, balanced_inputs):
        result = optimize_portfolio(balanced_inputs, language='he')
        for step in result['implementationPlan']['immediate']:
            assert step['action'] in ('רכוש', 'מכור')
