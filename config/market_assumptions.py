# =============================================================================
# Market Info used in projections, portfolio analysis and simulations
# =============================================================================
import numpy as np

from models import AssetClass, IndexAllocation

# -----------------------------------------------------------------------------
# Historical index returns (% per year), keyed by lookback horizon in years
# -----------------------------------------------------------------------------
HISTORICAL_RETURNS = {
    5: {'Tel Aviv 35': 8.2, 'S&P 500': 11.3, 'NASDAQ': 13.1, 'Government Bonds': 3.8,
        'Corporate Bonds': 5.2, 'Real Estate': 6.5, 'Gold': 4.1, 'Commodities': 3.9},
    10: {'Tel Aviv 35': 7.8, 'S&P 500': 10.9, 'NASDAQ': 12.7, 'Government Bonds': 4.2,
         'Corporate Bonds': 5.8, 'Real Estate': 7.1, 'Gold': 5.2, 'Commodities': 4.5},
    15: {'Tel Aviv 35': 7.5, 'S&P 500': 10.5, 'NASDAQ': 11.8, 'Government Bonds': 4.5,
         'Corporate Bonds': 6.1, 'Real Estate': 7.3, 'Gold': 5.8, 'Commodities': 5.1},
    20: {'Tel Aviv 35': 7.2, 'S&P 500': 10.0, 'NASDAQ': 11.2, 'Government Bonds': 4.8,
         'Corporate Bonds': 6.4, 'Real Estate': 7.5, 'Gold': 6.2, 'Commodities': 5.4},
    25: {'Tel Aviv 35': 6.9, 'S&P 500': 9.7, 'NASDAQ': 10.8, 'Government Bonds': 5.0,
         'Corporate Bonds': 6.6, 'Real Estate': 7.6, 'Gold': 6.4, 'Commodities': 5.6},
    30: {'Tel Aviv 35': 6.7, 'S&P 500': 9.5, 'NASDAQ': 10.5, 'Government Bonds': 5.2,
         'Corporate Bonds': 6.8, 'Real Estate': 7.8, 'Gold': 6.6, 'Commodities': 5.8},
}

# Used when a plan carries no investment track for the pension / training fund
DEFAULT_PENSION_ALLOCATION = [
    IndexAllocation(index='Mixed Portfolio', percentage=100, historical_return=6.5),
]
DEFAULT_TRAINING_FUND_ALLOCATION = [
    IndexAllocation(index='Conservative Portfolio', percentage=100, historical_return=5.5),
]

# -----------------------------------------------------------------------------
# Risk tolerance scales every expected return
# -----------------------------------------------------------------------------
RISK_SCENARIOS = {
    'veryConservative': {'multiplier': 0.7, 'name': {'he': 'שמרני מאוד', 'en': 'Very Conservative'}},
    'conservative': {'multiplier': 0.85, 'name': {'he': 'שמרני', 'en': 'Conservative'}},
    'moderate': {'multiplier': 1.0, 'name': {'he': 'בינוני', 'en': 'Moderate'}},
    'aggressive': {'multiplier': 1.15, 'name': {'he': 'אגרסיבי', 'en': 'Aggressive'}},
    'veryAggressive': {'multiplier': 1.3, 'name': {'he': 'אגרסיבי מאוד', 'en': 'Very Aggressive'}},
}

# -----------------------------------------------------------------------------
# Decumulation: annual withdrawal rate per vehicle
# -----------------------------------------------------------------------------
WITHDRAWAL_RATES = {
    'pension': 0.04,
    'training_fund': 0.05,
    'personal_portfolio': 0.04,
    'crypto': 0.04,
    'real_estate': 0.04,
}
DEFAULT_PORTFOLIO_TAX_RATE = 25.0   # percent, capital gains on portfolio withdrawals
DEFAULT_PENSION_TAX_RATE = 0.25     # fraction, when no work period resolves

# Contribution defaults for a partner described only by salary (percent of salary)
DEFAULT_EMPLOYEE_PENSION_RATE = 7.0
DEFAULT_EMPLOYER_PENSION_RATE = 14.333
DEFAULT_TRAINING_FUND_RATE = 10.0

# Defaults for the year-by-year savings projection (percent)
PROGRESSIVE_DEFAULT_RETURNS = {
    'pension': 6.0,
    'training_fund': 6.0,
    'personal_portfolio': 7.0,
}
PROGRESSIVE_BALANCE_CAPS = {
    'pension': 50_000_000,
    'training_fund': 20_000_000,
    'personal_portfolio': 100_000_000,
}

# -----------------------------------------------------------------------------
# Portfolio optimizer reference data (percent)
# -----------------------------------------------------------------------------
ASSET_CLASSES = {
    'stocks': {
        'domestic': AssetClass({'en': 'Domestic Stocks', 'he': 'מניות מקומיות'}, 9.5, 18.5, 1.0),
        'international': AssetClass({'en': 'International Stocks', 'he': 'מניות בינלאומיות'}, 8.5, 20.0, 0.75),
        'emerging': AssetClass({'en': 'Emerging Market Stocks', 'he': 'מניות שווקים מתעוררים'}, 10.5, 25.0, 0.65),
    },
    'bonds': {
        'government': AssetClass({'en': 'Government Bonds', 'he': 'אג"ח ממשלתי'}, 3.5, 5.0, -0.1),
        'corporate': AssetClass({'en': 'Corporate Bonds', 'he': 'אג"ח קונצרני'}, 5.0, 8.0, 0.2),
        'highYield': AssetClass({'en': 'High Yield Bonds', 'he': 'אג"ח תשואה גבוהה'}, 7.0, 12.0, 0.4),
    },
    'alternatives': {
        'realEstate': AssetClass({'en': 'Real Estate', 'he': 'נדל"ן'}, 7.5, 15.0, 0.3),
        'commodities': AssetClass({'en': 'Commodities', 'he': 'סחורות'}, 6.0, 20.0, 0.2),
        'crypto': AssetClass({'en': 'Cryptocurrency', 'he': 'מטבעות דיגיטליים'}, 15.0, 60.0, 0.1),
    },
    'cash': {
        'savings': AssetClass({'en': 'Cash & Savings', 'he': 'מזומן וחיסכון'}, 2.0, 1.0, 0.0),
    },
}

MODEL_PORTFOLIOS = {
    'conservative': {
        'stocks': {'domestic': 15, 'international': 10, 'emerging': 0},
        'bonds': {'government': 40, 'corporate': 25, 'highYield': 0},
        'alternatives': {'realEstate': 5, 'commodities': 0, 'crypto': 0},
        'cash': {'savings': 5},
    },
    'moderate': {
        'stocks': {'domestic': 30, 'international': 20, 'emerging': 5},
        'bonds': {'government': 20, 'corporate': 15, 'highYield': 5},
        'alternatives': {'realEstate': 5, 'commodities': 0, 'crypto': 0},
        'cash': {'savings': 0},
    },
    'aggressive': {
        'stocks': {'domestic': 40, 'international': 25, 'emerging': 10},
        'bonds': {'government': 5, 'corporate': 10, 'highYield': 5},
        'alternatives': {'realEstate': 3, 'commodities': 2, 'crypto': 0},
        'cash': {'savings': 0},
    },
}

risk_free_rate = 2.0
rebalancing_threshold = 5.0
high_priority_threshold = 10.0
glide_path_years = 35
max_glide_path_reduction = 20.0
default_stock_percentage = 60.0

# -----------------------------------------------------------------------------
# Inflation
# -----------------------------------------------------------------------------
INFLATION_DATA = {
    'israel': {
        'historicalAverage': 2.1, 'recentAverage': 3.2, 'currentProjection': 2.5,
        'targetRate': 2.0, 'volatility': 1.8,
        'periods': {'2020': 0.6, '2021': 2.8, '2022': 4.4, '2023': 4.3, '2024': 2.9},
    },
    'usa': {
        'historicalAverage': 2.3, 'recentAverage': 4.1, 'currentProjection': 2.2,
        'targetRate': 2.0, 'volatility': 1.5,
        'periods': {'2020': 1.2, '2021': 4.7, '2022': 8.0, '2023': 4.1, '2024': 3.2},
    },
    'eurozone': {
        'historicalAverage': 1.7, 'recentAverage': 3.4, 'currentProjection': 2.1,
        'targetRate': 2.0, 'volatility': 1.3,
        'periods': {'2020': 0.3, '2021': 2.6, '2022': 8.4, '2023': 5.4, '2024': 2.6},
    },
}

# Share of each vehicle's value that keeps pace with inflation
ASSET_INFLATION_PROTECTION = {
    'pension': 0.7,
    'training_fund': 0.6,
    'stocks': 0.8,
    'bonds': 0.3,
    'real_estate': 0.9,
    'crypto': 0.4,
    'cash': 0.0,
}

# Nominal returns assumed by the retirement inflation analysis when a plan leaves them blank
ANALYSIS_NOMINAL_RETURNS = {
    'pensionReturn': 7.0,
    'trainingFundReturn': 6.5,
    'personalPortfolioReturn': 8.0,
    'realEstateReturn': 6.0,
    'cryptoReturn': 15.0,
}
analysis_inflation_rate = 3.0
expense_adjustment_rate = 2.5

# -----------------------------------------------------------------------------
# Monte Carlo (annual, percent)
# -----------------------------------------------------------------------------
MC_ASSET_PARAMS = {
    'pension': {'mu': 7.0, 'sigma': 12.0},
    'training_fund': {'mu': 6.5, 'sigma': 10.0},
    'stocks': {'mu': 9.0, 'sigma': 16.0},
    'bonds': {'mu': 4.5, 'sigma': 6.0},
    'real_estate': {'mu': 6.0, 'sigma': 14.0},
    'crypto': {'mu': 15.0, 'sigma': 60.0},
    'inflation': {'mu': 2.5, 'sigma': 1.5},
}

# Economic regimes: yearly probability and return multipliers
ECONOMIC_SCENARIOS = {
    'recession': {'probability': 0.15, 'stock': -0.2, 'bond': 1.1, 'real_estate': -0.1, 'inflation': 0.5},
    'expansion': {'probability': 0.65, 'stock': 1.0, 'bond': 1.0, 'real_estate': 1.0, 'inflation': 1.0},
    'boom': {'probability': 0.15, 'stock': 1.5, 'bond': 0.8, 'real_estate': 1.3, 'inflation': 1.2},
    'stagflation': {'probability': 0.05, 'stock': 0.3, 'bond': -0.2, 'real_estate': 0.8, 'inflation': 2.0},
}

# Shock correlations for (pension, training fund, stocks, bonds, real estate).
# One-factor structure so the matrix stays positive definite.
corr_matrix = np.array([
    [1.00, 0.64, 0.77, 0.26, 0.43],
    [0.64, 1.00, 0.68, 0.23, 0.38],
    [0.77, 0.68, 1.00, 0.27, 0.45],
    [0.26, 0.23, 0.27, 1.00, 0.15],
    [0.43, 0.38, 0.45, 0.15, 1.00],
])

mc_withdrawal_rate = 0.04
mc_default_target_income = 10_000
mc_default_monthly_contribution = 1_000
mc_pension_contribution_share = 0.6
