# engine/__init__.py

# Expose the main projection entry point, which orchestrates all helpers.
from .accumulation import calculate_retirement, calculate_progressive_savings
from .income_calculator import RetirementIncome, calculate_retirement_income

# Other engines used directly by callers
from .portfolio_optimizer import PortfolioOptimizer, optimize_portfolio
from .monte_carlo import run_simulation
