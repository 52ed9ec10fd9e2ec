# engine/market_generator.py
#
# This code generates yearly market returns and inflation for the risk simulation.
# Each simulated year falls into an economic regime (recession, expansion, boom,
# stagflation) that scales the correlated base returns of every vehicle.
#

from typing import Optional

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from config.market_assumptions import (
    MC_ASSET_PARAMS,
    ECONOMIC_SCENARIOS,
    corr_matrix as default_corr_matrix,
)

# Order of the correlated vehicles in the correlation matrix
CORRELATED_ASSETS = ('pension', 'training_fund', 'stocks', 'bonds', 'real_estate')

# Which regime multiplier drives each simulated vehicle
REGIME_DRIVERS = {
    'pension': 'stock',
    'training_fund': 'bond',
    'personal_portfolio': 'stock',
    'real_estate': 'real_estate',
    'crypto': 'stock',
}


def draw_regimes(rng: np.random.Generator, nsims: int, n_years: int,
                 scenarios: dict = ECONOMIC_SCENARIOS) -> NDArray[np.int_]:
    """
    Draws one economic regime per simulated year.

    Returns:
        [nsims, n_years] array of indices into list(scenarios).
    """
    probabilities = np.array([params['probability'] for params in scenarios.values()], dtype=float)
    probabilities = probabilities / probabilities.sum()
    return rng.choice(len(probabilities), size=(nsims, n_years), p=probabilities)


def regime_multipliers(regimes: NDArray[np.int_], driver: str,
                       scenarios: dict = ECONOMIC_SCENARIOS) -> NDArray[np.float64]:
    """Maps the regime index array to the chosen multiplier ('stock', 'bond', 'real_estate', 'inflation')."""
    table = np.array([params[driver] for params in scenarios.values()], dtype=float)
    return table[regimes]


def lognormal_returns(rng: np.random.Generator, mu: float, sigma: float,
                      size: tuple) -> NDArray[np.float64]:
    """
    Yearly returns whose gross growth (1 + r) is lognormal with mean 1 + mu.

    Args:
        mu: Expected yearly return as a fraction.
        sigma: Log-space volatility as a fraction.
    """
    scale = np.exp(np.log1p(mu) - sigma ** 2 / 2)
    growth = stats.lognorm(s=sigma, scale=scale).rvs(size=size, random_state=rng)
    return growth - 1


def generate_returns(
    rng: np.random.Generator,
    nsims: int,
    n_years: int,
    expected_returns: Optional[dict] = None,
    stock_share: float = 0.6,
    corr_matrix: NDArray[np.float64] = default_corr_matrix,
    asset_params: dict = MC_ASSET_PARAMS,
    scenarios: dict = ECONOMIC_SCENARIOS,
) -> dict:
    """
    Generate Monte Carlo yearly returns per vehicle plus inflation,
    using correlated normal shocks scaled by the year's economic regime.

    Args:
        rng: Seeded numpy Generator; all randomness comes from it.
        nsims: The number of Monte Carlo simulations to run.
        n_years: The number of years to simulate.
        expected_returns: Overrides of the expected yearly return (percent) keyed
            by vehicle ('pension', 'training_fund', 'real_estate', 'crypto').
        stock_share: Fraction of the personal portfolio held in stocks.
        corr_matrix: 5x5 correlation matrix for CORRELATED_ASSETS.

    Returns:
        dict of [nsims, n_years] arrays (fractions) for pension, training_fund,
        personal_portfolio, real_estate, crypto and inflation, plus 'regime'
        (indices into list(scenarios)).
    """
    expected_returns = expected_returns or {}

    def mu_sigma(asset):
        params = asset_params[asset]
        mu = expected_returns.get(asset) or params['mu']
        return mu / 100, params['sigma'] / 100

    # --- 1. Economic Regimes ---
    regimes = draw_regimes(rng, nsims, n_years, scenarios)

    # --- 2. Correlated Base Returns ---
    L = np.linalg.cholesky(corr_matrix)
    # Generate random shocks: [nsims, n_years, 5 assets] @ [5 assets, 5 assets]
    shocks = rng.standard_normal((nsims, n_years, len(CORRELATED_ASSETS))) @ L.T

    base = {}
    for i, asset in enumerate(CORRELATED_ASSETS):
        mu, sigma = mu_sigma(asset)
        base[asset] = mu + sigma * shocks[:, :, i]

    stock_share = min(max(stock_share, 0.0), 1.0)
    base['personal_portfolio'] = stock_share * base['stocks'] + (1 - stock_share) * base['bonds']

    # Crypto is heavy-tailed and drawn on its own
    mu, sigma = mu_sigma('crypto')
    base['crypto'] = lognormal_returns(rng, mu, sigma, (nsims, n_years))

    # --- 3. Apply Regime Multipliers ---
    # A vehicle can lose at most everything in a year
    returns = {
        vehicle: np.maximum(base[vehicle] * regime_multipliers(regimes, driver, scenarios), -1.0)
        for vehicle, driver in REGIME_DRIVERS.items()
    }

    # --- 4. Inflation (never negative) ---
    infl = asset_params['inflation']
    draws = rng.normal(infl['mu'], infl['sigma'], size=(nsims, n_years))
    returns['inflation'] = np.maximum(0.0, draws * regime_multipliers(regimes, 'inflation', scenarios)) / 100

    returns['regime'] = regimes
    return returns


def cumulative_inflation(yearly_inflation: NDArray) -> NDArray:
    """
    Cumulative price index per simulation and year.

    Args:
        yearly_inflation: [nsims, n_years] yearly inflation rates (fractions).

    Returns:
        [nsims, n_years] index starting from 1.0 before the first year.
    """
    return np.cumprod(1 + yearly_inflation, axis=1)
