# income_calculator.py
#
# Turns the balances accumulated at retirement into monthly net income
# (pension, training fund, portfolios, social security, additional income, partner)
# and scores it against the household's target.
#

import logging
from dataclasses import asdict
from typing import Any, Callable, Dict, Mapping, Optional

from models import CountryRules, IncomeParams, Person, PlannerInputs
from utils.numeric import safe_money, safe_precise_money, safe_rate, safe_round, safe_divide
from config.country_data import get_country_rules
from config.market_assumptions import (
    WITHDRAWAL_RATES,
    RISK_SCENARIOS,
    DEFAULT_PORTFOLIO_TAX_RATE,
    DEFAULT_PENSION_TAX_RATE,
    analysis_inflation_rate,
    expense_adjustment_rate,
)
from engine.tax_engine import AfterTaxAdditionalIncome, GrossAdditionalIncome, OTHER_INCOME_SOURCES, annualize_income
from engine.expense_calculator import (
    calculate_total_expenses,
    get_yearly_adjustment,
    generate_expense_summary_for_retirement,
)
from engine.inflation import calculate_inflation_analysis
from engine.tax_optimization import analyze_personal_tax_situation

logger = logging.getLogger(__name__)

InflationAnalysis = Callable[[PlannerInputs, float, Mapping[str, float]], Optional[Dict[str, Any]]]
TaxOptimization = Callable[[PlannerInputs], Optional[Dict[str, Any]]]

# Readiness lookup: (minimum income / target ratio, score), highest first
READINESS_LEVELS = [(1.2, 100), (1.0, 90), (0.8, 70), (0.6, 50), (0.4, 30)]
READINESS_FLOOR = 20
READINESS_UNKNOWN = 50


def calculate_readiness_score(total_net_income: float, target_monthly_income: float) -> int:
    """
    Maps income / target to a 0-100 readiness score.
    With no target the readiness cannot be evaluated and scores 50.
    """
    if not target_monthly_income:
        return READINESS_UNKNOWN
    ratio = total_net_income / target_monthly_income
    score = READINESS_FLOOR
    for threshold, level in READINESS_LEVELS:
        if ratio >= threshold:
            score = level
            break
    return min(max(score, 0), 100)


def goal_status(readiness_score: int) -> str:
    if readiness_score >= 90:
        return 'on_track'
    if readiness_score >= 50:
        return 'needs_attention'
    return 'at_risk'


def _source(monthly_net: float, monthly_tax: float = 0.0) -> Dict[str, int]:
    return {'monthly': safe_money(monthly_net), 'annual': safe_money(monthly_net * 12), 'tax': safe_money(monthly_tax)}


class RetirementIncome:
    """
    Retirement income calculator.

    Collaborators come in through the constructor:
        country_data: rules table (None -> the built-in table).
        additional_income: strategy with household()/partner() (None -> gross fallback).
        inflation_analysis / tax_optimization: optional analyses; None disables them,
            and a failing analysis yields None instead of aborting the result.
    """
    def __init__(self,
                 country_data: Optional[Mapping[str, CountryRules]] = None,
                 additional_income: Optional[Any] = AfterTaxAdditionalIncome(),
                 inflation_analysis: Optional[InflationAnalysis] = calculate_inflation_analysis,
                 tax_optimization: Optional[TaxOptimization] = analyze_personal_tax_situation):
        self.country_data = country_data
        if additional_income is None:
            additional_income = GrossAdditionalIncome()
        self.additional_income = additional_income
        self.inflation_analysis = inflation_analysis
        self.tax_optimization = tax_optimization

    def _rules(self, country: Optional[str]) -> Optional[CountryRules]:
        return get_country_rules(country, self.country_data, default=False)

    def _weighted_tax_rate(self, params: IncomeParams) -> float:
        """Growth-weighted pension tax rate over the work periods (a fraction)."""
        weighted = 0.0
        total_weight = 0.0
        for result in params.period_results:
            rules = self._rules(result.get('country')) if result else None
            if rules is None:
                logger.warning(f"Invalid period result or country data: {result}")
                continue
            weighted += rules.pension_tax * result.get('growth', 0)
            total_weight += result.get('growth', 0)

        if total_weight > 0:
            return weighted / total_weight

        first = params.work_periods[0] if params.work_periods else None
        rules = self._rules(first.country) if first is not None else None
        return rules.pension_tax if rules is not None else DEFAULT_PENSION_TAX_RATE

    def _additional_income(self, inputs: PlannerInputs) -> Dict[str, float]:
        """Household additional income with 'other' apportioned back to its sources."""
        result = self.additional_income.household(inputs)
        other = result.get('monthlyNetOther', 0) or 0

        gross = {source: annualize_income(getattr(inputs, f'{source}_income'),
                                          getattr(inputs, f'{source}_income_frequency'))
                 for source in OTHER_INCOME_SOURCES}
        gross_total = sum(gross.values())
        shares = {source: other * value / gross_total if gross_total > 0 else 0.0
                  for source, value in gross.items()}

        return {
            'bonus': result.get('monthlyNetBonus', 0) or 0,
            'rsu': result.get('monthlyNetRSU', 0) or 0,
            **shares,
        }

    def _partner_additional_income(self, inputs: PlannerInputs) -> float:
        if not inputs.is_couple:
            return 0.0
        return sum(self.additional_income.partner(inputs, key).get('totalMonthlyNet', 0) or 0
                   for key in ('partner1', 'partner2'))

    def _expenses(self, inputs: PlannerInputs, years_to_retirement: float):
        """Returns (base monthly expenses, yearly adjustment %, category breakdown or None)."""
        if inputs.expenses:
            adjustment = get_yearly_adjustment(inputs.expenses, inputs.inflation_rate)
            summary = generate_expense_summary_for_retirement(inputs, years_to_retirement)
            base = summary['currentMonthlyExpenses'] or calculate_total_expenses(inputs.expenses)
            return base, adjustment, summary['categoryBreakdown']

        adjustment = inputs.inflation_rate or expense_adjustment_rate
        if inputs.is_couple and inputs.joint_monthly_expenses > 0:
            return inputs.joint_monthly_expenses, adjustment, None
        return inputs.current_monthly_expenses, adjustment, None

    def _run_optional(self, name: str, func: Optional[Callable], *args) -> Optional[Dict[str, Any]]:
        if func is None:
            return None
        try:
            return func(*args)
        except Exception as e:
            logger.warning(f"{name} failed: {e}")
            return None

    def calculate_retirement_income(self, params: IncomeParams) -> Dict[str, Any]:
        """
        Computes the full retirement income record from accumulated balances.

        Args:
            params: Balances, work-period results and partner results at retirement.

        Returns:
            dict with camelCase keys: per-source gross/tax/net monthly figures,
            household totals, expenses, target, readinessScore, the nested
            retirementIncome / goalsAnalysis summaries and the optional analyses.
        """
        inputs = params.inputs
        years = params.years_to_retirement

        # 1. Gross monthly withdrawals
        monthly_pension = params.total_pension_savings * WITHDRAWAL_RATES['pension'] / 12
        monthly_training_fund = params.total_training_fund * WITHDRAWAL_RATES['training_fund'] / 12
        monthly_portfolio = params.total_personal_portfolio * WITHDRAWAL_RATES['personal_portfolio'] / 12
        monthly_crypto = params.total_crypto * WITHDRAWAL_RATES['crypto'] / 12
        monthly_real_estate = params.total_real_estate * WITHDRAWAL_RATES['real_estate'] / 12

        # 2-3. Taxes per vehicle
        weighted_tax_rate = self._weighted_tax_rate(params)

        if inputs.personal_portfolio_tax_rate is not None:
            portfolio_tax_rate = inputs.personal_portfolio_tax_rate
        elif inputs.portfolio_tax_rate is not None:
            portfolio_tax_rate = inputs.portfolio_tax_rate
        else:
            portfolio_tax_rate = DEFAULT_PORTFOLIO_TAX_RATE

        pension_tax = monthly_pension * weighted_tax_rate
        portfolio_tax = monthly_portfolio * portfolio_tax_rate / 100
        crypto_tax = monthly_crypto * inputs.crypto_tax_rate / 100
        real_estate_tax = monthly_real_estate * inputs.real_estate_tax_rate / 100

        net_pension = monthly_pension - pension_tax
        net_training_fund = monthly_training_fund
        net_portfolio = monthly_portfolio - portfolio_tax
        net_crypto = monthly_crypto - crypto_tax
        net_real_estate = monthly_real_estate - real_estate_tax + params.real_estate_rental_income

        # 4. Social security from the latest work period's country
        social_security = 0.0
        last_country = None
        if params.sorted_periods:
            last_country = self._rules(params.sorted_periods[-1].country)
            if last_country is not None:
                social_security = last_country.social_security
        if last_country is None:
            last_country = get_country_rules(None, self.country_data)

        # 5. Partner, mirrored with the same weighted rate and country
        partner_net_income = 0.0
        partner_social_security = 0.0
        partner_results = params.partner_results
        if partner_results is not None:
            partner = inputs.household.partner2 if inputs.is_couple else Person()
            p_pension = partner_results.total_pension_savings * WITHDRAWAL_RATES['pension'] / 12
            p_training_fund = partner_results.total_training_fund * WITHDRAWAL_RATES['training_fund'] / 12
            p_portfolio = partner_results.total_personal_portfolio * WITHDRAWAL_RATES['personal_portfolio'] / 12

            p_pension_tax = p_pension * weighted_tax_rate
            p_portfolio_tax_rate = partner.personal_portfolio_tax_rate
            if p_portfolio_tax_rate is None:
                p_portfolio_tax_rate = portfolio_tax_rate
            p_portfolio_tax = p_portfolio * p_portfolio_tax_rate / 100

            partner_social_security = last_country.social_security if last_country is not None else 0.0
            partner_net_income = (p_pension - p_pension_tax + p_training_fund + p_portfolio - p_portfolio_tax
                                  + partner_social_security)

        # 6. Additional income
        additional = self._additional_income(inputs)
        additional_total = sum(additional.values())
        partner_additional = self._partner_additional_income(inputs)

        individual_net_income = (net_pension + net_training_fund + social_security + net_portfolio
                                 + net_crypto + net_real_estate + additional_total)
        total_net_income = individual_net_income + partner_net_income + partner_additional

        # 7. Expenses at retirement
        base_expenses, yearly_adjustment, expense_breakdown = self._expenses(inputs, years)
        future_expenses = base_expenses * max(1 + yearly_adjustment / 100, 0.0) ** years
        remaining = total_net_income - future_expenses

        # 8. Target
        periods = params.sorted_periods or sorted(params.work_periods, key=lambda p: p.start_age)
        if periods:
            final_salary = periods[-1].salary
        else:
            final_salary = params.combined_income or inputs.current_monthly_salary
        target = final_salary * inputs.target_replacement / 100
        achieves_target = total_net_income >= target

        # 9. Readiness
        readiness = calculate_readiness_score(total_net_income, target)

        inflation_rate = inputs.inflation_rate or analysis_inflation_rate
        deflator = max(1 + inflation_rate / 100, 1e-9) ** years
        logger.debug(f"Retirement income: net={total_net_income:.0f}, target={target:.0f}, readiness={readiness}")

        # 10. Optional analyses
        inflation_analysis = self._run_optional('Inflation analysis', self.inflation_analysis, inputs, years, {
            'total_pension_savings': params.total_pension_savings,
            'total_training_fund': params.total_training_fund,
            'total_personal_portfolio': params.total_personal_portfolio,
            'total_crypto': params.total_crypto,
            'total_real_estate': params.total_real_estate,
            'total_net_income': total_net_income,
        })
        tax_optimization = self._run_optional('Tax optimization analysis', self.tax_optimization, inputs)

        target_gap = target - total_net_income
        risk_level = inputs.risk_tolerance or 'moderate'

        return {
            # Individual results
            'totalSavings': safe_money(params.total_pension_savings),
            'trainingFundValue': safe_money(params.total_training_fund),
            'personalPortfolioValue': safe_money(params.total_personal_portfolio),
            'currentCrypto': safe_money(params.total_crypto),
            'currentRealEstate': safe_money(params.total_real_estate),
            'monthlyPension': safe_money(monthly_pension),
            'monthlyTrainingFundIncome': safe_money(monthly_training_fund),
            'monthlyPersonalPortfolioIncome': safe_money(monthly_portfolio),
            'monthlyCryptoIncome': safe_money(monthly_crypto),
            'monthlyRealEstateIncome': safe_money(monthly_real_estate),
            'realEstateRentalIncome': safe_money(params.real_estate_rental_income),
            'pensionTax': safe_money(pension_tax),
            'personalPortfolioTax': safe_money(portfolio_tax),
            'cryptoTax': safe_money(crypto_tax),
            'realEstateTax': safe_money(real_estate_tax),
            'netPension': safe_money(net_pension),
            'netTrainingFundIncome': safe_money(net_training_fund),
            'netPersonalPortfolioIncome': safe_money(net_portfolio),
            'netCryptoIncome': safe_money(net_crypto),
            'netRealEstateIncome': safe_money(net_real_estate),
            'socialSecurity': safe_money(social_security),
            'individualNetIncome': safe_money(individual_net_income),

            # Partner
            'partnerResults': partner_results.to_dict() if partner_results is not None else None,
            'partnerNetIncome': safe_money(partner_net_income),
            'partnerSocialSecurity': safe_money(partner_social_security),

            # Additional income
            'annualBonusMonthly': safe_money(additional['bonus']),
            'quarterlyRSUMonthly': safe_money(additional['rsu']),
            'freelanceIncome': safe_money(additional['freelance']),
            'additionalRentalIncome': safe_money(additional['rental']),
            'dividendIncome': safe_round(additional['dividend']),
            'additionalIncomeTotal': safe_round(additional_total),
            'partnerAdditionalIncome': safe_round(partner_additional),

            # Household
            'totalNetIncome': safe_round(total_net_income),
            'monthlyIncome': safe_round(total_net_income),
            'monthlyRetirementIncome': safe_round(total_net_income),
            'isJointPlanning': inputs.is_couple,
            'yearsToRetirement': safe_round(years),

            'periodResults': params.period_results,
            'lastCountry': asdict(last_country) if last_country is not None else None,
            'weightedTaxRate': safe_rate(weighted_tax_rate * 100),
            'inflationAdjustedIncome': safe_precise_money(total_net_income / deflator),
            'trainingFundNetReturn': safe_rate(params.training_fund_net_return),
            'pensionWeightedReturn': safe_rate(params.pension_weighted_return),
            'trainingFundWeightedReturn': safe_rate(params.training_fund_weighted_return),
            'futureMonthlyExpenses': safe_money(future_expenses),
            'remainingAfterExpenses': safe_money(remaining),
            'remainingAfterExpensesInflationAdjusted': safe_precise_money(remaining / deflator),
            'targetMonthlyIncome': safe_round(target),
            'achievesTarget': bool(achieves_target),
            'targetGap': safe_round(target_gap),
            'riskLevel': risk_level,
            'riskMultiplier': RISK_SCENARIOS.get(risk_level, {}).get('multiplier', 1.0),

            'taxOptimization': tax_optimization,
            'inflationAnalysis': inflation_analysis,
            'readinessScore': readiness,

            'baseExpenses': safe_money(base_expenses),
            'expenseBreakdown': expense_breakdown,
            'yearlyExpenseAdjustment': safe_rate(yearly_adjustment),
            'hasDetailedExpenses': bool(inputs.expenses and len(inputs.expenses) > 1),

            'retirementIncome': {
                'pension': _source(net_pension, pension_tax),
                'trainingFund': _source(net_training_fund),
                'personalPortfolio': _source(net_portfolio, portfolio_tax),
                'crypto': _source(net_crypto, crypto_tax),
                'realEstate': _source(net_real_estate, real_estate_tax),
                'socialSecurity': _source(social_security),
                'additionalIncome': _source(additional_total),
                'partner': _source(partner_net_income + partner_additional),
                'total': {'monthly': safe_money(total_net_income), 'annual': safe_money(total_net_income * 12)},
            },
            'goalsAnalysis': {
                'status': goal_status(readiness),
                'targetMonthlyIncome': safe_money(target),
                'gap': safe_money(target_gap),
                'readinessScore': readiness,
                'incomeRatio': safe_rate(safe_divide(total_net_income, target)),
            },
        }


def calculate_retirement_income(params: IncomeParams, **collaborators) -> Dict[str, Any]:
    """Module-level entry point; keyword arguments are passed to RetirementIncome."""
    return RetirementIncome(**collaborators).calculate_retirement_income(params)
