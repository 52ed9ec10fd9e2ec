# models.py
from collections.abc import Mapping
from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Dict, List, Optional, Union

from utils.numeric import parse_or_zero, parse_optional


def _coerce_fields(obj) -> None:
    """
    Normalizes every numeric field of a dataclass instance in place:
    float fields go through parse_or_zero, Optional[float] fields through
    parse_optional. After construction no field can hold NaN/Infinity/strings.
    """
    for f in fields(obj):
        value = getattr(obj, f.name)
        if f.type is float:
            setattr(obj, f.name, parse_or_zero(value))
        elif f.type == Optional[float]:
            setattr(obj, f.name, parse_optional(value))
        elif f.type is bool:
            setattr(obj, f.name, bool(value))
        elif f.type is str and not value and f.default is not MISSING:
            # Empty strings fall back to the declared default ('israel', 'monthly', ...)
            setattr(obj, f.name, f.default)


@dataclass
class Person:
    """One planner's personal financial state."""
    current_age: float = 0.0
    retirement_age: float = 0.0
    current_monthly_salary: float = 0.0
    country: str = 'israel'

    # Balances per vehicle
    current_savings: float = 0.0
    current_training_fund: float = 0.0
    current_personal_portfolio: float = 0.0
    current_crypto: float = 0.0
    current_real_estate: float = 0.0
    current_cash: float = 0.0

    # Monthly contributions
    monthly_pension_contribution: float = 0.0
    monthly_training_fund_contribution: float = 0.0
    personal_portfolio_monthly: float = 0.0
    crypto_monthly: float = 0.0
    real_estate_monthly: float = 0.0

    personal_portfolio_return: float = 0.0
    personal_portfolio_tax_rate: Optional[float] = None

    # Additional income
    annual_bonus: float = 0.0
    bonus_tax_rate: Optional[float] = None
    rsu_units: float = 0.0
    rsu_current_stock_price: float = 0.0
    rsu_frequency: str = 'quarterly'
    rsu_tax_rate: Optional[float] = None
    quarterly_rsu: float = 0.0  # legacy: value vesting per quarter
    freelance_income: float = 0.0
    freelance_income_frequency: str = 'monthly'
    freelance_income_tax_rate: Optional[float] = None
    rental_income: float = 0.0
    rental_income_frequency: str = 'monthly'
    rental_income_tax_rate: Optional[float] = None
    dividend_income: float = 0.0
    dividend_income_frequency: str = 'monthly'
    dividend_income_tax_rate: Optional[float] = None

    def __post_init__(self):
        _coerce_fields(self)

    @property
    def years_to_retirement(self) -> float:
        return self.retirement_age - self.current_age


@dataclass
class PlannerInputs(Person):
    """Household-level planner record; the top-level fields describe the primary planner."""
    planning_type: str = 'individual'
    partner_planning_enabled: bool = False
    risk_tolerance: str = 'moderate'

    inflation_rate: Optional[float] = None
    target_replacement: float = 0.0
    target_monthly_income: Optional[float] = None  # explicit goal; used by the risk simulation
    monthly_contributions: Optional[float] = None  # lump monthly saving; used by the risk simulation

    # Returns and fees (percent)
    pension_return: Optional[float] = None
    training_fund_return: Optional[float] = None
    training_fund_management_fee: float = 0.0
    crypto_return: float = 0.0
    real_estate_return: float = 0.0
    stock_percentage: Optional[float] = None

    # Tax rates (percent)
    portfolio_tax_rate: Optional[float] = None
    crypto_tax_rate: float = 0.0
    real_estate_tax_rate: float = 0.0
    real_estate_rental_yield: float = 0.0

    # Expenses
    current_monthly_expenses: float = 0.0
    joint_monthly_expenses: float = 0.0
    expenses: Optional[Dict[str, Any]] = None

    # Tax optimization inputs
    pension_contribution_rate: Optional[float] = None
    tax_country: Optional[str] = None

    partner1: Optional[Person] = None
    partner2: Optional[Person] = None

    def __post_init__(self):
        super().__post_init__()
        # A breakdown that is not a mapping of category -> amount is ignored
        if self.expenses is not None and not isinstance(self.expenses, Mapping):
            self.expenses = None

    @property
    def is_couple(self) -> bool:
        return self.planning_type == 'couple' or self.partner_planning_enabled

    @property
    def household(self) -> 'Household':
        if self.is_couple:
            return Couple(self.partner1 or Person(country=self.country),
                          self.partner2 or Person(country=self.country))
        return Individual(self)

    @property
    def combined_income(self) -> float:
        """Monthly household salary: both partners in couple mode, the planner otherwise."""
        household = self.household
        if isinstance(household, Couple):
            return household.partner1.current_monthly_salary + household.partner2.current_monthly_salary
        return self.current_monthly_salary


@dataclass
class Individual:
    person: Person


@dataclass
class Couple:
    partner1: Person
    partner2: Person


Household = Union[Individual, Couple]


@dataclass
class WorkPeriod:
    """One career interval; contributions are monthly, rates and fees in percent."""
    country: str = ''
    start_age: float = 0.0
    end_age: float = 0.0
    salary: float = 0.0
    pension_contribution_rate: float = 0.0
    training_fund_contribution_rate: float = 0.0
    monthly_contribution: float = 0.0
    monthly_training_fund: float = 0.0
    pension_return: Optional[float] = None
    pension_deposit_fee: float = 0.0
    pension_annual_fee: float = 0.0

    def __post_init__(self):
        _coerce_fields(self)
        if not self.monthly_contribution and self.pension_contribution_rate:
            self.monthly_contribution = self.salary * self.pension_contribution_rate / 100


@dataclass
class CountryRules:
    name: str
    pension_tax: float  # fraction, e.g. 0.15
    social_security: float  # monthly benefit
    flag: str = ''
    training_fund_ceiling: Optional[float] = None  # monthly salary ceiling

    def __post_init__(self):
        _coerce_fields(self)


@dataclass(frozen=True)
class AssetClass:
    name: Dict[str, str]
    expected_return: float
    volatility: float
    correlation: float


@dataclass
class IndexAllocation:
    """A slice of a pension/training-fund investment track."""
    index: str = ''
    percentage: float = 0.0
    custom_return: Optional[float] = None
    historical_return: Optional[float] = None

    def __post_init__(self):
        _coerce_fields(self)


@dataclass
class PartnerResults:
    total_pension_savings: float = 0.0
    total_training_fund: float = 0.0
    total_personal_portfolio: float = 0.0
    years_to_retirement: float = 0.0
    period_results: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        _coerce_fields(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalPensionSavings': self.total_pension_savings,
            'totalTrainingFund': self.total_training_fund,
            'totalPersonalPortfolio': self.total_personal_portfolio,
            'periodResults': self.period_results,
            'yearsToRetirement': self.years_to_retirement,
        }


@dataclass
class IncomeParams:
    """Accumulated state handed from the accumulation phase to the income calculator."""
    inputs: PlannerInputs
    years_to_retirement: float = 0.0
    total_pension_savings: float = 0.0
    total_training_fund: float = 0.0
    total_personal_portfolio: float = 0.0
    total_crypto: float = 0.0
    total_real_estate: float = 0.0
    real_estate_rental_income: float = 0.0
    period_results: List[Dict[str, Any]] = field(default_factory=list)
    sorted_periods: List[WorkPeriod] = field(default_factory=list)
    work_periods: List[WorkPeriod] = field(default_factory=list)
    partner_results: Optional[PartnerResults] = None
    pension_weighted_return: float = 0.0
    training_fund_weighted_return: float = 0.0
    training_fund_net_return: float = 0.0
    combined_income: float = 0.0

    def __post_init__(self):
        _coerce_fields(self)
