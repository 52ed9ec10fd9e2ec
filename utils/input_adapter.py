import re
from dataclasses import fields
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models import IndexAllocation, Person, PlannerInputs, WorkPeriod

# UI / stored-plan names that do not follow the camelCase -> snake_case rule
ALIASES = {
    'current_salary': 'current_monthly_salary',
    'monthly_salary': 'current_monthly_salary',
    'salary': 'current_monthly_salary',
    'income': 'current_monthly_salary',
    'age': 'current_age',
    'current_pension': 'current_savings',
    'pension': 'current_savings',
    'training_fund': 'current_training_fund',
    'training': 'current_training_fund',
    'personal_portfolio': 'current_personal_portfolio',
    'crypto': 'current_crypto',
    'real_estate': 'current_real_estate',
    'cash': 'current_cash',
    'bank_account': 'current_cash',
    'portfolio_tax': 'portfolio_tax_rate',
    'monthly_expenses': 'current_monthly_expenses',
}

_PARTNER_PREFIX = re.compile(r'^partner([12])?([A-Z_].*)$')
_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')
_ACRONYM_BOUNDARY = re.compile(r'(?<=[A-Z])(?=[A-Z][a-z])')

_PERSON_FIELDS = {f.name for f in fields(Person)}
_PLANNER_FIELDS = {f.name for f in fields(PlannerInputs)}
_PERIOD_FIELDS = {f.name for f in fields(WorkPeriod)}
_ALLOCATION_FIELDS = {f.name for f in fields(IndexAllocation)}


def camel_to_snake(name: str) -> str:
    """'currentMonthlySalary' -> 'current_monthly_salary', 'quarterlyRSU' -> 'quarterly_rsu'."""
    name = _ACRONYM_BOUNDARY.sub('_', name)
    return _CAMEL_BOUNDARY.sub('_', name).lower().lstrip('_')


def canonical_field(name: str, aliases: Mapping[str, str] = ALIASES) -> str:
    snake = camel_to_snake(name)
    return aliases.get(snake, snake)


def _filter(values: Mapping[str, Any], allowed: set, aliases: Mapping[str, str] = ALIASES) -> Dict[str, Any]:
    """Canonicalizes keys and keeps only dataclass fields; later spellings win."""
    result = {}
    for key, value in values.items():
        field_name = canonical_field(key, aliases)
        if field_name in allowed:
            result[field_name] = value
    return result


def get_person(data: Any) -> Optional[Person]:
    if data is None:
        return None
    if isinstance(data, Person):
        return data
    return Person(**_filter(data, _PERSON_FIELDS))


def _split_partner_fields(data: Mapping[str, Any]):
    """
    Separates household fields from partner fields.

    Accepts the flat prefixed shape (partner1Salary, partner2Age), the unprefixed
    single-partner shape (partnerSalary -> partner 2) and nested records
    ({partner: {...}}, {partner1: {...}}, {partner2: {...}}).
    """
    household: Dict[str, Any] = {}
    partners: Dict[str, Any] = {'1': {}, '2': {}}

    for key, value in data.items():
        # Nested record
        if key in ('partner', 'partner1', 'partner2'):
            slot = '1' if key == 'partner1' else '2'
            if isinstance(value, Person):
                partners[slot] = value
            elif isinstance(value, Mapping) and isinstance(partners[slot], dict):
                partners[slot].update(value)
            continue

        # Flat prefixed field
        match = _PARTNER_PREFIX.match(key)
        if match and canonical_field(key) != 'partner_planning_enabled':
            slot = match.group(1) or '2'
            rest = match.group(2).lstrip('_')
            if isinstance(partners[slot], dict):
                partners[slot][rest[:1].lower() + rest[1:]] = value
            continue

        household[key] = value

    return household, partners


def get_planner_inputs(data: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> PlannerInputs:
    """
    Dynamically generates PlannerInputs from a UI / stored-plan mapping,
    using reflection (dataclasses.fields) to ensure only valid fields are passed.

    Keys may be camelCase or snake_case. Unknown keys are ignored; invalid
    numbers are coerced by the dataclasses themselves.
    """
    # 1. Merge the mapping and keyword overrides
    inputs_dict = dict(data or {})
    inputs_dict.update(kwargs)

    # 2. Pull partner records out of the flat / nested shapes
    household, partners = _split_partner_fields(inputs_dict)

    # 3. DYNAMIC FIELD MAPPING AND FILTERING (Reflection)
    final_inputs = _filter(household, _PLANNER_FIELDS)

    # 4. Partner records; an empty record stays None
    for slot, values in partners.items():
        if values:
            final_inputs[f'partner{slot}'] = get_person(values)

    # 5. Create the PlannerInputs object
    return PlannerInputs(**final_inputs)


def ensure_planner_inputs(inputs: Any) -> PlannerInputs:
    """PlannerInputs pass through; None and mappings are normalized."""
    if isinstance(inputs, PlannerInputs):
        return inputs
    if inputs is None:
        return PlannerInputs()
    if not isinstance(inputs, Mapping):
        raise TypeError(f"inputs must be a mapping or PlannerInputs, got {type(inputs).__name__}")
    return get_planner_inputs(inputs)


def get_work_periods(rows: Optional[Iterable[Any]]) -> List[WorkPeriod]:
    """Career intervals from UI rows; the row 'id' and other display keys are dropped."""
    periods = []
    for row in rows or []:
        if isinstance(row, WorkPeriod):
            periods.append(row)
        elif row:
            periods.append(WorkPeriod(**_filter(row, _PERIOD_FIELDS, aliases={})))
    return periods


def get_index_allocation(rows: Optional[Iterable[Any]]) -> List[IndexAllocation]:
    allocations = []
    for row in rows or []:
        if isinstance(row, IndexAllocation):
            allocations.append(row)
        elif row:
            allocations.append(IndexAllocation(**_filter(row, _ALLOCATION_FIELDS, aliases={})))
    return allocations
