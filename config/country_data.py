# =============================================================================
# Country rules used for pension tax and social security at retirement
# =============================================================================
import logging
from typing import Dict, Mapping, Optional

from models import CountryRules

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = 'israel'

# Israeli training fund (keren hishtalmut) salary ceiling, NIS per month
ISRAEL_TRAINING_FUND_CEILING = 15_792

COUNTRY_DATA: Dict[str, CountryRules] = {
    'israel': CountryRules(name='Israel', pension_tax=0.15, social_security=2500, flag='🇮🇱',
                           training_fund_ceiling=ISRAEL_TRAINING_FUND_CEILING),
    'usa': CountryRules(name='USA', pension_tax=0.12, social_security=1800, flag='🇺🇸'),
    'uk': CountryRules(name='UK', pension_tax=0.20, social_security=1400, flag='🇬🇧'),
    'germany': CountryRules(name='Germany', pension_tax=0.22, social_security=1500, flag='🇩🇪'),
    'france': CountryRules(name='France', pension_tax=0.18, social_security=1600, flag='🇫🇷'),
}

# Alternate spellings seen in saved plans
COUNTRY_ALIASES = {
    'isr': 'israel',
    'il': 'israel',
    'us': 'usa',
    'united states': 'usa',
    'gb': 'uk',
    'united kingdom': 'uk',
    'de': 'germany',
    'fr': 'france',
}


def normalize_country_key(key: Optional[str]) -> str:
    if not key:
        return ''
    k = str(key).strip().lower()
    return COUNTRY_ALIASES.get(k, k)


def get_country_rules(
    key: Optional[str],
    country_data: Optional[Mapping[str, CountryRules]] = None,
    default: bool = True,
) -> Optional[CountryRules]:
    """
    Looks up a country's rules. Unknown or missing keys fall back to the
    Israel profile (or None when default=False). Never raises.
    """
    table = COUNTRY_DATA if country_data is None else country_data
    rules = table.get(normalize_country_key(key)) if key else None
    if rules is None and key and key in table:
        rules = table[key]
    if rules is not None:
        return rules
    if not default:
        return None
    logger.debug(f"Country '{key}' not found, falling back to {DEFAULT_COUNTRY}")
    return table.get(DEFAULT_COUNTRY) or COUNTRY_DATA[DEFAULT_COUNTRY]
