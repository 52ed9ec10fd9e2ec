# utils/tax_utils.py
import numpy as np
from typing import List, Tuple, Dict, Literal, Optional

# Countries with a marginal bracket table for additional-income tax
TaxCountry = Literal["israel", "uk", "us"]

# Lookups accept the spellings used across saved plans
TAX_COUNTRY_ALIASES: Dict[str, TaxCountry] = {
    "israel": "israel", "isr": "israel", "il": "israel",
    "uk": "uk", "gb": "uk",
    "us": "us", "usa": "us",
}

# =============================================================================
# 1. Israel (2025, NIS per year)
# =============================================================================
ISRAEL_BRACKETS_2025: List[Tuple[float, float, float]] = [
    (0, 81_480, 0.10), (81_480, 116_760, 0.14), (116_760, 188_280, 0.20),
    (188_280, 269_280, 0.31), (269_280, 558_240, 0.35), (558_240, 718_440, 0.47),
    (718_440, np.inf, 0.50),
]
ISRAEL_HEALTH_INSURANCE_RATE = 0.031
ISRAEL_NATIONAL_INSURANCE_RATE = 0.12
ISRAEL_NATIONAL_INSURANCE_CEILING = 494_580

# =============================================================================
# 2. United Kingdom (2024/25, GBP per year)
# =============================================================================
UK_PERSONAL_ALLOWANCE = 12_570
UK_ALLOWANCE_TAPER_START = 100_000
UK_BASIC_RATE_LIMIT = 50_270
UK_HIGHER_RATE_LIMIT = 125_140
UK_RATES = {"basic": 0.20, "higher": 0.40, "additional": 0.45}
UK_NI_THRESHOLD = 12_570
UK_NI_UPPER_LIMIT = 50_270
UK_NI_MAIN_RATE = 0.12
UK_NI_UPPER_RATE = 0.02

# =============================================================================
# 3. United States (2024 single filer, USD per year)
# =============================================================================
US_STANDARD_DEDUCTION = 14_600
US_BRACKETS_2024: List[Tuple[float, float, float]] = [
    (0, 11_000, 0.10), (11_000, 44_725, 0.12), (44_725, 95_375, 0.22),
    (95_375, 182_050, 0.24), (182_050, 231_250, 0.32), (231_250, 578_125, 0.35),
    (578_125, np.inf, 0.37),
]
US_SS_RATE = 0.062
US_SS_WAGE_BASE = 160_200
US_MEDICARE_RATE = 0.0145
US_ADDITIONAL_MEDICARE_RATE = 0.009
US_ADDITIONAL_MEDICARE_THRESHOLD = 200_000

# =============================================================================
# 4. Defaults for supplemental income
# =============================================================================
DEFAULT_SUPPLEMENTAL_TAX_RATE = 40.0  # percent, bonus/RSU when no table applies

# Vesting / payment frequency -> payments per year
FREQUENCY_MULTIPLIERS: Dict[str, int] = {
    "monthly": 12,
    "quarterly": 4,
    "yearly": 1,
    "annual": 1,
}

# Marginal rate (percent) by taxable income, top-down, for quick lookups
MARGINAL_RATE_TABLES: Dict[TaxCountry, List[Tuple[float, float]]] = {
    "israel": [(718_440, 50), (558_240, 47), (269_280, 35), (188_280, 31),
               (116_760, 20), (81_480, 14), (0, 10)],
    "uk": [(UK_HIGHER_RATE_LIMIT, 45), (UK_BASIC_RATE_LIMIT, 40), (UK_PERSONAL_ALLOWANCE, 20)],
    "us": [(578_125, 37), (231_250, 35), (182_050, 32), (95_375, 24),
           (44_725, 22), (11_000, 12), (0, 10)],
}


def resolve_tax_country(country: Optional[str]) -> Optional[TaxCountry]:
    """Maps a country key to the bracket table it uses, or None when there is none."""
    if not country:
        return None
    return TAX_COUNTRY_ALIASES.get(str(country).strip().lower())
