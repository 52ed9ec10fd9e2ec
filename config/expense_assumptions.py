# config/expense_assumptions.py
# These are **reasonable defaults** for the detailed expense breakdown

# Extra yearly growth per category, in percentage points above the base adjustment
CATEGORY_INFLATION_ADJUSTMENTS = {
    'housing': 1.0,          # tracks inflation + 1%
    'transportation': 0.0,
    'food': 2.0,
    'insurance': 3.0,        # healthcare outpaces inflation
    'other': 0.0,
}

# Recommended share of monthly income per category (percent)
RECOMMENDED_EXPENSE_RATIOS = {
    'housing': {'min': 20, 'max': 30, 'ideal': 25},
    'transportation': {'min': 10, 'max': 20, 'ideal': 15},
    'food': {'min': 10, 'max': 20, 'ideal': 15},
    'insurance': {'min': 5, 'max': 15, 'ideal': 10},
    'other': {'min': 5, 'max': 20, 'ideal': 10},
    'savings': {'min': 10, 'max': 30, 'ideal': 20},
}

CATEGORY_NAMES_HE = {
    'housing': 'דיור',
    'transportation': 'תחבורה',
    'food': 'מזון',
    'insurance': 'ביטוח ובריאות',
    'other': 'אחר',
}

default_yearly_adjustment = 2.5
default_projection_years = 30
minimum_savings_rate = 10.0
excellent_savings_rate = 20.0
