"""
Tests for the plan export.
"""

import json
from datetime import datetime, timezone

import numpy as np
import pandas as pd

from models import PlannerInputs
from engine.accumulation import calculate_retirement
from utils.export import (
    EXPORT_VERSION,
    RECOMMENDATION_AREAS,
    build_export_snapshot,
    export_json,
    generate_analysis_prompt,
)

EXPORT_DATE = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def _inputs(**overrides):
    values = dict(current_age=40, retirement_age=67, current_savings=500_000, current_monthly_salary=25_000,
                  target_replacement=70, current_training_fund=120_000)
    values.update(overrides)
    return PlannerInputs(**values)


class TestSnapshot:

    def test_sections(self):
        snapshot = build_export_snapshot(_inputs(), export_date=EXPORT_DATE)
        assert set(snapshot) == {'metadata', 'personalInfo', 'financialData', 'investmentPortfolio',
                                 'rsuData', 'projectionResults', 'partnerData', 'recommendationAreas'}
        assert snapshot['metadata']['version'] == EXPORT_VERSION
        assert snapshot['metadata']['exportDate'] == '2025-01-15T12:00:00+00:00'
        assert snapshot['recommendationAreas'] == RECOMMENDATION_AREAS

    def test_rsu_section_only_with_units(self):
        assert build_export_snapshot(_inputs())['rsuData'] is None
        rsu = build_export_snapshot(_inputs(rsu_units=100, rsu_current_stock_price=50))['rsuData']
        assert rsu == {'units': 100, 'currentStockPrice': 50, 'frequency': 'quarterly'}

    def test_projection_results(self):
        results = {'totalSavings': 2_000_000, 'monthlyIncome': 14_500, 'readinessScore': 90}
        projection = build_export_snapshot(_inputs(), results)['projectionResults']
        assert projection['totalSavingsAtRetirement'] == 2_000_000
        assert projection['readinessScore'] == 90
        assert projection['goalsAnalysis'] is None

    def test_years_to_retirement_from_engine_result(self):
        inputs = PlannerInputs(current_age=30, retirement_age=67)
        projection = build_export_snapshot(inputs, calculate_retirement(inputs))['projectionResults']
        assert projection['yearsToRetirement'] == 37
        assert projection['goalsAnalysis']['status'] == 'needs_attention'


class TestExportJson:

    def test_round_trip_with_engine_values(self):
        partner = {
            'projection': pd.DataFrame({'age': [40, 41], 'nominal': [1_000, 1_100]}),
            'score': np.int64(70),
            'rate': np.float64(0.25),
            'balances': np.array([1.5, 2.5]),
        }
        data = json.loads(export_json(_inputs(), partner_results=partner, export_date=EXPORT_DATE))
        assert data['partnerData']['score'] == 70
        assert data['partnerData']['balances'] == [1.5, 2.5]
        assert data['partnerData']['projection'][1]['nominal'] == 1_100
        assert data['financialData']['currentSalary'] == 25_000

    def test_hebrew_text_unescaped(self):
        text = export_json(_inputs(), partner_results={'note': 'פנסיה'})
        assert 'פנסיה' in text


class TestAnalysisPrompt:

    def test_prompt_content(self):
        prompt = generate_analysis_prompt(_inputs(), {'totalSavings': 2_000_000, 'readinessScore': 90})
        assert 'Current Age: 40' in prompt
        assert '₪500,000' in prompt
        assert '₪2,000,000' in prompt
        assert 'Retirement Readiness Score: 90' in prompt
        assert 'Target Income Replacement: 70%' in prompt

    def test_prompt_without_results(self):
        prompt = generate_analysis_prompt(_inputs())
        assert 'Retirement Readiness Score: N/A' in prompt
        assert '(default return)' in prompt
