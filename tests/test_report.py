"""
Test Suite for Report Module
============================

Tests for report generation and JSON export.
"""

import json

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from vehicle_analytics.pipeline import run_pipeline
from vehicle_analytics.report import export_report, generate_report
from vehicle_analytics.sample_data import SAMPLE_CSV_DATA

CURRENT_YEAR = 2025


class TestReport:
    """Tests for generate_report and export_report."""

    @pytest.fixture
    def result(self):
        return run_pipeline(SAMPLE_CSV_DATA, current_year=CURRENT_YEAR)

    def test_sections(self, result):
        report = generate_report(result)

        assert report['kpis']['total_vehicles'] == 50
        assert report['prediction_model'] is None
        assert len(report['brand_performance']) == 15
        assert report['correlation_matrix']['features'] == ['price', 'mileage', 'year', 'vehicleAge']
        assert 'vehicles' not in report

    def test_include_vehicles(self, result):
        report = generate_report(result, include_vehicles=True)

        assert len(report['vehicles']) == 50
        assert report['vehicles'][0]['id'] == 'vehicle_1'
        assert report['vehicles'][0]['priceSegment'] in ('Budget', 'Mid-range', 'Premium', 'Luxury')

    def test_model_section(self):
        result = run_pipeline(
            "brand,price,condition\nPorsche,60000,excellent\nKia,12000,poor\nFord,20000,fair",
            current_year=CURRENT_YEAR,
        )
        model = generate_report(result)['prediction_model']

        assert len(model['weights']) == 9
        assert len(model['feature_importance']) == 8
        assert set(model['feature_importance'][0]) == {'feature', 'importance', 'impact'}

    def test_export_round_trip(self, result, tmp_path):
        path = export_report(generate_report(result, include_vehicles=True),
                             str(tmp_path / "reports" / "summary.json"))

        with open(path) as f:
            loaded = json.load(f)

        assert loaded['kpis']['ev_count'] == 4
        assert loaded['filters']['year_range'] == [2018, 2022]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
