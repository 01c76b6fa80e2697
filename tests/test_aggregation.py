"""
Test Suite for Aggregation Module
=================================

Tests for KPIs, grouped views, depreciation patterns and the correlation matrix.
"""

import pytest
import numpy as np

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from vehicle_analytics.aggregation import (
    CorrelationMatrix,
    calculate_brand_performance,
    calculate_condition_analysis,
    calculate_correlation_matrix,
    calculate_depreciation_patterns,
    calculate_kpis,
    calculate_mileage_clusters,
    calculate_price_distribution,
    find_strong_correlations,
    is_electric,
    pearson_correlation,
    print_aggregate_summary,
)
from vehicle_analytics.data_loader import clean_records, parse_records
from vehicle_analytics.preprocessing import calculate_depreciation, derive_records
from vehicle_analytics.sample_data import SAMPLE_CSV_DATA

CURRENT_YEAR = 2025

INVENTORY_CSV = """brand,price,year,mileage,condition,fuelType
Toyota,10000,2015,100000,Good,petrol
toyota,20000,2020,40000,good,hybrid
Tesla,50000,2022,10000,excellent,Electric
Ford,30000,2018,80000,fair,diesel
,15000,2019,20000,,petrol"""


def build_vehicles(text):
    records = clean_records(parse_records(text), CURRENT_YEAR)
    return derive_records(records, CURRENT_YEAR)


@pytest.fixture
def vehicles():
    return build_vehicles(INVENTORY_CSV)


@pytest.fixture
def sample_vehicles():
    return build_vehicles(SAMPLE_CSV_DATA)


class TestKPIs:
    """Tests for calculate_kpis."""

    def test_small_inventory(self, vehicles):
        kpis = calculate_kpis(vehicles)

        assert kpis.total_vehicles == 5
        assert kpis.average_price == pytest.approx(25_000)
        assert kpis.median_price == 20_000
        assert kpis.brand_count == 3
        assert kpis.ev_count == 1
        assert kpis.total_revenue == 125_000
        assert kpis.avg_mileage == pytest.approx(50_000)
        assert kpis.avg_age == pytest.approx(6.2)

    def test_median_is_upper_middle_for_even_counts(self):
        kpis = calculate_kpis(build_vehicles("price\n100\n200\n300\n400"))
        assert kpis.median_price == 300

    def test_sample_dataset(self, sample_vehicles):
        kpis = calculate_kpis(sample_vehicles)

        assert kpis.total_vehicles == 50
        assert kpis.ev_count == 4
        assert kpis.brand_count == 15
        assert 18_000 <= kpis.average_price <= 75_000
        assert 18_000 <= kpis.median_price <= 75_000

    def test_empty_input(self):
        kpis = calculate_kpis(())
        assert kpis.total_vehicles == 0
        assert kpis.average_price == 0.0
        assert kpis.median_price == 0.0

    @pytest.mark.parametrize("fuel, expected", [
        ("Electric", True),
        ("EV", True),
        ("petrol", False),
        (None, False),
    ])
    def test_is_electric(self, fuel, expected):
        assert is_electric(fuel) == expected


class TestBrandPerformance:
    """Tests for calculate_brand_performance."""

    def test_sorted_by_revenue(self, vehicles):
        brands = calculate_brand_performance(vehicles)

        assert [b.brand for b in brands] == ['Tesla', 'Toyota', 'Ford']
        revenues = [b.total_revenue for b in brands]
        assert revenues == sorted(revenues, reverse=True)

    def test_group_statistics(self, vehicles):
        toyota = next(b for b in calculate_brand_performance(vehicles) if b.brand == 'Toyota')

        assert toyota.count == 2
        assert toyota.avg_price == pytest.approx(15_000)
        assert toyota.min_price == 10_000
        assert toyota.max_price == 20_000
        assert toyota.market_share == pytest.approx(40.0)

    def test_brandless_vehicles_count_toward_share(self, vehicles):
        brands = calculate_brand_performance(vehicles)
        assert sum(b.market_share for b in brands) == pytest.approx(80.0)

    def test_sample_dataset_covers_every_vehicle(self, sample_vehicles):
        brands = calculate_brand_performance(sample_vehicles)
        assert len(brands) == 15
        assert sum(b.count for b in brands) == 50
        assert brands[0].brand == 'Tesla'


class TestBuckets:
    """Tests for price distribution and mileage clusters."""

    def test_price_distribution(self, vehicles):
        rows = calculate_price_distribution(vehicles)

        assert [r.segment for r in rows] == ['Budget', 'Mid-range', 'Premium', 'Luxury']
        assert [r.count for r in rows] == [2, 1, 1, 1]
        assert rows[0].avg_price == pytest.approx(12_500)
        assert sum(r.percentage for r in rows) == pytest.approx(100.0)

    def test_sample_price_distribution_sums_to_100(self, sample_vehicles):
        rows = calculate_price_distribution(sample_vehicles)
        assert sum(r.count for r in rows) == 50
        assert sum(r.percentage for r in rows) == pytest.approx(100.0)

    def test_mileage_clusters(self, vehicles):
        rows = calculate_mileage_clusters(vehicles)

        assert [r.category for r in rows] == ['Low', 'Medium', 'High', 'Very High']
        assert [r.count for r in rows] == [2, 1, 2, 0]
        assert [r.range for r in rows] == ['0-30K', '30-70K', '70-120K', '120K+']
        assert rows[3].avg_price == 0.0
        assert rows[3].percentage == 0.0


class TestConditionAnalysis:
    """Tests for calculate_condition_analysis."""

    def test_groups_case_insensitively(self, vehicles):
        rows = calculate_condition_analysis(vehicles)

        assert [r.condition for r in rows] == ['good', 'excellent', 'fair']
        assert rows[0].count == 2
        assert rows[0].percentage == pytest.approx(40.0)

    def test_reliability_is_mean_value_score(self, vehicles):
        good = calculate_condition_analysis(vehicles)[0]
        # 'High' at age 10 scores 50; 'Medium' at age 5 scores 75
        assert good.reliability == pytest.approx(62.5)
        assert good.avg_price == pytest.approx(15_000)


class TestDepreciationPatterns:
    """Tests for calculate_depreciation_patterns."""

    def test_ascending_years(self, vehicles):
        rows = calculate_depreciation_patterns(vehicles)

        assert [r.year for r in rows] == [2015, 2018, 2019, 2020, 2022]
        assert all(r.vehicle_count == 1 for r in rows)
        assert rows[0].avg_depreciation == pytest.approx(calculate_depreciation(10))

    def test_groups_same_year(self, sample_vehicles):
        rows = calculate_depreciation_patterns(sample_vehicles)

        assert [r.year for r in rows] == [2018, 2019, 2020, 2021, 2022]
        assert sum(r.vehicle_count for r in rows) == 50

    def test_no_years(self):
        assert calculate_depreciation_patterns(build_vehicles("price\n500\n600")) == []


class TestCorrelation:
    """Tests for pearson_correlation and the correlation matrix."""

    def test_perfect_correlation(self):
        x = np.array([1.0, 2.0, 3.0])
        assert pearson_correlation(x, 2 * x) == pytest.approx(1.0)
        assert pearson_correlation(x, -x) == pytest.approx(-1.0)

    def test_zero_variance(self):
        x = np.array([1.0, 2.0, 3.0])
        assert pearson_correlation(x, np.zeros(3)) == 0.0

    def test_matrix_shape_and_diagonal(self, vehicles):
        correlation = calculate_correlation_matrix(vehicles)

        assert correlation.features == ('price', 'mileage', 'year', 'vehicleAge')
        assert len(correlation.matrix) == 4
        for i in range(4):
            assert correlation.matrix[i][i] == pytest.approx(1.0)
            for j in range(4):
                assert correlation.matrix[i][j] == pytest.approx(correlation.matrix[j][i])
                assert -1.0 - 1e-9 <= correlation.matrix[i][j] <= 1.0 + 1e-9

    def test_year_and_age_are_opposite(self, vehicles):
        correlation = calculate_correlation_matrix(vehicles)
        assert correlation.value('year', 'vehicleAge') == pytest.approx(-1.0)

    def test_absent_column_yields_zero_row(self):
        correlation = calculate_correlation_matrix(build_vehicles("price,year\n1000,2015\n2000,2020"))
        assert correlation.matrix[1] == (0.0, 0.0, 0.0, 0.0)
        assert correlation.value('price', 'mileage') == 0.0

    @pytest.mark.parametrize("value, n", [(100.1, 3), (0.1, 7), (98765.4321, 333)])
    def test_constant_decimal_series(self, value, n):
        x = np.full(n, value)
        assert pearson_correlation(x, x) == 0.0
        assert pearson_correlation(x, np.arange(n, dtype=float)) == 0.0

    def test_constant_decimal_price_yields_zero_row(self):
        rows = "\n".join(
            f"33333.3,{10_000 * (i + 1)},{2010 + i}" for i in range(7)
        )
        correlation = calculate_correlation_matrix(build_vehicles("price,mileage,year\n" + rows))

        assert correlation.matrix[0] == (0.0, 0.0, 0.0, 0.0)
        assert [row[0] for row in correlation.matrix] == [0.0, 0.0, 0.0, 0.0]
        assert correlation.value("mileage", "mileage") == pytest.approx(1.0)

    def test_to_frame(self, vehicles):
        frame = calculate_correlation_matrix(vehicles).to_frame()
        assert list(frame.columns) == ['price', 'mileage', 'year', 'vehicleAge']
        assert frame.loc['price', 'price'] == pytest.approx(1.0)

    def test_find_strong_correlations(self):
        correlation = CorrelationMatrix(
            features=('a', 'b', 'c'),
            matrix=((1.0, 0.3, -0.8), (0.3, 1.0, 0.6), (-0.8, 0.6, 1.0)),
        )
        strong = find_strong_correlations(correlation, threshold=0.5)

        assert [(s['col1'], s['col2']) for s in strong] == [('a', 'c'), ('b', 'c')]
        assert strong[0]['correlation'] == -0.8


class TestAggregationDeterminism:
    """Aggregates depend only on their input."""

    def test_repeated_calls_agree(self, sample_vehicles):
        assert calculate_kpis(sample_vehicles) == calculate_kpis(sample_vehicles)
        assert calculate_brand_performance(sample_vehicles) == calculate_brand_performance(sample_vehicles)
        assert calculate_correlation_matrix(sample_vehicles) == calculate_correlation_matrix(sample_vehicles)

    def test_print_summary(self, sample_vehicles, capsys):
        print_aggregate_summary(
            calculate_kpis(sample_vehicles),
            calculate_brand_performance(sample_vehicles),
            calculate_correlation_matrix(sample_vehicles),
        )
        output = capsys.readouterr().out
        assert "INVENTORY KPIs" in output
        assert "Tesla" in output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
