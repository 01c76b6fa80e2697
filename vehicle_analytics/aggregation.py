"""
Aggregation Module - Phase 3
============================

Read-only summary views over the derived vehicle set. Every function is pure
and recomputes from scratch on each call.

Functions:
    - calculate_kpis: Headline inventory metrics
    - calculate_brand_performance: Per-brand revenue and share
    - calculate_price_distribution: Four price-segment buckets
    - calculate_mileage_clusters: Four mileage-category buckets
    - calculate_condition_analysis: Per-condition price and reliability
    - calculate_depreciation_patterns: Mean depreciation by model year
    - calculate_correlation_matrix: Pearson matrix over the numeric features
    - find_strong_correlations: Off-diagonal pairs above a threshold
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .preprocessing import records_to_frame
from .records import MILEAGE_CATEGORIES, PRICE_SEGMENTS, DerivedVehicle

logger = logging.getLogger(__name__)

CORRELATION_FEATURES: Tuple[str, ...] = ('price', 'mileage', 'year', 'vehicleAge')
MILEAGE_RANGES = {'Low': '0-30K', 'Medium': '30-70K', 'High': '70-120K', 'Very High': '120K+'}


@dataclass(frozen=True)
class KPISet:
    average_price: float
    median_price: float
    total_vehicles: int
    brand_count: int
    ev_count: int
    total_revenue: float
    avg_mileage: float
    avg_age: float


@dataclass(frozen=True)
class BrandPerformance:
    brand: str
    count: int
    avg_price: float
    min_price: float
    max_price: float
    total_revenue: float
    market_share: float


@dataclass(frozen=True)
class PriceDistribution:
    segment: str
    count: int
    percentage: float
    avg_price: float


@dataclass(frozen=True)
class MileageCluster:
    category: str
    count: int
    percentage: float
    avg_price: float
    range: str


@dataclass(frozen=True)
class ConditionAnalysis:
    condition: str
    count: int
    avg_price: float
    percentage: float
    reliability: float


@dataclass(frozen=True)
class DepreciationPattern:
    year: int
    avg_depreciation: float
    vehicle_count: int


@dataclass(frozen=True)
class CorrelationMatrix:
    """Square Pearson matrix; ``matrix[i][j]`` pairs ``features[i]`` and ``features[j]``."""

    features: Tuple[str, ...]
    matrix: Tuple[Tuple[float, ...], ...]

    def value(self, first: str, second: str) -> float:
        return self.matrix[self.features.index(first)][self.features.index(second)]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(list(self.matrix), index=list(self.features),
                            columns=list(self.features))


def _mean(values: pd.Series) -> float:
    """Mean that is 0 rather than NaN for an empty series."""
    return float(values.mean()) if len(values) else 0.0


def _positive(values: pd.Series) -> pd.Series:
    return values[values > 0]


def is_electric(fuel_type: Any) -> bool:
    text = '' if pd.isna(fuel_type) else str(fuel_type).lower()
    return 'electric' in text or 'ev' in text


def calculate_kpis(vehicles: Sequence[DerivedVehicle]) -> KPISet:
    """
    Headline metrics of the derived set.

    Means are over positive values only; the median is the element at index
    ``floor(n / 2)`` of the sorted positive prices.
    """
    df = records_to_frame(vehicles)

    prices = _positive(df['price'].fillna(0))
    mileages = _positive(df['mileage'].fillna(0))
    ages = _positive(df['vehicleAge'].fillna(0))

    sorted_prices = np.sort(prices.to_numpy())
    median_price = float(sorted_prices[len(sorted_prices) // 2]) if len(sorted_prices) else 0.0

    brands = df['brand'].dropna().astype(str)

    return KPISet(
        average_price=_mean(prices),
        median_price=median_price,
        total_vehicles=len(df),
        brand_count=int(brands[brands != ''].nunique()),
        ev_count=int(sum(is_electric(v) for v in df['fuelType'])),
        total_revenue=float(prices.sum()),
        avg_mileage=_mean(mileages),
        avg_age=_mean(ages),
    )


def calculate_brand_performance(vehicles: Sequence[DerivedVehicle]) -> List[BrandPerformance]:
    """
    Per-brand summary sorted by total revenue, highest first.

    Brandless vehicles are left out of the groups but count toward the total
    used for market share.
    """
    df = records_to_frame(vehicles)
    total = len(df)

    rows: List[BrandPerformance] = []
    for brand, group in df.dropna(subset=['brand']).groupby('brand', sort=False):
        prices = _positive(group['price'].fillna(0))
        rows.append(BrandPerformance(
            brand=str(brand),
            count=len(group),
            avg_price=_mean(prices),
            min_price=float(prices.min()) if len(prices) else 0.0,
            max_price=float(prices.max()) if len(prices) else 0.0,
            total_revenue=float(prices.sum()),
            market_share=len(group) / total * 100,
        ))

    return sorted(rows, key=lambda r: r.total_revenue, reverse=True)


def _bucket_stats(df: pd.DataFrame, column: str, label: str) -> Tuple[int, float, float]:
    group = df[df[column] == label]
    percentage = len(group) / len(df) * 100 if len(df) else 0.0
    return len(group), percentage, _mean(_positive(group['price'].fillna(0)))


def calculate_price_distribution(vehicles: Sequence[DerivedVehicle]) -> List[PriceDistribution]:
    df = records_to_frame(vehicles)
    rows = []
    for segment in PRICE_SEGMENTS:
        count, percentage, avg_price = _bucket_stats(df, 'priceSegment', segment)
        rows.append(PriceDistribution(segment, count, percentage, avg_price))
    return rows


def calculate_mileage_clusters(vehicles: Sequence[DerivedVehicle]) -> List[MileageCluster]:
    df = records_to_frame(vehicles)
    rows = []
    for category in MILEAGE_CATEGORIES:
        count, percentage, avg_price = _bucket_stats(df, 'mileageCategory', category)
        rows.append(MileageCluster(category, count, percentage, avg_price,
                                   MILEAGE_RANGES[category]))
    return rows


def calculate_condition_analysis(vehicles: Sequence[DerivedVehicle]) -> List[ConditionAnalysis]:
    """
    Group by the lower-cased, trimmed condition string.

    Reliability is the mean value score of the group. Sorted by count,
    largest first.
    """
    df = records_to_frame(vehicles)
    total = len(df)

    conditioned = df.dropna(subset=['condition']).copy()
    conditioned['conditionKey'] = conditioned['condition'].astype(str).str.lower().str.strip()

    rows: List[ConditionAnalysis] = []
    for condition, group in conditioned.groupby('conditionKey', sort=False):
        rows.append(ConditionAnalysis(
            condition=str(condition),
            count=len(group),
            avg_price=_mean(_positive(group['price'].fillna(0))),
            percentage=len(group) / total * 100,
            reliability=_mean(group['valueScore'].fillna(0)),
        ))

    return sorted(rows, key=lambda r: r.count, reverse=True)


def calculate_depreciation_patterns(vehicles: Sequence[DerivedVehicle]) -> List[DepreciationPattern]:
    df = records_to_frame(vehicles)
    dated = df.dropna(subset=['year', 'depreciationRate'])

    grouped = dated.groupby('year', sort=True)['depreciationRate'].agg(['mean', 'count'])
    return [
        DepreciationPattern(year=int(year), avg_depreciation=float(row['mean']),
                            vehicle_count=int(row['count']))
        for year, row in grouped.iterrows()
    ]


def pearson_correlation(x: np.ndarray, y: np.ndarray) -> float:
    """
    Pearson correlation from raw sums.

    Returns 0 when either series is constant or empty.
    """
    n = len(x)
    if n == 0 or np.all(x == x[0]) or np.all(y == y[0]):
        return 0.0

    sum_x, sum_y = x.sum(), y.sum()
    numerator = n * (x * y).sum() - sum_x * sum_y
    var_x = n * (x * x).sum() - sum_x * sum_x
    var_y = n * (y * y).sum() - sum_y * sum_y

    if var_x <= 0 or var_y <= 0:
        return 0.0
    return float(numerator / np.sqrt(var_x * var_y))


def calculate_correlation_matrix(vehicles: Sequence[DerivedVehicle]) -> CorrelationMatrix:
    """
    Pairwise Pearson correlation over price, mileage, year and vehicle age.

    Absent values are read as 0.
    """
    df = records_to_frame(vehicles)
    columns = {f: df[f].fillna(0).to_numpy(dtype=float) for f in CORRELATION_FEATURES}

    matrix = tuple(
        tuple(pearson_correlation(columns[a], columns[b]) for b in CORRELATION_FEATURES)
        for a in CORRELATION_FEATURES
    )
    return CorrelationMatrix(features=CORRELATION_FEATURES, matrix=matrix)


def find_strong_correlations(
    correlation: CorrelationMatrix,
    threshold: float = 0.5
) -> List[Dict[str, Any]]:
    """
    Off-diagonal pairs with ``|r| >= threshold``, strongest first.

    Args:
        correlation: Matrix from calculate_correlation_matrix
        threshold: Correlation threshold for "strong" correlation

    Returns:
        List of dicts with col1, col2 and correlation
    """
    features = correlation.features
    strong = []
    for i in range(len(features)):
        for j in range(i + 1, len(features)):
            value = correlation.matrix[i][j]
            if abs(value) >= threshold:
                strong.append({'col1': features[i], 'col2': features[j], 'correlation': value})
    return sorted(strong, key=lambda item: abs(item['correlation']), reverse=True)


def print_aggregate_summary(
    kpis: KPISet,
    brands: Sequence[BrandPerformance],
    correlation: CorrelationMatrix,
    threshold: float = 0.5
) -> None:
    """Print KPIs, the leading brands and strong correlations to console."""
    print("\n" + "=" * 60)
    print("INVENTORY KPIs")
    print("=" * 60)
    print(f"  • Vehicles: {kpis.total_vehicles}")
    print(f"  • Brands: {kpis.brand_count}")
    print(f"  • Electric vehicles: {kpis.ev_count}")
    print(f"  • Average price: ${kpis.average_price:,.0f}")
    print(f"  • Median price: ${kpis.median_price:,.0f}")
    print(f"  • Total revenue: ${kpis.total_revenue:,.0f}")
    print(f"  • Average mileage: {kpis.avg_mileage:,.0f}")
    print(f"  • Average age: {kpis.avg_age:.1f} years")

    print(f"\n{'Brand':<15} {'Count':<8} {'Avg Price':<12} {'Revenue':<14} {'Share (%)':<10}")
    print("-" * 60)
    for row in brands[:10]:
        print(f"{row.brand:<15} {row.count:<8} {row.avg_price:<12,.0f} "
              f"{row.total_revenue:<14,.0f} {row.market_share:<10.1f}")

    strong = find_strong_correlations(correlation, threshold)
    print(f"\nStrong correlations (|r| >= {threshold}):")
    if strong:
        for item in strong:
            direction = "positive" if item['correlation'] > 0 else "negative"
            print(f"  • {item['col1']} ↔ {item['col2']}: {item['correlation']:.3f} ({direction})")
    else:
        print("  - none")
    print("=" * 60 + "\n")
