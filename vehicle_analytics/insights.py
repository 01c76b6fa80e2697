"""
Strategic Insights Module
=========================

Narrative insights generated from threshold rules over the derived set and
its aggregates. Each rule fires independently.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from .aggregation import BrandPerformance, KPISet, is_electric
from .records import DerivedVehicle

logger = logging.getLogger(__name__)

LOW_MILEAGE_LABEL = 'Low'
AGING_YEARS = 10
AGING_SHARE = 0.3
EV_HIGH_IMPACT_SHARE = 10
HIGH_VALUE_SCORE = 75


@dataclass(frozen=True)
class StrategicInsight:
    title: str
    description: str
    impact: str
    category: str
    metrics: Dict[str, Union[int, float, str]] = field(default_factory=dict)


def _mean_price(vehicles: Sequence[DerivedVehicle]) -> float:
    return sum(v.price or 0 for v in vehicles) / len(vehicles)


def generate_insights(
    vehicles: Sequence[DerivedVehicle],
    brand_performance: Sequence[BrandPerformance],
    kpis: Optional[KPISet]
) -> List[StrategicInsight]:
    """
    Apply the insight rules.

    Args:
        vehicles: Derived vehicles of the current load
        brand_performance: Output of calculate_brand_performance
        kpis: Output of calculate_kpis

    Returns:
        Insights in rule order; empty when there is no data
    """
    if not vehicles or kpis is None:
        return []

    total = len(vehicles)
    insights: List[StrategicInsight] = []

    if brand_performance:
        top = brand_performance[0]
        insights.append(StrategicInsight(
            title=f"{top.brand} Leads Market Performance",
            description=(
                f"{top.brand} generates {top.market_share:.1f}% of market share with "
                f"{top.count} vehicles and average price of ${top.avg_price:.0f}."
            ),
            impact='High',
            category='Performance',
            metrics={
                'marketShare': f"{top.market_share:.1f}%",
                'revenue': f"${top.total_revenue:.0f}",
                'count': top.count,
            },
        ))

    low_mileage = [v for v in vehicles if v.mileage_category == LOW_MILEAGE_LABEL]
    if low_mileage:
        avg_price = _mean_price(low_mileage)
        insights.append(StrategicInsight(
            title="Premium Inventory - Low Mileage Opportunity",
            description=(
                f"{len(low_mileage)} vehicles with low mileage (<30K) averaging "
                f"${avg_price:.0f} represent premium inventory opportunities."
            ),
            impact='High',
            category='Opportunity',
            metrics={'count': len(low_mileage), 'avgPrice': f"${avg_price:.0f}"},
        ))

    electric = [v for v in vehicles if is_electric(v.fuel_type)]
    if electric:
        ev_share = len(electric) / total * 100
        insights.append(StrategicInsight(
            title="Electric Vehicle Market Presence",
            description=(
                f"{len(electric)} electric vehicles ({ev_share:.1f}% of inventory) "
                f"indicate growing EV market penetration."
            ),
            impact='High' if ev_share > EV_HIGH_IMPACT_SHARE else 'Medium',
            category='Performance',
            metrics={'evCount': len(electric), 'marketShare': f"{ev_share:.1f}%"},
        ))

    aging = [v for v in vehicles if v.vehicle_age > AGING_YEARS]
    if len(aging) > total * AGING_SHARE:
        share = len(aging) / total * 100
        insights.append(StrategicInsight(
            title="Aging Inventory Alert",
            description=(
                f"{len(aging)} vehicles ({share:.1f}%) are over {AGING_YEARS} years old, "
                f"indicating potential depreciation risk."
            ),
            impact='Medium',
            category='Risk',
            metrics={'count': len(aging), 'percentage': f"{share:.1f}%"},
        ))

    luxury = [v for v in vehicles if v.price_segment == 'Luxury']
    if luxury:
        avg_price = _mean_price(luxury)
        insights.append(StrategicInsight(
            title="Luxury Segment Performance",
            description=(
                f"{len(luxury)} luxury vehicles averaging ${avg_price:.0f} represent "
                f"high-value inventory with premium margins."
            ),
            impact='High',
            category='Value',
            metrics={'count': len(luxury), 'avgPrice': f"${avg_price:.0f}"},
        ))

    high_value = [v for v in vehicles if v.value_score > HIGH_VALUE_SCORE]
    if high_value:
        insights.append(StrategicInsight(
            title="Value-for-Money Champions",
            description=(
                f"{len(high_value)} vehicles score above {HIGH_VALUE_SCORE} on value metrics, "
                f"representing best-in-class inventory opportunities."
            ),
            impact='Medium',
            category='Value',
            metrics={'count': len(high_value)},
        ))

    logger.info(f"Generated {len(insights)} strategic insights")
    return insights


def print_insights(insights: Sequence[StrategicInsight]) -> None:
    print("\n" + "=" * 70)
    print("STRATEGIC INSIGHTS")
    print("=" * 70)
    if not insights:
        print("  - none")
    for insight in insights:
        print(f"\n[{insight.category} | {insight.impact}] {insight.title}")
        print(f"  {insight.description}")
    print("=" * 70 + "\n")
