"""
Attribute Derivation Module - Phase 2
=====================================

Derives the analytic attributes of every cleaned vehicle, using the whole
cleaned set as context for the price thresholds.

Functions:
    - price_quartiles: Nearest-rank quartiles of the positive prices
    - classify_price_segment: Budget / Mid-range / Premium / Luxury
    - classify_mileage: Low / Medium / High / Very High
    - calculate_depreciation: Modeled value loss since manufacture
    - calculate_value_score: Heuristic 0-100 desirability index
    - derive_records: Fit and apply the deriver in one step
    - records_to_frame: Tabular view of derived vehicles for aggregation
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from .records import DerivedVehicle, VehicleRecord, resolve_current_year

logger = logging.getLogger(__name__)

MILEAGE_THRESHOLDS = ((30_000, 'Low'), (70_000, 'Medium'), (120_000, 'High'))
ANNUAL_RETENTION = 0.85

MILEAGE_SCORE = {'Low': 20, 'Medium': 10, 'High': -10, 'Very High': -20}
CONDITION_SCORE = (
    (('excellent', 'new'), 15),
    (('good',), 10),
    (('fair',), -5),
    (('poor',), -15),
)

FRAME_COLUMNS = [
    'id', 'brand', 'model', 'year', 'price', 'mileage', 'condition', 'fuelType',
    'transmission', 'engineSize', 'color', 'region', 'priceSegment',
    'mileageCategory', 'vehicleAge', 'depreciationRate', 'valueScore',
]
NUMERIC_COLUMNS = ['year', 'price', 'mileage', 'engineSize', 'vehicleAge',
                   'depreciationRate', 'valueScore']


def price_quartiles(prices: Sequence[float]) -> Tuple[float, float, float]:
    """
    Nearest-rank quartiles without interpolation.

    Uses index ``floor(n * q)`` into the sorted positive prices, so small
    sets can put a borderline price in an unexpected segment.
    """
    ordered = sorted(p for p in prices if p > 0)
    if not ordered:
        raise ValueError("Cannot compute price quartiles without positive prices")
    n = len(ordered)
    return tuple(ordered[math.floor(n * q)] for q in (0.25, 0.5, 0.75))


def classify_price_segment(price: float, quartiles: Tuple[float, float, float]) -> str:
    q1, q2, q3 = quartiles
    if price <= q1:
        return 'Budget'
    if price <= q2:
        return 'Mid-range'
    if price <= q3:
        return 'Premium'
    return 'Luxury'


def classify_mileage(mileage: float) -> str:
    """Upper bounds are exclusive: exactly 30,000 is Medium."""
    for bound, category in MILEAGE_THRESHOLDS:
        if mileage < bound:
            return category
    return 'Very High'


def calculate_depreciation(vehicle_age: float) -> float:
    """Percentage lost under 15%-per-year exponential decay."""
    if vehicle_age <= 0:
        return 0.0
    return (1 - ANNUAL_RETENTION ** vehicle_age) * 100


def calculate_value_score(
    mileage_category: str,
    vehicle_age: float,
    condition: Optional[object] = None
) -> float:
    """
    Combine mileage, age and condition into a score clamped to [0, 100].

    Args:
        mileage_category: Output of classify_mileage
        vehicle_age: Years since the model year
        condition: Free-text condition, matched by substring

    Returns:
        Value score
    """
    score = 50 + MILEAGE_SCORE[mileage_category]

    if vehicle_age < 3:
        score += 15
    elif vehicle_age < 7:
        score += 5
    elif vehicle_age > 15:
        score -= 15

    if condition is not None:
        text = str(condition).lower()
        for keywords, adjustment in CONDITION_SCORE:
            if any(k in text for k in keywords):
                score += adjustment
                break

    return float(max(0, min(100, score)))


class VehicleAttributeDeriver:
    """
    Derivation stage for cleaned vehicles.

    ``fit`` learns the price quartiles from the full cleaned set;
    ``transform`` applies them together with the fixed mileage, age and
    condition rules.
    """

    def __init__(self, current_year: Optional[int] = None):
        self.current_year = resolve_current_year(current_year)
        self.quartiles: Optional[Tuple[float, float, float]] = None
        self._is_fitted = False

    def fit(self, records: Sequence[VehicleRecord]) -> 'VehicleAttributeDeriver':
        self.quartiles = price_quartiles([r.price or 0 for r in records])
        self._is_fitted = True
        logger.info(f"Fitted price quartiles: {self.quartiles}")
        return self

    def derive(self, record: VehicleRecord) -> DerivedVehicle:
        if not self._is_fitted:
            raise ValueError("Deriver must be fitted before transform. Call fit() first.")

        vehicle_age = self.current_year - record.year if record.year else 0
        mileage_category = classify_mileage(record.mileage or 0)

        depreciation_rate = None
        if record.year and record.price:
            depreciation_rate = calculate_depreciation(vehicle_age)

        return DerivedVehicle(
            **record.base_values(),
            price_segment=classify_price_segment(record.price or 0, self.quartiles),
            mileage_category=mileage_category,
            vehicle_age=vehicle_age,
            depreciation_rate=depreciation_rate,
            value_score=calculate_value_score(mileage_category, vehicle_age, record.condition),
        )

    def transform(self, records: Sequence[VehicleRecord]) -> List[DerivedVehicle]:
        return [self.derive(r) for r in records]

    def fit_transform(self, records: Sequence[VehicleRecord]) -> List[DerivedVehicle]:
        self.fit(records)
        return self.transform(records)


def derive_records(
    records: Sequence[VehicleRecord],
    current_year: Optional[int] = None
) -> Tuple[DerivedVehicle, ...]:
    """
    Derive attributes for every cleaned record.

    Args:
        records: Cleaned records (each with a positive price)
        current_year: Reference year for vehicle age

    Returns:
        Tuple of DerivedVehicle in input order (empty for empty input)
    """
    if not records:
        return ()

    logger.info("=" * 60)
    logger.info("DERIVING VEHICLE ATTRIBUTES (Phase 2)")
    logger.info("=" * 60)

    deriver = VehicleAttributeDeriver(current_year)
    derived = tuple(deriver.fit_transform(records))

    logger.info(f"Derived attributes for {len(derived)} vehicles")
    return derived


def records_to_frame(vehicles: Sequence[DerivedVehicle]) -> pd.DataFrame:
    """
    Tabular view of derived vehicles, one row per vehicle.

    Numeric columns are always float64 with NaN for absent values.
    """
    frame = pd.DataFrame([v.as_dict() for v in vehicles])
    frame = frame.reindex(columns=FRAME_COLUMNS)
    for column in NUMERIC_COLUMNS:
        frame[column] = pd.to_numeric(frame[column], errors='coerce').astype('float64')
    return frame
