"""
Record Types Module
===================

Immutable record and result types shared by every pipeline phase.

Types:
    - VehicleRecord: One parsed (and later cleaned) input row
    - DerivedVehicle: A cleaned row plus its derived analytic attributes
    - PredictionFeatures: Partial vehicle description used for price prediction
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

Value = Union[int, float, str]

# Header name (after synonym mapping) -> attribute name on VehicleRecord
CANONICAL_FIELDS: Dict[str, str] = {
    'brand': 'brand',
    'model': 'model',
    'year': 'year',
    'price': 'price',
    'mileage': 'mileage',
    'condition': 'condition',
    'fuelType': 'fuel_type',
    'transmission': 'transmission',
    'engineSize': 'engine_size',
    'color': 'color',
    'region': 'region',
}

NUMERIC_FIELDS = ('year', 'price', 'mileage', 'engine_size')

PRICE_SEGMENTS = ('Budget', 'Mid-range', 'Premium', 'Luxury')
MILEAGE_CATEGORIES = ('Low', 'Medium', 'High', 'Very High')


def resolve_current_year(current_year: Optional[int] = None) -> int:
    """Return ``current_year`` or the calendar year at call time."""
    if current_year is None:
        return datetime.now().year
    return int(current_year)


@dataclass(frozen=True)
class VehicleRecord:
    """
    A single vehicle row.

    Canonical columns live in named attributes; any other column is kept
    verbatim in ``extras``. A field that was blank or unparseable is None.
    """

    id: str
    brand: Optional[Value] = None
    model: Optional[Value] = None
    year: Optional[Value] = None
    price: Optional[Value] = None
    mileage: Optional[Value] = None
    condition: Optional[Value] = None
    fuel_type: Optional[Value] = None
    transmission: Optional[Value] = None
    engine_size: Optional[Value] = None
    color: Optional[Value] = None
    region: Optional[Value] = None
    extras: Mapping[str, Value] = field(default_factory=dict)

    @classmethod
    def from_fields(cls, record_id: str, values: Mapping[str, Value]) -> 'VehicleRecord':
        """
        Build a record from a header-name -> value mapping.

        Args:
            record_id: Identifier such as ``vehicle_3``
            values: Normalized header names mapped to typed cell values

        Returns:
            VehicleRecord with unknown headers moved to ``extras``
        """
        canonical: Dict[str, Value] = {}
        extras: Dict[str, Value] = {}
        for name, value in values.items():
            attr = CANONICAL_FIELDS.get(name)
            if attr is not None:
                canonical[attr] = value
            else:
                extras[name] = value
        return cls(id=record_id, extras=extras, **canonical)

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a value by header name (canonical or extra)."""
        attr = CANONICAL_FIELDS.get(name)
        if attr is not None:
            value = getattr(self, attr)
            return default if value is None else value
        return self.extras.get(name, default)

    def as_dict(self) -> Dict[str, Value]:
        """Header-name view of the record with absent fields omitted."""
        data: Dict[str, Value] = {'id': self.id}
        for name, attr in CANONICAL_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                data[name] = value
        # Extras never shadow the generated id or a canonical field
        data.update({k: v for k, v in self.extras.items() if k not in data})
        return data

    def base_values(self) -> Dict[str, Any]:
        """Constructor keyword arguments that reproduce this record."""
        return {f.name: getattr(self, f.name) for f in fields(VehicleRecord)}


@dataclass(frozen=True)
class DerivedVehicle(VehicleRecord):
    """A cleaned vehicle with its derived segment, age and score attributes."""

    price_segment: str = 'Budget'
    mileage_category: str = 'Low'
    vehicle_age: int = 0
    depreciation_rate: Optional[float] = None
    value_score: float = 50.0

    def as_dict(self) -> Dict[str, Value]:
        data = super().as_dict()
        data.update({
            'priceSegment': self.price_segment,
            'mileageCategory': self.mileage_category,
            'vehicleAge': self.vehicle_age,
            'valueScore': self.value_score,
        })
        if self.depreciation_rate is not None:
            data['depreciationRate'] = self.depreciation_rate
        return data


@dataclass(frozen=True)
class PredictionFeatures:
    """Partial vehicle description; absent fields fall back to model defaults."""

    mileage: Optional[float] = None
    year: Optional[int] = None
    brand: Optional[str] = None
    condition: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    engine_size: Optional[float] = None
