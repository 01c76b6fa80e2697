"""
Data Loader Module - Phase 1
============================

Handles delimited-text ingestion, header normalization, cell typing and the
domain cleaning pass.

Functions:
    - load_config: Load YAML configuration file
    - load_text: Read an input file into memory
    - detect_delimiter: Pick the delimiter that best splits the header
    - normalize_header: Map raw headers onto canonical field names
    - parse_records: Turn raw text into typed VehicleRecords
    - clean_records: Clamp domain ranges and drop unpriced records
    - detect_features: Describe which fields are numeric or categorical
"""

import logging
import math
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from .errors import InsufficientDataError, NoValidRecordsError
from .records import NUMERIC_FIELDS, Value, VehicleRecord, resolve_current_year

logger = logging.getLogger(__name__)

DELIMITERS: Tuple[str, ...] = (',', ';', '\t', '|')

HEADER_SYNONYMS: Dict[str, str] = {
    'make': 'brand',
    'manufacturer': 'brand',
    'yr': 'year',
    'manufacturing_year': 'year',
    'model_year': 'year',
    'cost': 'price',
    'selling_price': 'price',
    'value': 'price',
    'km': 'mileage',
    'kilometers': 'mileage',
    'miles': 'mileage',
    'odometer': 'mileage',
    'fuel': 'fuelType',
    'fuel_type': 'fuelType',
    'fueltype': 'fuelType',
    'engine': 'engineSize',
    'engine_capacity': 'engineSize',
    'engine_size': 'engineSize',
    'enginesize': 'engineSize',
    'state': 'condition',
    'quality': 'condition',
    'location': 'region',
    'area': 'region',
    'trans': 'transmission',
    'gear': 'transmission',
}

MISSING_TOKENS = frozenset({'', 'null', 'na'})

PRICE_RANGE = (100, 10_000_000)
MIN_YEAR = 1900
MAX_MILEAGE = 1_000_000
ENGINE_SIZE_RANGE = (0, 20)

_QUOTES_RE = re.compile(r'^["\']|["\']$')
_NUMBER_RE = re.compile(r'^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$', re.ASCII)
_INTEGER_RE = re.compile(r'^[+-]?\d+$', re.ASCII)
_NON_ALNUM_RE = re.compile(r'[^a-zA-Z0-9]')
_WORD_START_RE = re.compile(r'\b\w')


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def load_text(file_path: str) -> str:
    """
    Read a delimited text file fully into memory.

    Raises:
        FileNotFoundError: If data file doesn't exist
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    text = file_path.read_text(encoding='utf-8-sig')
    logger.info(f"Loaded {len(text)} characters from {file_path}")
    return text


def detect_delimiter(header_line: str) -> str:
    """
    Pick the delimiter that splits the header line into the most fields.

    Ties keep the earliest candidate, so comma wins when nothing else splits
    the line further.
    """
    best, best_count = DELIMITERS[0], 0
    for delimiter in DELIMITERS:
        count = len(header_line.split(delimiter))
        if count > best_count:
            best, best_count = delimiter, count
    return best


def normalize_header(header: str) -> str:
    """Lower-case, trim and map a header through the synonym table."""
    normalized = header.lower().strip()
    return HEADER_SYNONYMS.get(normalized) or _NON_ALNUM_RE.sub('', normalized)


def clean_value(value: str) -> str:
    """Trim a cell and strip one surrounding quote character at each end."""
    return _QUOTES_RE.sub('', value.strip())


def parse_cell(raw: str) -> Optional[Value]:
    """
    Type a single cell.

    Returns None for blank/``null``/``na`` cells, a number when the cleaned
    token is a finite decimal literal, otherwise the cleaned string.
    """
    value = clean_value(raw)
    if value.lower() in MISSING_TOKENS:
        return None

    if _NUMBER_RE.match(value):
        if _INTEGER_RE.match(value):
            return int(value)
        number = float(value)
        if math.isfinite(number):
            return number

    return value


def parse_records(text: str) -> List[VehicleRecord]:
    """
    Parse delimited text into loosely-typed vehicle records.

    Rows whose field count differs from the header are skipped without
    error. Record ids follow the position of the row among non-blank lines.

    Args:
        text: Whole input file contents

    Returns:
        List of VehicleRecord in input order

    Raises:
        InsufficientDataError: Fewer than two non-blank lines
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise InsufficientDataError()

    delimiter = detect_delimiter(lines[0])
    headers = [normalize_header(h) for h in lines[0].split(delimiter)]
    logger.info(f"Detected delimiter {delimiter!r} with {len(headers)} columns: {headers}")

    records: List[VehicleRecord] = []
    for index, line in enumerate(lines[1:], start=1):
        cells = line.split(delimiter)
        if len(cells) != len(headers):
            logger.debug(
                f"Skipping line {index}: {len(cells)} fields, expected {len(headers)}"
            )
            continue

        values: Dict[str, Value] = {}
        for header, cell in zip(headers, cells):
            parsed = parse_cell(cell)
            if parsed is not None:
                values[header] = parsed

        if values:
            records.append(VehicleRecord.from_fields(f"vehicle_{index}", values))

    logger.info(f"Parsed {len(records)} records from {len(lines) - 1} data lines")
    return records


def _as_number(value: Optional[Value]) -> Optional[float]:
    if isinstance(value, (int, float)):
        return value
    return None


def _title_case(value: Value) -> str:
    return _WORD_START_RE.sub(lambda m: m.group(0).upper(), str(value).strip().lower())


def clean_record(record: VehicleRecord, current_year: int) -> VehicleRecord:
    """
    Apply the domain clamps to one record.

    Out-of-range values are cleared rather than clipped to the boundary.
    """
    changes: Dict[str, Any] = {name: _as_number(getattr(record, name)) for name in NUMERIC_FIELDS}

    price = changes['price']
    if price is not None:
        price = abs(price)
        changes['price'] = price if PRICE_RANGE[0] <= price <= PRICE_RANGE[1] else None

    year = changes['year']
    if year is not None and not (MIN_YEAR <= year <= current_year + 1):
        changes['year'] = None

    mileage = changes['mileage']
    if mileage is not None:
        mileage = abs(mileage)
        changes['mileage'] = mileage if mileage <= MAX_MILEAGE else None

    engine_size = changes['engine_size']
    if engine_size is not None and not (ENGINE_SIZE_RANGE[0] <= engine_size <= ENGINE_SIZE_RANGE[1]):
        changes['engine_size'] = None

    if record.brand is not None:
        changes['brand'] = _title_case(record.brand)

    return replace(record, **changes)


def clean_records(
    records: Sequence[VehicleRecord],
    current_year: Optional[int] = None
) -> List[VehicleRecord]:
    """
    Run the cleaning pass over the whole set.

    Args:
        records: Parsed records
        current_year: Reference year for the year upper bound

    Returns:
        Cleaned records that still carry a positive price

    Raises:
        NoValidRecordsError: If no record survives
    """
    current_year = resolve_current_year(current_year)
    cleaned = [clean_record(r, current_year) for r in records]
    cleaned = [r for r in cleaned if r.price is not None and r.price > 0]

    if not cleaned:
        raise NoValidRecordsError()

    logger.info(f"Cleaning kept {len(cleaned)} of {len(records)} records")
    return cleaned


@dataclass(frozen=True)
class FeatureReport:
    """Read-only description of the fields present in a dataset."""

    has_price: bool
    has_year: bool
    has_mileage: bool
    has_brand: bool
    has_condition: bool
    has_fuel_type: bool
    has_transmission: bool
    has_engine_size: bool
    has_region: bool
    numeric_features: Tuple[str, ...]
    categorical_features: Tuple[str, ...]


def detect_features(records: Sequence[VehicleRecord], sample_size: int = 100) -> FeatureReport:
    """
    Classify the fields of the first ``sample_size`` records.

    A field is numeric when every sampled value is a number. Presence flags
    describe the first record.
    """
    sample = [r.as_dict() for r in records[:sample_size]]
    first = sample[0] if sample else {}

    keys: Dict[str, None] = {}
    for row in sample:
        for key in row:
            keys.setdefault(key, None)

    numeric: List[str] = []
    categorical: List[str] = []
    for key in keys:
        if key == 'id':
            continue
        values = [row[key] for row in sample if key in row]
        if all(isinstance(v, (int, float)) for v in values):
            numeric.append(key)
        else:
            categorical.append(key)

    return FeatureReport(
        has_price='price' in first,
        has_year='year' in first,
        has_mileage='mileage' in first,
        has_brand='brand' in first,
        has_condition='condition' in first,
        has_fuel_type='fuelType' in first,
        has_transmission='transmission' in first,
        has_engine_size='engineSize' in first,
        has_region='region' in first,
        numeric_features=tuple(numeric),
        categorical_features=tuple(categorical),
    )


def print_data_summary(records: Sequence[VehicleRecord], report: FeatureReport) -> None:
    """
    Print a formatted summary of the cleaned dataset to console.

    Args:
        records: Cleaned records
        report: Feature report for the same records
    """
    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Records: {len(records)}")
    print(f"Numeric fields: {', '.join(report.numeric_features) or '-'}")
    print(f"Categorical fields: {', '.join(report.categorical_features) or '-'}")
    print("\nCanonical Field Presence:")
    print("-" * 40)
    for name in ('price', 'year', 'mileage', 'brand', 'condition',
                 'fuel_type', 'transmission', 'engine_size', 'region'):
        flag = getattr(report, f"has_{name}")
        print(f"  {name}: {'yes' if flag else 'no'}")
    print("=" * 60 + "\n")
