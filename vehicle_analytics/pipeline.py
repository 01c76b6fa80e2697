"""
Pipeline Orchestration Module
=============================

Sequences ingestion, derivation, aggregation, training and insight
generation into one immutable snapshot per load.

Functions:
    - run_pipeline: Pure function from input text to PipelineResult
    - compute_filter_bounds: Dynamic filter ranges for the derived set

Classes:
    - PipelineResult: Snapshot of one load
    - FilterState: Consumer-editable filter ranges
    - AnalyticsStore: Holds the latest snapshot for consumers
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple

from .aggregation import (
    BrandPerformance,
    ConditionAnalysis,
    CorrelationMatrix,
    DepreciationPattern,
    KPISet,
    MileageCluster,
    PriceDistribution,
    calculate_brand_performance,
    calculate_condition_analysis,
    calculate_correlation_matrix,
    calculate_depreciation_patterns,
    calculate_kpis,
    calculate_mileage_clusters,
    calculate_price_distribution,
)
from .data_loader import FeatureReport, clean_records, detect_features, parse_records
from .errors import PipelineError
from .insights import StrategicInsight, generate_insights
from .model import PredictionModel, train_model
from .preprocessing import derive_records
from .records import DerivedVehicle, resolve_current_year

logger = logging.getLogger(__name__)

GENERIC_LOAD_ERROR = "Failed to load CSV data"


@dataclass(frozen=True)
class FilterState:
    price_range: Tuple[float, float] = (0, 1_000_000)
    year_range: Tuple[int, int] = (1900, 2030)
    mileage_range: Tuple[float, float] = (0, 500_000)
    brands: Tuple[str, ...] = ()
    conditions: Tuple[str, ...] = ()

    def update(self, **changes: Any) -> 'FilterState':
        """Return a copy with the given fields replaced."""
        for key in ('brands', 'conditions'):
            if key in changes:
                changes[key] = tuple(changes[key])
        return replace(self, **changes)


DEFAULT_FILTERS = FilterState()


def _bounds(values: Sequence[float], default: Tuple[float, float]) -> Tuple[float, float]:
    positive = [v for v in values if v and v > 0]
    if not positive:
        return default
    return (min(positive), max(positive))


def compute_filter_bounds(vehicles: Sequence[DerivedVehicle]) -> FilterState:
    """
    ``[min, max]`` over the positive prices, years and mileages.

    A field with no positive value keeps its default range.
    """
    return FilterState(
        price_range=_bounds([v.price for v in vehicles], DEFAULT_FILTERS.price_range),
        year_range=_bounds([v.year for v in vehicles], DEFAULT_FILTERS.year_range),
        mileage_range=_bounds([v.mileage for v in vehicles], DEFAULT_FILTERS.mileage_range),
    )


@dataclass(frozen=True)
class PipelineResult:
    """Everything computed by one load. Never mutated after construction."""

    vehicles: Tuple[DerivedVehicle, ...]
    feature_report: FeatureReport
    kpis: KPISet
    brand_performance: Tuple[BrandPerformance, ...]
    price_distribution: Tuple[PriceDistribution, ...]
    mileage_clusters: Tuple[MileageCluster, ...]
    condition_analysis: Tuple[ConditionAnalysis, ...]
    depreciation_patterns: Tuple[DepreciationPattern, ...]
    correlation_matrix: CorrelationMatrix
    prediction_model: Optional[PredictionModel]
    insights: Tuple[StrategicInsight, ...]
    filters: FilterState
    loaded_at: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def has_model(self) -> bool:
        return self.prediction_model is not None


def run_pipeline(
    text: str,
    config: Optional[Dict[str, Any]] = None,
    current_year: Optional[int] = None
) -> PipelineResult:
    """
    Run one full load over the given text.

    Args:
        text: Delimited input text
        config: Configuration dictionary
        current_year: Reference year (defaults to the calendar year)

    Returns:
        PipelineResult snapshot

    Raises:
        InsufficientDataError: Input has no data rows
        NoValidRecordsError: Nothing survived cleaning
    """
    config = config or {}
    current_year = resolve_current_year(current_year)
    sample_size = config.get('ingestion', {}).get('feature_sample_size', 100)

    logger.info("=" * 60)
    logger.info("STARTING VEHICLE ANALYTICS PIPELINE")
    logger.info("=" * 60)

    records = parse_records(text)
    cleaned = clean_records(records, current_year)
    feature_report = detect_features(cleaned, sample_size)

    vehicles = derive_records(cleaned, current_year)

    logger.info("Computing aggregate views...")
    kpis = calculate_kpis(vehicles)
    brand_performance = tuple(calculate_brand_performance(vehicles))
    price_distribution = tuple(calculate_price_distribution(vehicles))
    mileage_clusters = tuple(calculate_mileage_clusters(vehicles))
    condition_analysis = tuple(calculate_condition_analysis(vehicles))
    depreciation_patterns = tuple(calculate_depreciation_patterns(vehicles))
    correlation_matrix = calculate_correlation_matrix(vehicles)

    prediction_model: Optional[PredictionModel] = None
    try:
        prediction_model = train_model(vehicles, config, current_year)
    except Exception as e:
        logger.warning(f"Could not train prediction model: {e}")

    insights = tuple(generate_insights(vehicles, brand_performance, kpis))

    result = PipelineResult(
        vehicles=vehicles,
        feature_report=feature_report,
        kpis=kpis,
        brand_performance=brand_performance,
        price_distribution=price_distribution,
        mileage_clusters=mileage_clusters,
        condition_analysis=condition_analysis,
        depreciation_patterns=depreciation_patterns,
        correlation_matrix=correlation_matrix,
        prediction_model=prediction_model,
        insights=insights,
        filters=compute_filter_bounds(vehicles),
    )

    logger.info("=" * 60)
    logger.info("PIPELINE COMPLETE")
    logger.info(f"  Vehicles: {len(vehicles)}")
    logger.info(f"  Model trained: {result.has_model}")
    logger.info(f"  Insights: {len(insights)}")
    logger.info("=" * 60)

    return result


class AnalyticsStore:
    """
    Holds the latest pipeline snapshot for consumers.

    A successful load swaps ``result`` in a single assignment. A failed load
    records ``error`` and keeps the previous snapshot.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, current_year: Optional[int] = None):
        self.config = config or {}
        self.current_year = current_year
        self.result: Optional[PipelineResult] = None
        self.error: Optional[str] = None
        self.filters: FilterState = DEFAULT_FILTERS
        self.is_loading = False

    def load(self, text: str) -> bool:
        """
        Run the pipeline and publish its snapshot.

        Returns:
            True when the load succeeded

        Raises:
            RuntimeError: If called while another load is running
        """
        if self.is_loading:
            raise RuntimeError("A load is already in progress")

        self.is_loading = True
        self.error = None
        try:
            result = run_pipeline(text, self.config, self.current_year)
        except PipelineError as e:
            logger.error(f"Load failed: {e}")
            self.error = str(e)
            return False
        except Exception:
            logger.exception("Unexpected failure while loading data")
            self.error = GENERIC_LOAD_ERROR
            return False
        finally:
            self.is_loading = False

        self.result = result
        self.filters = result.filters
        return True

    def update_filters(self, **changes: Any) -> FilterState:
        self.filters = self.filters.update(**changes)
        return self.filters

    def reset_filters(self) -> FilterState:
        self.filters = DEFAULT_FILTERS
        return self.filters
