#!/usr/bin/env python3
"""
Vehicle Analytics - Main Pipeline
=================================

Runs the vehicle analytics pipeline over one delimited text file.

Phases:
    1. Ingest - Parse, normalize and clean the input
    2. Derive - Price segments, mileage categories, age, value scores
    3. Aggregate - KPIs, brand/condition/depreciation views, correlations
    4. Train - Linear price model with training-set diagnostics
    5. Insights - Rule-based strategic insights

Usage:
    # Run complete pipeline
    python main.py --data data/raw/vehicles.csv

    # Run on the embedded sample dataset
    python main.py --sample

    # Run specific phase
    python main.py --data data/raw/vehicles.csv --phase aggregate

    # Predict a price after training
    python main.py --sample --predict brand=BMW year=2020 mileage=30000
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from vehicle_analytics.aggregation import (
    calculate_brand_performance,
    calculate_correlation_matrix,
    calculate_kpis,
    print_aggregate_summary,
)
from vehicle_analytics.data_loader import (
    clean_records,
    detect_features,
    load_config,
    load_text,
    parse_records,
    print_data_summary,
)
from vehicle_analytics.errors import ModelTrainingError, PipelineError
from vehicle_analytics.insights import print_insights
from vehicle_analytics.model import print_model_summary, train_model
from vehicle_analytics.pipeline import PipelineResult, run_pipeline
from vehicle_analytics.preprocessing import derive_records
from vehicle_analytics.records import PredictionFeatures
from vehicle_analytics.report import export_report, generate_report
from vehicle_analytics.sample_data import SAMPLE_CSV_DATA

NUMERIC_PREDICTION_FIELDS = {'mileage': float, 'year': int, 'engine_size': float}
PREDICTION_ALIASES = {'fuelType': 'fuel_type', 'engineSize': 'engine_size'}


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure logging for the pipeline."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def parse_prediction_args(pairs: List[str]) -> PredictionFeatures:
    """
    Turn ``key=value`` pairs into PredictionFeatures.

    Raises:
        ValueError: On a malformed pair or unknown key
    """
    values: Dict[str, Any] = {}
    allowed = set(PredictionFeatures.__dataclass_fields__)
    for pair in pairs:
        key, sep, raw = pair.partition('=')
        key = PREDICTION_ALIASES.get(key.strip(), key.strip())
        if not sep or key not in allowed:
            raise ValueError(f"Invalid prediction argument: {pair!r}. Use one of {sorted(allowed)}")
        caster = NUMERIC_PREDICTION_FIELDS.get(key, str)
        values[key] = caster(raw.strip())
    return PredictionFeatures(**values)


def run_single_phase(phase: str, text: str, config: Dict[str, Any]) -> Any:
    """
    Execute the pipeline up to a single phase and print its summary.

    Args:
        phase: Phase to run ('ingest', 'derive', 'aggregate', 'train')
        text: Input text
        config: Configuration dictionary

    Returns:
        Phase output
    """
    sample_size = config.get('ingestion', {}).get('feature_sample_size', 100)
    cleaned = clean_records(parse_records(text))

    if phase == 'ingest':
        print_data_summary(cleaned, detect_features(cleaned, sample_size))
        return cleaned

    vehicles = derive_records(cleaned)

    if phase == 'derive':
        print(f"\n✓ Derived attributes for {len(vehicles)} vehicles")
        return vehicles

    elif phase == 'aggregate':
        kpis = calculate_kpis(vehicles)
        threshold = config.get('insights', {}).get('strong_correlation_threshold', 0.5)
        print_aggregate_summary(
            kpis,
            calculate_brand_performance(vehicles),
            calculate_correlation_matrix(vehicles),
            threshold,
        )
        return kpis

    elif phase == 'train':
        try:
            model = train_model(vehicles, config)
        except ModelTrainingError as e:
            logging.warning(f"Model training failed: {e}")
            model = None
        print_model_summary(model)
        return model

    else:
        raise ValueError(f"Unknown phase: {phase}. Choose from: ingest, derive, aggregate, train")


def run_full_pipeline(text: str, config: Dict[str, Any]) -> PipelineResult:
    """
    Execute every phase and print all summaries.

    Args:
        text: Input text
        config: Configuration dictionary

    Returns:
        PipelineResult snapshot
    """
    result = run_pipeline(text, config)
    threshold = config.get('insights', {}).get('strong_correlation_threshold', 0.5)

    print_data_summary(result.vehicles, result.feature_report)
    print_aggregate_summary(result.kpis, result.brand_performance,
                            result.correlation_matrix, threshold)
    print_model_summary(result.prediction_model)
    print_insights(result.insights)

    return result


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Vehicle inventory analytics and price prediction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --data data/raw/vehicles.csv
  python main.py --sample --report reports/summary.json
  python main.py --sample --phase aggregate
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--data', '-d',
        type=str,
        help='Path to the input delimited text file'
    )
    source.add_argument(
        '--sample',
        action='store_true',
        help='Use the embedded 50-vehicle sample dataset'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=['ingest', 'derive', 'aggregate', 'train', 'all'],
        default='all',
        help='Phase to run (default: all)'
    )

    parser.add_argument(
        '--report', '-r',
        type=str,
        default=None,
        help='Write a JSON report of the full pipeline to this path'
    )

    parser.add_argument(
        '--predict',
        nargs='+',
        metavar='KEY=VALUE',
        help='Predict a price, e.g. brand=BMW year=2020 mileage=30000'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args()

    config: Dict[str, Any] = {}
    if Path(args.config).exists():
        config = load_config(args.config)
    elif args.config != parser.get_default('config'):
        print(f"Error: Config file not found: {args.config}")
        return 1

    log_config = config.get('logging', {})
    level = 'DEBUG' if args.verbose else log_config.get('level', 'INFO')
    setup_logging(level, log_config.get('log_file'))

    try:
        text = SAMPLE_CSV_DATA if args.sample else load_text(args.data)

        if args.phase != 'all':
            run_single_phase(args.phase, text, config)
            return 0

        result = run_full_pipeline(text, config)

        report_path = args.report or config.get('output', {}).get('report_path')
        if report_path:
            export_report(generate_report(result), report_path)
            print(f"Report saved to: {report_path}")

        if args.predict:
            features = parse_prediction_args(args.predict)
            if result.prediction_model is None:
                print("No prediction model available for this dataset.")
                return 1
            print(f"Predicted price: ${result.prediction_model.predict(features):,.0f}")

        return 0

    except PipelineError as e:
        logging.error(f"Pipeline failed: {e}")
        print(f"\n❌ {e}")
        return 1

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
