"""
Report Module
=============

Turns a pipeline snapshot into a JSON-serializable report.

Features:
    - KPI, aggregate, correlation and insight sections
    - Model diagnostics (or null when no model was trained)
    - Optional per-vehicle listing
    - JSON export
"""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from .pipeline import PipelineResult

logger = logging.getLogger(__name__)


def _rows(items) -> list:
    return [asdict(item) for item in items]


def generate_report(result: PipelineResult, include_vehicles: bool = False) -> Dict[str, Any]:
    """
    Build a report dictionary from a pipeline result.

    Args:
        result: Snapshot from run_pipeline
        include_vehicles: Whether to list every derived vehicle

    Returns:
        Report dictionary
    """
    model = result.prediction_model
    model_section = None
    if model is not None:
        model_section = {
            'weights': list(model.weights),
            'feature_names': list(model.feature_names),
            'accuracy': model.accuracy,
            'r2_score': model.r2_score,
            'mse': model.mse,
            'feature_importance': _rows(model.feature_importance),
        }

    report = {
        'generated_at': datetime.now().isoformat(),
        'loaded_at': result.loaded_at.isoformat(),
        'kpis': asdict(result.kpis),
        'feature_report': asdict(result.feature_report),
        'brand_performance': _rows(result.brand_performance),
        'price_distribution': _rows(result.price_distribution),
        'mileage_clusters': _rows(result.mileage_clusters),
        'condition_analysis': _rows(result.condition_analysis),
        'depreciation_patterns': _rows(result.depreciation_patterns),
        'correlation_matrix': {
            'features': list(result.correlation_matrix.features),
            'matrix': [list(row) for row in result.correlation_matrix.matrix],
        },
        'prediction_model': model_section,
        'insights': _rows(result.insights),
        'filters': asdict(result.filters),
    }

    if include_vehicles:
        report['vehicles'] = [v.as_dict() for v in result.vehicles]

    return report


def export_report(report: Dict[str, Any], output_path: str) -> str:
    """
    Write a report to disk as indented JSON.

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        json.dump(report, f, indent=2)

    logger.info(f"Report saved to {output_path}")
    return str(output_path)
