"""
Model Evaluation Module - Phase 4
=================================

Training-set diagnostics for the price model.

Features:
    - Accuracy as the share of predictions within 20% of the actual price
    - R² and MSE via scikit-learn metrics
    - Feature importance from linear coefficients
    - Evaluation report printing
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np
from sklearn.metrics import mean_squared_error, r2_score

logger = logging.getLogger(__name__)

ACCURACY_TOLERANCE = 0.2
HIGH_IMPACT_WEIGHT = 1000
MEDIUM_IMPACT_WEIGHT = 500


@dataclass(frozen=True)
class FeatureImportance:
    feature: str
    importance: float
    impact: str


def calculate_accuracy(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Percentage of samples whose relative absolute error is below 20%."""
    relative_error = np.abs(y_true - y_pred) / y_true
    return float(np.mean(relative_error < ACCURACY_TOLERANCE) * 100)


def calculate_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, Any]:
    """
    Calculate the training-set diagnostics.

    Args:
        y_true: Actual prices
        y_pred: Predicted prices

    Returns:
        Dictionary with accuracy, r2 and mse
    """
    return {
        'accuracy': calculate_accuracy(y_true, y_pred),
        'r2': float(r2_score(y_true, y_pred)),
        'mse': float(mean_squared_error(y_true, y_pred)),
        'n_samples': int(len(y_true)),
    }


def impact_label(weight: float) -> str:
    if weight > HIGH_IMPACT_WEIGHT:
        return 'High'
    if weight > MEDIUM_IMPACT_WEIGHT:
        return 'Medium'
    return 'Low'


def calculate_feature_importance(
    weights: Sequence[float],
    feature_names: Sequence[str]
) -> List[FeatureImportance]:
    """
    Rank features by the magnitude of their coefficient.

    The impact label comes from the raw magnitude; importance is then
    expressed as a percentage of the largest magnitude.

    Args:
        weights: Feature weights without the bias term
        feature_names: Display names in the same order

    Returns:
        FeatureImportance list, most important first
    """
    magnitudes = np.abs(np.asarray(weights, dtype=float))
    largest = magnitudes.max() if len(magnitudes) else 0.0

    importances = []
    for name, magnitude in zip(feature_names, magnitudes):
        scaled = magnitude / largest * 100 if largest > 0 else 0.0
        importances.append(FeatureImportance(name, float(scaled), impact_label(magnitude)))

    return sorted(importances, key=lambda f: f.importance, reverse=True)


def print_evaluation_report(
    metrics: Dict[str, Any],
    importances: Sequence[FeatureImportance]
) -> None:
    """
    Print a formatted evaluation report to console.

    Args:
        metrics: Metrics dictionary from calculate_metrics
        importances: Output of calculate_feature_importance
    """
    print("\n" + "=" * 70)
    print("MODEL EVALUATION REPORT (training set)")
    print("=" * 70)
    print(f"  • Accuracy (within 20%): {metrics['accuracy']:.1f}%")
    print(f"  • R²: {metrics['r2']:.6f}")
    print(f"  • MSE: {metrics['mse']:,.2f}")

    print(f"\n{'Feature':<15} {'Importance (%)':<16} {'Impact':<8}")
    print("-" * 70)
    for item in importances:
        print(f"{item.feature:<15} {item.importance:<16.2f} {item.impact:<8}")

    r2 = metrics['r2']
    print("\nInterpretation:")
    if r2 > 0.9:
        print("  ✓ Excellent fit (R² > 0.9)")
    elif r2 > 0.7:
        print("  ✓ Good fit (R² > 0.7)")
    elif r2 > 0.5:
        print("  ⚠ Moderate fit (R² > 0.5)")
    else:
        print("  ✗ Poor fit (R² < 0.5) - the unscaled linear model struggles here")
    print("=" * 70 + "\n")
