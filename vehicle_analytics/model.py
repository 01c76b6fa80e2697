"""
Price Model Module - Phase 4
============================

Linear price regressor trained by batch gradient descent.

Features:
    - Fixed 8-feature encoding of a vehicle (numeric fields plus lookup scores)
    - Gradient descent with fixed learning rate and iteration count
    - Immutable trained model with ``predict``
    - Training-set diagnostics (accuracy, R², MSE, feature importance)

Features are left unscaled. Mileage and year dominate the
gradient, so on realistic data the descent overflows and training fails;
the orchestrator then carries on without a model.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from .errors import ModelTrainingError
from .evaluation import (
    FeatureImportance,
    calculate_feature_importance,
    calculate_metrics,
    print_evaluation_report,
)
from .records import DerivedVehicle, PredictionFeatures, resolve_current_year

logger = logging.getLogger(__name__)

FEATURE_NAMES: Tuple[str, ...] = (
    'Mileage',
    'Year',
    'Vehicle Age',
    'Engine Size',
    'Brand',
    'Condition',
    'Fuel Type',
    'Transmission',
)

DEFAULT_SCORE = 0.5

BRAND_SCORES: Dict[str, float] = {
    'toyota': 0.8,
    'honda': 0.75,
    'bmw': 0.9,
    'mercedes': 0.95,
    'audi': 0.85,
    'ford': 0.6,
    'chevrolet': 0.55,
    'nissan': 0.65,
    'volkswagen': 0.7,
    'hyundai': 0.6,
    'kia': 0.55,
    'mazda': 0.65,
    'lexus': 0.9,
    'porsche': 1.0,
    'tesla': 0.95,
}

# Substring rules, first match wins
CONDITION_SCORES = ((('excellent', 'new'), 1.0), (('good',), 0.75), (('fair',), 0.5), (('poor',), 0.25))
FUEL_SCORES = ((('electric',), 0.9), (('hybrid',), 0.8), (('diesel',), 0.6), (('petrol', 'gas'), 0.5))
TRANSMISSION_SCORES = ((('automatic',), 0.7), (('manual',), 0.5), (('cvt',), 0.6))

DEFAULT_MILEAGE = 50_000
DEFAULT_AGE = 5
DEFAULT_ENGINE_SIZE = 2.0


def _match_score(value: Optional[object], rules) -> float:
    if not value:
        return DEFAULT_SCORE
    text = str(value).lower()
    for keywords, score in rules:
        if any(k in text for k in keywords):
            return score
    return DEFAULT_SCORE


def encode_brand(brand: Optional[object]) -> float:
    if not brand:
        return DEFAULT_SCORE
    return BRAND_SCORES.get(str(brand).lower(), DEFAULT_SCORE)


def encode_condition(condition: Optional[object]) -> float:
    return _match_score(condition, CONDITION_SCORES)


def encode_fuel_type(fuel_type: Optional[object]) -> float:
    return _match_score(fuel_type, FUEL_SCORES)


def encode_transmission(transmission: Optional[object]) -> float:
    return _match_score(transmission, TRANSMISSION_SCORES)


def extract_features(vehicles: Sequence[DerivedVehicle]) -> np.ndarray:
    """
    Encode vehicles into the training feature matrix.

    Absent numeric fields become 0.

    Returns:
        Array of shape (n_vehicles, 8)
    """
    rows = [
        [
            v.mileage or 0,
            v.year or 0,
            v.vehicle_age or 0,
            v.engine_size or 0,
            encode_brand(v.brand),
            encode_condition(v.condition),
            encode_fuel_type(v.fuel_type),
            encode_transmission(v.transmission),
        ]
        for v in vehicles
    ]
    return np.array(rows, dtype=float).reshape(len(rows), len(FEATURE_NAMES))


def featurize_input(features: PredictionFeatures, current_year: int) -> np.ndarray:
    """Encode a partial description, filling gaps with typical-vehicle defaults."""
    age = current_year - features.year if features.year else DEFAULT_AGE
    return np.array([
        features.mileage or DEFAULT_MILEAGE,
        features.year or current_year - DEFAULT_AGE,
        age,
        features.engine_size or DEFAULT_ENGINE_SIZE,
        encode_brand(features.brand),
        encode_condition(features.condition),
        encode_fuel_type(features.fuel_type),
        encode_transmission(features.transmission),
    ], dtype=float)


class LinearPriceRegressor:
    """
    Linear regression with a bias term fitted by batch gradient descent.

    No feature scaling, no regularization and no convergence check: the
    descent always runs ``iterations`` full-batch steps.
    """

    def __init__(self, learning_rate: float = 0.0001, iterations: int = 1000):
        """
        Initialize the regressor with hyperparameters.

        Args:
            learning_rate: Step size applied to the mean gradient
            iterations: Number of full-batch updates
        """
        self.learning_rate = learning_rate
        self.iterations = iterations

        self.weights_: Optional[np.ndarray] = None
        self.n_features_in_: Optional[int] = None
        self.training_info: Dict[str, Any] = {}
        self._is_fitted = False

    def fit(self, X: np.ndarray, y: np.ndarray) -> 'LinearPriceRegressor':
        """
        Train the regressor.

        Args:
            X: Feature array of shape (n_samples, n_features)
            y: Target prices of shape (n_samples,)

        Returns:
            Self for method chaining
        """
        start_time = datetime.now()
        n_samples, n_features = X.shape
        design = np.hstack([np.ones((n_samples, 1)), X])
        weights = np.zeros(n_features + 1)

        logger.info(f"Training data shape: X={X.shape}, y={y.shape}")
        logger.info(f"  - learning_rate: {self.learning_rate}")
        logger.info(f"  - iterations: {self.iterations}")

        # Divergence shows up as inf/nan weights, checked by the caller
        with np.errstate(over='ignore', invalid='ignore'):
            for _ in range(self.iterations):
                errors = design @ weights - y
                gradients = design.T @ errors
                weights = weights - self.learning_rate * gradients / n_samples

        self.weights_ = weights
        self.n_features_in_ = n_features
        self.training_info = {
            'training_duration_seconds': (datetime.now() - start_time).total_seconds(),
            'n_samples': n_samples,
            'n_features': n_features,
        }
        self._is_fitted = True
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Raw (unclamped) predictions for a feature array."""
        if not self._is_fitted:
            raise ValueError("Model must be trained before prediction. Call fit() first.")

        if X.shape[1] != self.n_features_in_:
            raise ValueError(
                f"Expected {self.n_features_in_} features, but got {X.shape[1]}"
            )

        with np.errstate(over='ignore', invalid='ignore'):
            return self.weights_[0] + X @ self.weights_[1:]


@dataclass(frozen=True)
class PredictionModel:
    """
    A trained price model: weights plus the diagnostics computed at training.

    ``weights[0]`` is the bias; the rest follow ``FEATURE_NAMES``.
    """

    weights: Tuple[float, ...]
    current_year: int
    accuracy: float
    r2_score: float
    mse: float
    feature_importance: Tuple[FeatureImportance, ...]
    feature_names: Tuple[str, ...] = FEATURE_NAMES

    def predict(self, features: Optional[PredictionFeatures] = None, **kwargs: Any) -> float:
        """
        Predict a price, clamped to be non-negative.

        Accepts either a PredictionFeatures instance or its fields as
        keyword arguments.
        """
        if features is None:
            features = PredictionFeatures(**kwargs)
        vector = featurize_input(features, self.current_year)
        price = self.weights[0] + float(np.dot(self.weights[1:], vector))
        return max(0.0, price)


def predict_price(model: PredictionModel, features: PredictionFeatures) -> float:
    return model.predict(features)


def train_model(
    vehicles: Sequence[DerivedVehicle],
    config: Optional[Dict[str, Any]] = None,
    current_year: Optional[int] = None
) -> PredictionModel:
    """
    Train the price model on every positively priced vehicle.

    Args:
        vehicles: Derived vehicles
        config: Configuration dictionary (``model`` section is read)
        current_year: Reference year for prediction-time featurization

    Returns:
        Trained PredictionModel

    Raises:
        ModelTrainingError: Too few samples, constant prices, or a diverged fit
    """
    model_config = (config or {}).get('model', {})
    current_year = resolve_current_year(current_year)

    train = [v for v in vehicles if v.price and v.price > 0]
    if len(train) < 2:
        raise ModelTrainingError(f"Need at least 2 priced vehicles to train, got {len(train)}")

    X = extract_features(train)
    y = np.array([v.price for v in train], dtype=float)
    if np.all(y == y[0]):
        raise ModelTrainingError("Price has zero variance; R² is undefined")

    logger.info("=" * 60)
    logger.info("STARTING MODEL TRAINING (Phase 4)")
    logger.info("=" * 60)

    regressor = LinearPriceRegressor(
        learning_rate=model_config.get('learning_rate', 0.0001),
        iterations=model_config.get('iterations', 1000),
    )
    regressor.fit(X, y)

    weights = regressor.weights_
    if not np.all(np.isfinite(weights)):
        raise ModelTrainingError("Gradient descent diverged to non-finite weights")

    y_pred = regressor.predict(X)
    if not np.all(np.isfinite(y_pred)):
        raise ModelTrainingError("Model produced non-finite training predictions")

    metrics = calculate_metrics(y, y_pred)
    importances = calculate_feature_importance(weights[1:], FEATURE_NAMES)

    model = PredictionModel(
        weights=tuple(float(w) for w in weights),
        current_year=current_year,
        accuracy=metrics['accuracy'],
        r2_score=metrics['r2'],
        mse=metrics['mse'],
        feature_importance=tuple(importances),
    )

    logger.info("=" * 60)
    logger.info(f"MODEL TRAINING COMPLETE in "
                f"{regressor.training_info['training_duration_seconds']:.2f} seconds")
    logger.info(f"  Accuracy: {model.accuracy:.1f}%  R²: {model.r2_score:.4f}  MSE: {model.mse:.2f}")
    logger.info("=" * 60)

    return model


def print_model_summary(model: Optional[PredictionModel]) -> None:
    """
    Print a summary of the trained model, or note that none is available.

    Args:
        model: Trained model or None
    """
    print("\n" + "=" * 50)
    print("MODEL SUMMARY")
    print("=" * 50)
    if model is None:
        print("No prediction model available (training failed or too little data).")
        print("=" * 50 + "\n")
        return

    print("Model Type: LinearPriceRegressor (batch gradient descent)")
    print(f"Bias: {model.weights[0]:.4f}")
    for name, weight in zip(model.feature_names, model.weights[1:]):
        print(f"  - {name}: {weight:.6f}")
    print("=" * 50 + "\n")

    metrics = {'accuracy': model.accuracy, 'r2': model.r2_score, 'mse': model.mse}
    print_evaluation_report(metrics, model.feature_importance)
