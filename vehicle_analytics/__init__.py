"""
Vehicle Analytics System
========================

An ingestion, aggregation and price-prediction pipeline for vehicle
inventory files.

Modules:
    - data_loader: Delimited-text ingestion, normalization and cleaning
    - preprocessing: Derived vehicle attributes (segments, age, value score)
    - aggregation: KPIs, grouped views and the correlation matrix
    - model: Linear price model trained by gradient descent
    - evaluation: Training-set diagnostics and feature importance
    - insights: Rule-based strategic insights
    - pipeline: Orchestration and the snapshot store
    - report: JSON report generation
"""

__version__ = "1.0.0"
__author__ = "Vehicle Analytics Team"
