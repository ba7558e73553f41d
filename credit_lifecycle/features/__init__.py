"""
Features Module

Feature extraction from loan and customer records.
"""

from credit_lifecycle.features.feature_extractor import (
    FeatureExtractor,
    BASE_FEATURES,
    RATIO_FEATURES,
)

__all__ = [
    "FeatureExtractor",
    "BASE_FEATURES",
    "RATIO_FEATURES",
]
