"""
Utility functions and classes
"""

from .exceptions import (
    PalmScanError,
    ImageProcessingError,
    ClassificationError,
    InferenceTimeoutError,
    ModelNotReadyError,
    ImplausibleImageError,
    PredictionCancelledError,
)
from .image_processing import ImageProcessor
from .leaf_filter import ColorStatistics, compute_color_statistics, evaluate_statistics, is_likely_plant

__all__ = [
    'PalmScanError',
    'ImageProcessingError',
    'ClassificationError',
    'InferenceTimeoutError',
    'ModelNotReadyError',
    'ImplausibleImageError',
    'PredictionCancelledError',
    'ImageProcessor',
    'ColorStatistics',
    'compute_color_statistics',
    'evaluate_statistics',
    'is_likely_plant',
]
