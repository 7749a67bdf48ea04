"""
Palm leaf disease diagnosis
"""

from .models import PalmClassifier, Prediction
from .services import DiagnosisService, DiagnosisSession, PredictionOutcome
from .utils import (
    ImageProcessor,
    ImageProcessingError,
    ClassificationError,
    ModelNotReadyError,
    ImplausibleImageError,
    is_likely_plant,
)

__version__ = '1.0.0'

__all__ = [
    'PalmClassifier',
    'Prediction',
    'DiagnosisService',
    'DiagnosisSession',
    'PredictionOutcome',
    'ImageProcessor',
    'ImageProcessingError',
    'ClassificationError',
    'ModelNotReadyError',
    'ImplausibleImageError',
    'is_likely_plant',
]
