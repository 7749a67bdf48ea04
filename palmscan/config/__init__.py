"""
Config for palm leaf diagnosis
"""

from .settings import (
    MODEL_INPUT_SIZE, FILTER_SIZE, WEIGHT_PATH, CLASS_NAMES_PATH, TOP_K,
    NUM_CLASSES, LOW_CONFIDENCE_THRESHOLD, INFERENCE_TIMEOUT, LOGGING_CONFIG
)

__all__ = [
    'MODEL_INPUT_SIZE', 'FILTER_SIZE', 'WEIGHT_PATH', 'CLASS_NAMES_PATH', 'TOP_K',
    'NUM_CLASSES', 'LOW_CONFIDENCE_THRESHOLD', 'INFERENCE_TIMEOUT', 'LOGGING_CONFIG'
]
