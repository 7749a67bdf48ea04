from .diagnosis_service import CancellationToken, DiagnosisService, PredictionOutcome, is_low_confidence
from .session import DiagnosisSession, SessionState

__all__ = [
    'CancellationToken',
    'DiagnosisService',
    'PredictionOutcome',
    'is_low_confidence',
    'DiagnosisSession',
    'SessionState',
]
