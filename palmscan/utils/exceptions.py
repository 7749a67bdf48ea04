class PalmScanError(Exception):
    """Base error of the diagnosis pipeline"""
    def __init__(self, message: str = "Diagnosis error", details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ImageProcessingError(PalmScanError):
    """Raised when an image cannot be decoded or prepared"""
    def __init__(self, message: str = "Image processing error", details: dict = None):
        super().__init__(message, details)


class ClassificationError(PalmScanError):
    """Raised when the classifier call fails"""
    def __init__(self, message: str = "Classification error", details: dict = None):
        super().__init__(message, details)


class InferenceTimeoutError(ClassificationError):
    """Raised when a prediction does not finish in time"""
    def __init__(self, message: str = "Inference timed out", details: dict = None):
        super().__init__(message, details)


class ModelNotReadyError(PalmScanError):
    """Raised when a prediction is requested before the classifier is loaded"""
    def __init__(self, message: str = "Classifier is not loaded yet", details: dict = None):
        super().__init__(message, details)


class ImplausibleImageError(PalmScanError):
    """Raised when the leaf filter rejects an image"""
    def __init__(self, message: str = "Image does not look like a plant leaf", details: dict = None):
        super().__init__(message, details)


class PredictionCancelledError(PalmScanError):
    """Raised when a newer submission replaces an in-flight prediction"""
    def __init__(self, message: str = "Prediction was superseded", details: dict = None):
        super().__init__(message, details)
