import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from PIL import Image

from palmscan.models import PalmClassifier, Prediction
from palmscan.config.settings import (
    WEIGHT_PATH,
    CLASS_NAMES_PATH,
    TOP_K,
    LOW_CONFIDENCE_THRESHOLD,
    LOW_CONFIDENCE_TIPS,
)
from palmscan.utils import (
    ImageProcessor,
    ClassificationError,
    ImplausibleImageError,
    ModelNotReadyError,
    PredictionCancelledError,
    compute_color_statistics,
    evaluate_statistics,
)

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag shared with the worker thread of one request"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise PredictionCancelledError()


@dataclass
class PredictionOutcome:
    predictions: List[Prediction]
    low_confidence: bool
    tips: List[str] = field(default_factory=list)

    @property
    def top(self) -> Prediction:
        return self.predictions[0]


def is_low_confidence(predictions: List[Prediction], threshold: float = LOW_CONFIDENCE_THRESHOLD) -> bool:
    """True when the best prediction is strictly below the trust threshold"""
    return bool(predictions) and predictions[0].confidence < threshold


class DiagnosisService:
    def __init__(
        self,
        classifier: Optional[PalmClassifier] = None,
        top_k: int = TOP_K,
        low_confidence_threshold: float = LOW_CONFIDENCE_THRESHOLD,
        processor: Optional[ImageProcessor] = None
    ):
        """
        Leaf filter and classifier pipeline

        Args:
            classifier: loaded classifier, may be attached later
            top_k: number of returned predictions
            low_confidence_threshold: top-1 confidence below which tips are shown
            processor: image processor to use
        """
        self.classifier = classifier
        self.top_k = top_k
        self.low_confidence_threshold = low_confidence_threshold
        self.processor = processor or ImageProcessor()
        # One forward pass at a time, even when an abandoned worker is still running
        self._inference_lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self.classifier is not None

    @property
    def class_names(self) -> List[str]:
        return self.classifier.class_names if self.classifier else []

    def load_classifier(
        self,
        model_path: Path = WEIGHT_PATH,
        class_names_path: Path = CLASS_NAMES_PATH
    ) -> PalmClassifier:
        """Load the exported model and attach it to the service"""
        self.classifier = PalmClassifier(class_names_path=class_names_path, model_path=model_path)
        return self.classifier

    def diagnose(
        self,
        image_data: Union[bytes, str, Path, Image.Image],
        token: Optional[CancellationToken] = None
    ) -> PredictionOutcome:
        """
        Filter the image and classify it

        Args:
            image_data: image in one of the formats:
                - bytes: image bytes
                - str: data URL or file path
                - Path: file path
                - Image.Image: PIL image
            token: cancellation token checked between stages

        Returns:
            Top predictions and the low confidence flag

        Raises:
            ModelNotReadyError: if no classifier is loaded
            ImageProcessingError: if the image cannot be decoded
            ImplausibleImageError: if the image does not look like a leaf
            ClassificationError: on classifier errors
            PredictionCancelledError: if the token was cancelled
        """
        token = token or CancellationToken()
        classifier = self.classifier
        if classifier is None:
            raise ModelNotReadyError()

        img = self.processor.load_image(image_data)
        token.raise_if_cancelled()

        stats = compute_color_statistics(img, self.processor)
        if not evaluate_statistics(stats):
            logger.info("Image rejected by the leaf filter")
            raise ImplausibleImageError(details=stats.as_dict())
        token.raise_if_cancelled()

        image_tensor = self.processor.process_image(img)

        with self._inference_lock:
            token.raise_if_cancelled()
            try:
                predictions = classifier.predict(image_tensor, top_k=self.top_k)
            except Exception as e:
                raise ClassificationError(str(e))
        token.raise_if_cancelled()

        low_confidence = is_low_confidence(predictions, self.low_confidence_threshold)
        logger.debug(f"Top prediction: {predictions[0].class_name} ({predictions[0].confidence:.4f})")
        return PredictionOutcome(
            predictions=predictions,
            low_confidence=low_confidence,
            tips=list(LOW_CONFIDENCE_TIPS) if low_confidence else [],
        )

    def close(self):
        """Release the classifier"""
        self.classifier = None

