import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Union

from anyio import to_thread
from PIL import Image

from palmscan.config.settings import (
    WEIGHT_PATH,
    CLASS_NAMES_PATH,
    INFERENCE_TIMEOUT,
    NOT_READY_MESSAGE,
    IMPLAUSIBLE_MESSAGE,
    FAILURE_MESSAGE,
)
from palmscan.models import Prediction
from palmscan.utils import (
    ClassificationError,
    ImageProcessingError,
    ImplausibleImageError,
    InferenceTimeoutError,
    ModelNotReadyError,
    PredictionCancelledError,
)
from .diagnosis_service import CancellationToken, DiagnosisService, PredictionOutcome

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, str, Path, Image.Image]


@dataclass
class SessionState:
    image: Optional[ImageSource] = None
    predictions: Optional[List[Prediction]] = None
    show_tips: bool = False
    loading: bool = False
    notice: Optional[str] = None


class _Request:
    def __init__(self, task: asyncio.Task, token: CancellationToken):
        self.task = task
        self.token = token


class DiagnosisSession:
    """
    Owns the loaded classifier and the result state shown to one user.

    Submissions replace each other: a new image cancels the one still in
    flight, and only the latest submission may change the displayed results.
    """

    def __init__(
        self,
        service: Optional[DiagnosisService] = None,
        timeout: float = INFERENCE_TIMEOUT
    ):
        self.service = service or DiagnosisService()
        self.timeout = timeout
        self.state = SessionState()
        self._lock = asyncio.Lock()
        self._pending: Optional[_Request] = None

    @property
    def model_loaded(self) -> bool:
        return self.service.ready

    async def load_model(
        self,
        model_path: Path = WEIGHT_PATH,
        class_names_path: Path = CLASS_NAMES_PATH
    ) -> bool:
        """
        Load the classifier in a worker thread

        Returns:
            True if the classifier is ready; on failure the session stays not ready
        """
        if self.service.ready:
            return True
        try:
            await to_thread.run_sync(
                partial(self.service.load_classifier, model_path=model_path, class_names_path=class_names_path)
            )
            logger.info("Diagnosis system is ready")
            return True
        except Exception as e:
            logger.critical(f"Failed to load the classifier: {str(e)}")
            return False

    def _cancel_pending(self):
        if self._pending is not None:
            self._pending.token.cancel()
            self._pending.task.cancel()
            self._pending = None

    async def _run(self, image_data: ImageSource, token: CancellationToken) -> PredictionOutcome:
        async with self._lock:
            token.raise_if_cancelled()
            return await to_thread.run_sync(
                partial(self.service.diagnose, image_data, token),
                abandon_on_cancel=True,
            )

    async def submit(self, image_data: ImageSource) -> PredictionOutcome:
        """
        Diagnose a captured or uploaded image

        Raises:
            ModelNotReadyError: if the classifier is not loaded yet
            ImplausibleImageError: if the image does not look like a leaf
            ImageProcessingError: if the image cannot be decoded
            ClassificationError: on inference errors, including timeouts
            PredictionCancelledError: if a newer submission replaced this one
        """
        if not self.service.ready:
            self.state.notice = NOT_READY_MESSAGE
            logger.warning("Prediction requested before the classifier was loaded")
            raise ModelNotReadyError(NOT_READY_MESSAGE)

        self._cancel_pending()
        token = CancellationToken()
        request = _Request(asyncio.ensure_future(self._run(image_data, token)), token)
        self._pending = request

        self.state.loading = True
        self.state.notice = None

        try:
            outcome = await asyncio.wait_for(request.task, timeout=self.timeout)

        except asyncio.TimeoutError:
            token.cancel()
            self._fail(request, FAILURE_MESSAGE)
            logger.error(f"Inference did not finish within {self.timeout} seconds")
            raise InferenceTimeoutError(details={"timeout": self.timeout})

        except asyncio.CancelledError:
            token.cancel()
            if self._pending is not request:
                raise PredictionCancelledError()
            raise

        except ImplausibleImageError as e:
            if self._pending is not request:
                raise PredictionCancelledError()
            self.state.image = image_data
            self.state.predictions = None
            self.state.show_tips = False
            self.state.notice = IMPLAUSIBLE_MESSAGE
            raise ImplausibleImageError(IMPLAUSIBLE_MESSAGE, e.details)

        except (ImageProcessingError, ClassificationError) as e:
            if self._pending is not request:
                raise PredictionCancelledError()
            self._fail(request, FAILURE_MESSAGE)
            logger.error(f"Diagnosis failed: {e.message}")
            raise

        finally:
            if self._pending is request:
                self.state.loading = False
                self._pending = None

        if request.token.cancelled:
            raise PredictionCancelledError()

        self.state.image = image_data
        self.state.predictions = outcome.predictions
        self.state.show_tips = outcome.low_confidence
        return outcome

    def _fail(self, request: _Request, notice: str):
        # Prior results stay on screen
        if self._pending is request:
            self.state.notice = notice

    def reset(self):
        """Forget the current image and its results"""
        self._cancel_pending()
        self.state = SessionState()

    def snapshot(self) -> Dict[str, object]:
        predictions = self.state.predictions
        return {
            "model_loaded": self.model_loaded,
            "has_image": self.state.image is not None,
            "loading": self.state.loading,
            "predictions": None if predictions is None else [
                {"class_name": pred.class_name, "confidence": round(pred.confidence, 4)}
                for pred in predictions
            ],
            "show_tips": self.state.show_tips,
            "notice": self.state.notice,
        }

    def close(self):
        """Cancel pending work and release the classifier"""
        self._cancel_pending()
        self.service.close()
