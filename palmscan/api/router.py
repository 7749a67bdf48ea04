from fastapi import APIRouter, Depends, File, UploadFile, HTTPException, Request, status
from pathlib import Path
import logging
from typing import Optional
from ..services import DiagnosisSession, PredictionOutcome
from ..utils.exceptions import (
    ImageProcessingError,
    ClassificationError,
    ImplausibleImageError,
    ModelNotReadyError,
    PredictionCancelledError,
)
from ..config.settings import (
    ALLOWED_FORMATS,
    MAX_FILE_SIZE,
    HEALTHY_LABEL,
    FAILURE_MESSAGE,
)
from .schemas import CaptureRequest, DiagnosisData, DiagnosisResponse, PredictionOut, SessionStateOut

logger = logging.getLogger(__name__)

# base64 length of a MAX_FILE_SIZE payload
MAX_CAPTURE_LENGTH = (MAX_FILE_SIZE + 2) // 3 * 4

router = APIRouter(
    prefix="/palm",
    tags=["Palm diagnosis"],
)


def get_session(request: Request) -> DiagnosisSession:
    """Session owned by the application"""
    return request.app.state.session


def is_valid_extension(filename: str) -> bool:
    """Check the file extension"""
    if not filename:
        return False
    ext = Path(filename).suffix.lower()
    return any(ext in extensions for extensions in ALLOWED_FORMATS.values())


def _to_response(outcome: PredictionOutcome, filename: Optional[str]) -> DiagnosisResponse:
    return DiagnosisResponse(
        data=DiagnosisData(
            predictions=[
                PredictionOut(class_name=pred.class_name, confidence=round(pred.confidence, 4))
                for pred in outcome.predictions
            ],
            low_confidence=outcome.low_confidence,
            tips=outcome.tips,
            is_healthy=outcome.top.class_name == HEALTHY_LABEL,
            filename=filename,
        )
    )


async def _diagnose(session: DiagnosisSession, image_data, filename: Optional[str] = None) -> DiagnosisResponse:
    try:
        outcome = await session.submit(image_data)
        return _to_response(outcome, filename)

    except ModelNotReadyError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.message
        )
    except ImplausibleImageError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": e.message, "statistics": e.details}
        )
    except ImageProcessingError as e:
        logger.error(f"Image processing error: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=FAILURE_MESSAGE
        )
    except ClassificationError as e:
        logger.error(f"Classification error: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=FAILURE_MESSAGE
        )
    except PredictionCancelledError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message
        )


@router.get("/health")
async def health(session: DiagnosisSession = Depends(get_session)):
    """Service status"""
    return {
        "status": "healthy" if session.model_loaded else "loading",
        "service": "palmscan",
        "model_loaded": session.model_loaded,
        "num_classes": len(session.service.class_names),
    }


@router.get("/labels")
async def labels(session: DiagnosisSession = Depends(get_session)):
    """Class labels in the classifier's output order"""
    if not session.model_loaded:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Classifier is not loaded yet"
        )
    return {"labels": session.service.class_names}


@router.post("/predict", response_model=DiagnosisResponse)
async def predict_upload(
    file: UploadFile = File(...),
    session: DiagnosisSession = Depends(get_session)
):
    """
    Diagnose an uploaded palm leaf photo

    Args:
        file: uploaded image (JPG, JPEG, PNG, WebP, HEIC, HEIF)

    Returns:
        Top predictions with confidence and low confidence tips

    Raises:
        HTTPException: on validation, filter or classification errors
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File name is missing"
        )

    if (file.content_type not in ALLOWED_FORMATS and
            not is_valid_extension(file.filename)):
        supported_formats = [
            ext[1:].upper()
            for exts in ALLOWED_FORMATS.values()
            for ext in exts
        ]
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported file format. Supported formats: {', '.join(supported_formats)}"
        )

    try:
        contents = await file.read(MAX_FILE_SIZE + 1)

        if len(contents) > MAX_FILE_SIZE:
            size_mb = MAX_FILE_SIZE / (1024 * 1024)
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File is larger than {size_mb:.0f}MB. Please use a smaller image."
            )

        if len(contents) == 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="File is empty"
            )

        logger.info(f"Received file: {file.filename} ({file.content_type})")
        logger.debug(f"File size: {len(contents)} bytes")

        return await _diagnose(session, contents, file.filename)

    except HTTPException:
        raise

    except Exception as e:
        logger.exception(
            f"Unexpected error while handling the request: {str(e)}\n"
            f"File type: {file.content_type}\n"
            f"File name: {file.filename}"
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )
    finally:
        await file.close()


@router.post("/capture", response_model=DiagnosisResponse)
async def predict_capture(
    payload: CaptureRequest,
    session: DiagnosisSession = Depends(get_session)
):
    """Diagnose a camera still sent as a data URL"""
    encoded = payload.image.partition(',')[2]
    if len(encoded) > MAX_CAPTURE_LENGTH:
        size_mb = MAX_FILE_SIZE / (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Capture is larger than {size_mb:.0f}MB. Please use a smaller image."
        )

    logger.info("Received camera capture")
    return await _diagnose(session, payload.image)


@router.get("/state", response_model=SessionStateOut)
async def state(session: DiagnosisSession = Depends(get_session)):
    """Currently displayed results"""
    return session.snapshot()


@router.post("/reset", response_model=SessionStateOut)
async def reset(session: DiagnosisSession = Depends(get_session)):
    """Clear the image and its results"""
    session.reset()
    return session.snapshot()
