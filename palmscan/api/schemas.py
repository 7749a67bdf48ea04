from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List


class CaptureRequest(BaseModel):
    """Camera still sent by the capture widget"""
    image: str = Field(..., description="Screenshot as a base64 data URL")

    @field_validator('image')
    @classmethod
    def validate_image(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith('data:image/'):
            raise ValueError('image must be a data:image/... URL')
        return v


class PredictionOut(BaseModel):
    class_name: str
    confidence: float = Field(..., ge=0, le=1)


class DiagnosisData(BaseModel):
    predictions: List[PredictionOut]
    low_confidence: bool
    tips: List[str] = Field(default_factory=list)
    is_healthy: bool
    filename: Optional[str] = None
    processed_at: datetime = Field(default_factory=datetime.now)


class DiagnosisResponse(BaseModel):
    success: bool = True
    data: DiagnosisData


class SessionStateOut(BaseModel):
    model_loaded: bool
    has_image: bool
    loading: bool
    predictions: Optional[List[PredictionOut]] = None
    show_tips: bool
    notice: Optional[str] = None
