from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire and in the library slot."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GenerationStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Labels older records and UI variants used for an unresolved generation
LEGACY_PROCESSING_LABELS = {"pending", "starting", "generating"}


class VideoStyle(str, Enum):
    REALISTIC = "realistic"
    CINEMATIC = "cinematic"
    ANIMATED = "animated"
    ARTISTIC = "artistic"
    DOCUMENTARY = "documentary"


# Domain Models
class GenerationRequest(CamelModel):
    prompt: str
    duration: int = Field(default=5, gt=0)
    quality: str = "standard"
    style: str = VideoStyle.REALISTIC.value


class GenerationMetadata(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    model: str
    processing_time: Optional[int] = None  # seconds
    file_size: Optional[int] = None  # MB


class GenerationResult(CamelModel):
    id: str
    prompt: str
    video_url: str = ""
    thumbnail_url: Optional[str] = None
    duration: int = 5
    quality: Optional[str] = None
    style: Optional[str] = None
    status: GenerationStatus = GenerationStatus.PROCESSING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Optional[GenerationMetadata] = None
    error: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() in LEGACY_PROCESSING_LABELS:
            return GenerationStatus.PROCESSING
        return value


class InferenceOutcome(BaseModel):
    """What the upstream call yields once normalized."""

    content: str
    video_url: str
    model: str
    elapsed_seconds: float = 0.0


# Response Structs
class GenerateResponse(CamelModel):
    success: bool = True
    video: GenerationResult
    message: str = "Video generated successfully"


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class ServiceInfo(BaseModel):
    message: str
    version: str
    endpoints: Dict[str, str]
    model: str
