import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Mapping

import structlog

from core.config import Settings
from core.exceptions import ValidationException
from domain.interfaces import VideoInferenceClient
from domain.models import (
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    ServiceInfo,
)

logger = structlog.get_logger()

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_video_id() -> str:
    """video_<epoch ms>_<9 base-36 chars>"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"video_{int(time.time() * 1000)}_{suffix}"


class GenerationHandler:
    """
    The server boundary for a generation request.
    Validates raw input, makes one upstream call, and turns the outcome
    into a GenerationResult. Upstream failures propagate as VideoServiceError.
    """

    def __init__(self, client: VideoInferenceClient, settings: Settings):
        self.client = client
        self.settings = settings

    def parse_request(self, raw_input: Any) -> GenerationRequest:
        if not isinstance(raw_input, Mapping):
            raise ValidationException("Valid prompt is required")

        prompt = raw_input.get("prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationException("Valid prompt is required")

        prompt = prompt.strip()
        if len(prompt) > self.settings.MAX_PROMPT_LENGTH:
            raise ValidationException(f"Prompt must be less than {self.settings.MAX_PROMPT_LENGTH} characters")

        duration = raw_input.get("duration", 5)
        if isinstance(duration, float) and duration.is_integer():
            duration = int(duration)
        # bool is an int subclass, reject it explicitly
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise ValidationException("Duration must be a positive whole number of seconds")

        fields = {"prompt": prompt, "duration": duration}
        for name in ("quality", "style"):
            value = raw_input.get(name)
            if value is None:
                continue
            if not isinstance(value, str) or not value.strip():
                raise ValidationException(f"{name.capitalize()} must be a non-empty string")
            fields[name] = value.strip()

        return GenerationRequest(**fields)

    async def handle(self, raw_input: Any) -> GenerationResult:
        request = self.parse_request(raw_input)
        log = logger.bind(prompt=request.prompt[:80], duration=request.duration)
        log.info("generation_requested")

        outcome = await self.client.generate(request)

        result = GenerationResult(
            id=new_video_id(),
            prompt=request.prompt,
            video_url=outcome.video_url,
            thumbnail_url=self.settings.SAMPLE_THUMBNAIL_URL,
            duration=request.duration,
            quality=request.quality,
            style=request.style,
            status=GenerationStatus.COMPLETED,
            created_at=datetime.now(timezone.utc),
            # Estimates only, the upstream reports neither
            metadata=GenerationMetadata(
                model=outcome.model,
                processing_time=random.randint(60, 359),
                file_size=random.randint(10, 59),
            ),
        )

        log.info("generation_completed", video_id=result.id, elapsed_s=round(outcome.elapsed_seconds, 2))
        return result

    def service_info(self) -> ServiceInfo:
        return ServiceInfo(
            message="AI Video Generation API",
            version=self.settings.APP_VERSION,
            endpoints={"POST": "/api/generate-video - Generate video from text prompt"},
            model=self.settings.INFERENCE_MODEL,
        )
