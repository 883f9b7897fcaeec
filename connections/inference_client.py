import asyncio
import re
import time
from typing import Any, Dict, Optional

import httpx
import structlog

from core.config import Settings
from core.exceptions import (
    GenerationTimeoutError,
    MalformedUpstreamResponseError,
    RateLimitedError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
    ValidationException,
)
from core.telemetry import tracer
from domain.interfaces import VideoInferenceClient
from domain.models import GenerationRequest, InferenceOutcome

logger = structlog.get_logger()

SYSTEM_PROMPT = (
    "You are a professional video generation AI. Create high-quality videos based on user descriptions "
    "with cinematic quality, smooth transitions, and professional production values."
)

VIDEO_URL_PATTERN = re.compile(r"https?://[^\s]+?\.(?:mp4|webm|avi|mov)\b", re.IGNORECASE)


def extract_video_url(content: Any) -> Optional[str]:
    """First http(s) link to an .mp4/.webm/.avi/.mov file in the assistant text."""
    if not isinstance(content, str):
        return None
    match = VIDEO_URL_PATTERN.search(content)
    return match.group(0) if match else None


class ChatCompletionsVideoClient(VideoInferenceClient):
    """
    Talks to an OpenAI-style chat/completions endpoint that fronts a video model.
    One POST per generate() call, bounded by GENERATION_TIMEOUT. No retries.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = settings.INFERENCE_URL
        self.model = settings.INFERENCE_MODEL
        self.customer_id = settings.INFERENCE_CUSTOMER_ID
        self.api_key = settings.INFERENCE_API_KEY
        self.timeout = settings.GENERATION_TIMEOUT
        self.max_tokens = settings.MAX_TOKENS
        self.temperature = settings.TEMPERATURE
        self.sample_video_url = settings.SAMPLE_VIDEO_URL
        # Tests inject httpx.MockTransport here
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        # Unset credentials are left out; an empty bearer is not a legal header value
        if self.customer_id:
            headers["CustomerId"] = self.customer_id
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        user_prompt = (
            f"Generate a high-quality video based on this description: {request.prompt.strip()}. "
            f"Duration: {request.duration} seconds. "
            f"Style: {request.style}, cinematic, professional lighting, smooth camera movements. "
            f"Quality: {request.quality}."
        )
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": False,
        }

    async def generate(self, request: GenerationRequest) -> InferenceOutcome:
        if not request.prompt or not request.prompt.strip():
            raise ValidationException("Valid prompt is required")

        payload = self.build_payload(request)
        started = time.perf_counter()

        with tracer.start_as_current_span("video_inference") as span:
            span.set_attribute("inference.model", self.model)
            logger.info("inference_request_sent", model=self.model, prompt=request.prompt[:80])

            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    # httpx timeouts are per operation; wait_for bounds the whole exchange
                    resp = await asyncio.wait_for(
                        client.post(self.url, json=payload, headers=self._headers()), timeout=self.timeout
                    )
            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                logger.warning("inference_timed_out", timeout_s=self.timeout)
                raise GenerationTimeoutError(
                    "Video generation timed out. Please try with a shorter or simpler prompt.", e
                ) from e
            except httpx.LocalProtocolError:
                # A request we built badly is our bug, not an upstream outage
                raise
            except httpx.TransportError as e:
                logger.error("inference_transport_failed", error=str(e))
                raise UpstreamUnavailableError(
                    "Video generation service temporarily unavailable. Please try again.", e
                ) from e

            span.set_attribute("http.status_code", resp.status_code)
            elapsed = time.perf_counter() - started

            if not resp.is_success:
                self._raise_for_status(resp)

            content = self._message_content(resp)

        video_url = extract_video_url(content)
        if video_url is None:
            logger.info("inference_no_video_url_using_sample")
            video_url = self.sample_video_url

        logger.info("inference_completed", status=resp.status_code, elapsed_s=round(elapsed, 2))
        return InferenceOutcome(
            content=content if isinstance(content, str) else "",
            video_url=video_url,
            model=self.model,
            elapsed_seconds=elapsed,
        )

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        logger.error("inference_rejected", status=resp.status_code, body=resp.text[:500])

        if resp.status_code == 429:
            raise RateLimitedError("Rate limit exceeded. Please try again later.")

        if resp.status_code >= 500:
            raise UpstreamUnavailableError("Video generation service temporarily unavailable. Please try again.")

        raise UpstreamRejectedError(
            "Failed to generate video. Please check your prompt and try again.", status_code=resp.status_code
        )

    @staticmethod
    def _message_content(resp: httpx.Response) -> Any:
        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedUpstreamResponseError("Invalid response from video generation service", e) from e

        choices = data.get("choices") if isinstance(data, dict) else None
        first = choices[0] if isinstance(choices, list) and choices else None
        message = first.get("message") if isinstance(first, dict) else None
        if not message:
            logger.error("inference_malformed_body", keys=list(data) if isinstance(data, dict) else None)
            raise MalformedUpstreamResponseError("Invalid response from video generation service")

        return message.get("content") if isinstance(message, dict) else None
