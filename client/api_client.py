from pathlib import Path
from typing import Any, Optional

import aiofiles
import httpx
import structlog

from domain.models import GenerateResponse, GenerationRequest, ServiceInfo

logger = structlog.get_logger()

# Matches the server's own upper bound plus headroom for the HTTP hop
DEFAULT_CLIENT_TIMEOUT = 960.0


class GenerationRequestError(Exception):
    """Non-2xx answer (or no answer) from the generation API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GenerationAPIClient:
    """Browser-side view of the HTTP surface: one POST per generation."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_CLIENT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def generate(self, request: GenerationRequest) -> GenerateResponse:
        body = request.model_dump(mode="json", by_alias=True)
        try:
            async with self._client() as client:
                resp = await client.post("/api/generate-video", json=body)
        except httpx.TimeoutException as e:
            raise GenerationRequestError("Video generation timed out", status_code=408) from e
        except httpx.HTTPError as e:
            raise GenerationRequestError(f"Could not reach the generation API: {e}") from e

        data = self._json(resp)
        if not resp.is_success:
            message = data.get("error") if isinstance(data, dict) else None
            raise GenerationRequestError(message or "Failed to generate video", status_code=resp.status_code)

        try:
            return GenerateResponse.model_validate(data)
        except ValueError as e:
            raise GenerationRequestError("Video generation failed", status_code=resp.status_code) from e

    async def service_info(self) -> ServiceInfo:
        async with self._client() as client:
            resp = await client.get("/api/generate-video")
        resp.raise_for_status()
        return ServiceInfo.model_validate(resp.json())

    async def download(self, video_url: str, destination: Path) -> Path:
        """Streams the media file to `destination`."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport, follow_redirects=True) as client:
            async with client.stream("GET", video_url) as resp:
                resp.raise_for_status()
                async with aiofiles.open(destination, "wb") as f:
                    async for chunk in resp.aiter_bytes():
                        await f.write(chunk)

        logger.info("video_downloaded", url=video_url, path=str(destination))
        return destination

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return None
