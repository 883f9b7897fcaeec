import asyncio
import random
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import structlog

from client.api_client import GenerationAPIClient, GenerationRequestError
from core.exceptions import StorageError
from domain.interfaces import DEFAULT_OWNER, LibraryStore
from domain.models import GenerationRequest, GenerationResult, GenerationStatus, VideoStyle

logger = structlog.get_logger()

# UI-side bounds, tighter than the server's
MAX_UI_PROMPT_LENGTH = 500
MIN_DURATION = 3
MAX_DURATION = 30
SIMULATED_PROGRESS_CAP = 90

# (level, message) -> None; level is one of "success", "error", "info"
Notifier = Callable[[str, str], None]


class ControllerBusyError(Exception):
    """A generation is already in flight."""

    pass


def _noop_notify(level: str, message: str) -> None:
    pass


def _noop_progress(value: int) -> None:
    pass


def download_filename(prompt: str) -> str:
    return "ai-video-" + re.sub(r"[^a-zA-Z0-9]", "-", prompt[:30]) + ".mp4"


@dataclass
class ControllerState:
    status: GenerationStatus = GenerationStatus.IDLE
    progress: int = 0  # simulated, not reported by the upstream
    message: str = ""
    error: Optional[str] = None
    prompt: str = ""
    video_url: Optional[str] = None
    last_request: Optional[GenerationRequest] = field(default=None, repr=False)


class GenerationController:
    """
    Drives one generation at a time: idle -> processing -> completed | failed.
    Completed results are written through to the library store.
    """

    def __init__(
        self,
        api: GenerationAPIClient,
        store: LibraryStore,
        owner: str = DEFAULT_OWNER,
        notify: Optional[Notifier] = None,
        progress_interval: float = 2.0,
        on_progress: Optional[Callable[[int], None]] = None,
    ):
        self.api = api
        self.store = store
        self.owner = owner
        self.notify = notify or _noop_notify
        self.progress_interval = progress_interval
        self.on_progress = on_progress or _noop_progress
        self.state = ControllerState()

    @property
    def status(self) -> GenerationStatus:
        return self.state.status

    @property
    def is_busy(self) -> bool:
        return self.state.status == GenerationStatus.PROCESSING

    def _reject(self, message: str) -> None:
        # Validation failures leave the state machine where it was
        self.state.error = message
        self.state.message = message
        self.notify("error", message)

    async def submit(
        self,
        prompt: str,
        duration: int = 5,
        style: str = VideoStyle.REALISTIC.value,
        quality: str = "standard",
    ) -> Optional[GenerationResult]:
        if self.is_busy:
            raise ControllerBusyError("A video is already being generated")

        self.state.prompt = prompt
        if not prompt or not prompt.strip():
            self._reject("Please enter a video prompt")
            return None
        if len(prompt) > MAX_UI_PROMPT_LENGTH:
            self._reject(f"Prompt must be at most {MAX_UI_PROMPT_LENGTH} characters")
            return None
        if not MIN_DURATION <= duration <= MAX_DURATION:
            self._reject(f"Duration must be between {MIN_DURATION} and {MAX_DURATION} seconds")
            return None

        request = GenerationRequest(prompt=prompt, duration=duration, style=style, quality=quality)
        return await self._run(request)

    async def retry(self) -> Optional[GenerationResult]:
        if self.state.status != GenerationStatus.FAILED or self.state.last_request is None:
            raise ControllerBusyError("Only a failed generation can be retried")
        return await self._run(self.state.last_request)

    def reset(self) -> None:
        if self.is_busy:
            raise ControllerBusyError("Cannot reset while a video is being generated")
        self.state = ControllerState(prompt=self.state.prompt)

    def _fail(self, message: str) -> None:
        self.state.status = GenerationStatus.FAILED
        self._set_progress(0)
        self.state.message = message
        self.state.error = message
        self.notify("error", "Failed to generate video")

    def _set_progress(self, value: int) -> None:
        self.state.progress = value
        self.on_progress(value)

    async def _tick_progress(self) -> None:
        # The upstream reports nothing; creep towards 90 until the call returns
        while True:
            await asyncio.sleep(self.progress_interval)
            self._set_progress(min(SIMULATED_PROGRESS_CAP, self.state.progress + random.randint(1, 10)))

    async def _run(self, request: GenerationRequest) -> Optional[GenerationResult]:
        self.state.last_request = request
        self.state.status = GenerationStatus.PROCESSING
        self.state.message = "Initializing video generation..."
        self.state.error = None
        self.state.video_url = None
        self._set_progress(10)

        log = logger.bind(owner=self.owner, prompt=request.prompt[:80])
        log.info("controller_generation_started")

        ticker = asyncio.create_task(self._tick_progress())
        try:
            response = await self.api.generate(request)
            if not response.success or not response.video.video_url:
                raise GenerationRequestError("Video generation failed")
        except GenerationRequestError as e:
            log.warning("controller_generation_failed", error=e.message, status_code=e.status_code)
            self._fail(e.message)
            return None
        except Exception as e:
            log.exception("controller_generation_crashed", error=str(e))
            self._fail("Video generation failed")
            return None
        finally:
            ticker.cancel()

        video = response.video
        try:
            await self.store.append(video, owner=self.owner)
        except StorageError as e:
            log.error("controller_library_write_failed", video_id=video.id, error=str(e))
            self.notify("error", "Video generated but could not be saved to your library")

        self.state.status = GenerationStatus.COMPLETED
        self._set_progress(100)
        self.state.message = "Video generated successfully!"
        self.state.video_url = video.video_url
        self.state.prompt = ""
        self.notify("success", "Video generated successfully!")
        log.info("controller_generation_completed", video_id=video.id)
        return video

    async def videos(self) -> List[GenerationResult]:
        return await self.store.load(self.owner)

    async def delete(self, video_id: str) -> bool:
        removed = await self.store.remove(video_id, owner=self.owner)
        if removed:
            self.notify("success", "Video deleted")
        else:
            self.notify("error", "Failed to delete video")
        return removed

    async def download(self, video: GenerationResult, dest_dir: Path) -> Optional[Path]:
        destination = Path(dest_dir) / download_filename(video.prompt)
        try:
            path = await self.api.download(video.video_url, destination)
        except (httpx.HTTPError, OSError) as e:
            logger.error("controller_download_failed", video_id=video.id, error=str(e))
            self.notify("error", "Failed to download video")
            return None

        self.notify("success", "Video download started")
        return path
