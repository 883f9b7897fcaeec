import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from client.api_client import GenerationAPIClient, GenerationRequestError
from client.controller import ControllerBusyError, GenerationController, download_filename
from domain.models import GenerateResponse, GenerationResult, GenerationStatus
from store.key_value import InMemoryKeyValueStorage
from store.library_store import LocalLibraryStore


def completed_video(prompt="A calm lake at sunset", video_url="https://cdn.example.com/lake.mp4"):
    return GenerationResult(
        id="video_1700000000000_abcdefghi",
        prompt=prompt,
        video_url=video_url,
        duration=5,
        status=GenerationStatus.COMPLETED,
    )


@pytest.fixture
def store():
    return LocalLibraryStore(InMemoryKeyValueStorage())


@pytest.fixture
def mock_api():
    api = AsyncMock()
    api.generate.return_value = GenerateResponse(video=completed_video())
    return api


@pytest.fixture
def notify():
    return MagicMock()


@pytest.fixture
def controller(mock_api, store, notify):
    return GenerationController(api=mock_api, store=store, notify=notify)


@pytest.mark.asyncio
async def test_submit_success_persists_and_clears_prompt(controller, mock_api, store, notify):
    """
    Scenario: "A calm lake at sunset" with default duration.
    Expectation: completed, non-empty video URL, one new library entry at the head.
    """
    result = await controller.submit("A calm lake at sunset")

    assert controller.status == GenerationStatus.COMPLETED
    assert controller.state.progress == 100
    assert controller.state.video_url == "https://cdn.example.com/lake.mp4"
    assert controller.state.prompt == ""
    assert result.video_url

    mock_api.generate.assert_awaited_once()
    sent = mock_api.generate.await_args.args[0]
    assert sent.prompt == "A calm lake at sunset"
    assert sent.duration == 5

    videos = await store.load()
    assert len(videos) == 1
    assert videos[0].id == result.id
    notify.assert_called_with("success", "Video generated successfully!")


@pytest.mark.asyncio
@pytest.mark.parametrize("prompt", ["", "   "])
async def test_empty_prompt_stays_idle(controller, mock_api, store, notify, prompt):
    result = await controller.submit(prompt)

    assert result is None
    assert controller.status == GenerationStatus.IDLE
    assert controller.state.error == "Please enter a video prompt"
    mock_api.generate.assert_not_called()
    assert await store.load() == []
    notify.assert_called_once_with("error", "Please enter a video prompt")


@pytest.mark.asyncio
@pytest.mark.parametrize("prompt, duration", [("x" * 501, 5), ("ok", 2), ("ok", 31)])
async def test_ui_bounds_are_enforced(controller, mock_api, prompt, duration):
    assert await controller.submit(prompt, duration=duration) is None
    assert controller.status == GenerationStatus.IDLE
    mock_api.generate.assert_not_called()


@pytest.mark.asyncio
async def test_failure_keeps_prompt_and_error(controller, mock_api, store, notify):
    mock_api.generate.side_effect = GenerationRequestError("Rate limit exceeded. Please try again later.", 429)

    result = await controller.submit("A calm lake at sunset")

    assert result is None
    assert controller.status == GenerationStatus.FAILED
    assert controller.state.progress == 0
    assert controller.state.error == "Rate limit exceeded. Please try again later."
    assert controller.state.prompt == "A calm lake at sunset"
    assert await store.load() == []
    notify.assert_called_with("error", "Failed to generate video")


@pytest.mark.asyncio
async def test_response_without_video_url_fails(controller, mock_api, store):
    mock_api.generate.return_value = GenerateResponse(video=completed_video(video_url=""))

    await controller.submit("A calm lake at sunset")

    assert controller.status == GenerationStatus.FAILED
    assert await store.load() == []


@pytest.mark.asyncio
async def test_retry_reuses_same_inputs(controller, mock_api, store):
    mock_api.generate.side_effect = [
        GenerationRequestError("temporarily unavailable", 503),
        GenerateResponse(video=completed_video()),
    ]

    await controller.submit("A calm lake at sunset", duration=12, style="cinematic")
    assert controller.status == GenerationStatus.FAILED

    await controller.retry()

    assert controller.status == GenerationStatus.COMPLETED
    first, second = [c.args[0] for c in mock_api.generate.await_args_list]
    assert first == second
    assert second.duration == 12
    assert second.style == "cinematic"
    assert len(await store.load()) == 1


@pytest.mark.asyncio
async def test_retry_requires_failed_state(controller):
    with pytest.raises(ControllerBusyError):
        await controller.retry()


@pytest.mark.asyncio
async def test_reset_returns_to_idle(controller):
    await controller.submit("A calm lake at sunset")
    controller.reset()

    assert controller.status == GenerationStatus.IDLE
    assert controller.state.progress == 0
    assert controller.state.error is None


@pytest.mark.asyncio
async def test_submit_while_processing_is_rejected(controller):
    controller.state.status = GenerationStatus.PROCESSING

    with pytest.raises(ControllerBusyError):
        await controller.submit("A calm lake at sunset")


@pytest.mark.asyncio
async def test_delete_writes_through(controller, store, notify):
    await controller.submit("A calm lake at sunset")
    video_id = (await controller.videos())[0].id

    assert await controller.delete(video_id) is True
    assert await controller.videos() == []
    notify.assert_called_with("success", "Video deleted")


def test_download_filename_is_sanitized():
    assert download_filename("A calm lake, at sunset!") == "ai-video-A-calm-lake--at-sunset-.mp4"
    assert download_filename("x" * 80) == "ai-video-" + "x" * 30 + ".mp4"


@pytest.mark.asyncio
async def test_controller_over_http_client(store):
    """The controller talking to the real API client over a mocked HTTP hop."""
    served = GenerateResponse(video=completed_video()).to_json_dict()
    requests = []

    def _server(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "POST":
            return httpx.Response(200, json=served)
        return httpx.Response(200, content=b"\x00\x00\x00\x18ftypmp42")

    api = GenerationAPIClient("http://api.test", transport=httpx.MockTransport(_server))
    controller = GenerationController(api=api, store=store)

    video = await controller.submit("A calm lake at sunset")

    assert controller.status == GenerationStatus.COMPLETED
    assert str(requests[0].url) == "http://api.test/api/generate-video"
    assert (await store.load())[0].id == video.id


@pytest.mark.asyncio
async def test_http_client_surfaces_server_error_message(store):
    def _server(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"success": False, "error": "Video generation service temporarily unavailable."})

    api = GenerationAPIClient("http://api.test", transport=httpx.MockTransport(_server))
    controller = GenerationController(api=api, store=store)

    await controller.submit("A calm lake at sunset")

    assert controller.status == GenerationStatus.FAILED
    assert controller.state.error == "Video generation service temporarily unavailable."


@pytest.mark.asyncio
async def test_download_writes_file(tmp_path, store, notify):
    payload = b"\x00\x00\x00\x18ftypmp42"
    api = GenerationAPIClient(
        "http://api.test", transport=httpx.MockTransport(lambda r: httpx.Response(200, content=payload))
    )
    controller = GenerationController(api=api, store=store, notify=notify)

    path = await controller.download(completed_video(), tmp_path)

    assert path == tmp_path / "ai-video-A-calm-lake-at-sunset.mp4"
    assert path.read_bytes() == payload
    notify.assert_called_with("success", "Video download started")


@pytest.mark.asyncio
async def test_unexpected_client_error_fails_instead_of_hanging(controller, mock_api, store, notify):
    mock_api.generate.side_effect = httpx.InvalidURL("No scheme included in URL")

    result = await controller.submit("A calm lake at sunset")

    assert result is None
    assert controller.status == GenerationStatus.FAILED
    assert not controller.is_busy
    assert controller.state.progress == 0
    assert controller.state.error == "Video generation failed"
    assert controller.state.prompt == "A calm lake at sunset"
    assert await store.load() == []
    notify.assert_called_with("error", "Failed to generate video")

    # The controller is usable again
    mock_api.generate.side_effect = None
    controller.reset()
    assert await controller.submit("A calm lake at sunset") is not None
    assert controller.status == GenerationStatus.COMPLETED


@pytest.mark.asyncio
async def test_progress_advances_while_waiting(mock_api, store):
    seen = []

    async def _slow_generate(request):
        await asyncio.sleep(0.2)
        return GenerateResponse(video=completed_video())

    mock_api.generate.side_effect = _slow_generate
    controller = GenerationController(api=mock_api, store=store, progress_interval=0.01, on_progress=seen.append)

    await controller.submit("A calm lake at sunset")

    assert seen[0] == 10
    assert seen[-1] == 100
    waiting = seen[1:-1]
    assert len(waiting) > 1
    assert all(10 < value <= 90 for value in waiting)
    assert seen == sorted(seen)


@pytest.mark.asyncio
async def test_progress_stops_after_the_call_returns(mock_api, store):
    seen = []
    controller = GenerationController(api=mock_api, store=store, progress_interval=0.01, on_progress=seen.append)

    await controller.submit("A calm lake at sunset")
    ticks = len(seen)
    await asyncio.sleep(0.05)

    assert len(seen) == ticks
    assert controller.state.progress == 100
