import json
from unittest.mock import AsyncMock

import pytest

from core.exceptions import StorageError
from domain.models import GenerationResult, GenerationStatus
from store.key_value import InMemoryKeyValueStorage
from store.library_store import LIBRARY_KEY, LocalLibraryStore


def make_video(i: int, **overrides) -> GenerationResult:
    fields = {
        "id": f"video_{i}",
        "prompt": f"prompt {i}",
        "video_url": f"https://cdn.example.com/{i}.mp4",
        "status": GenerationStatus.COMPLETED,
    }
    fields.update(overrides)
    return GenerationResult(**fields)


@pytest.fixture
def storage():
    return InMemoryKeyValueStorage()


@pytest.fixture
def store(storage):
    return LocalLibraryStore(storage)


@pytest.mark.asyncio
async def test_load_empty_slot(store):
    assert await store.load() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["{not json", "", '{"id": "x"}', "42", "null"])
async def test_load_corrupt_slot_degrades_to_empty(raw):
    store = LocalLibraryStore(InMemoryKeyValueStorage({LIBRARY_KEY: raw}))
    assert await store.load() == []


@pytest.mark.asyncio
async def test_load_skips_unreadable_entries():
    entries = [make_video(1).to_json_dict(), {"garbage": True}, make_video(2).to_json_dict()]
    store = LocalLibraryStore(InMemoryKeyValueStorage({LIBRARY_KEY: json.dumps(entries)}))

    videos = await store.load()

    assert [v.id for v in videos] == ["video_1", "video_2"]


@pytest.mark.asyncio
async def test_append_then_load_puts_record_first(store):
    await store.append(make_video(1))
    await store.load()
    await store.append(make_video(2))

    videos = await store.load()

    assert videos[0].id == "video_2"
    assert [v.id for v in videos] == ["video_2", "video_1"]


@pytest.mark.asyncio
async def test_append_keeps_fifty_most_recent(store):
    for i in range(60):
        await store.append(make_video(i))

    videos = await store.load()

    assert len(videos) == 50
    assert [v.id for v in videos] == [f"video_{i}" for i in range(59, 9, -1)]
    assert len({v.id for v in videos}) == 50


@pytest.mark.asyncio
async def test_append_same_id_replaces_existing(store):
    await store.append(make_video(1, status=GenerationStatus.PROCESSING, video_url=""))
    await store.append(make_video(2))
    await store.append(make_video(1))

    videos = await store.load()

    assert [v.id for v in videos] == ["video_1", "video_2"]
    assert videos[0].status == GenerationStatus.COMPLETED


@pytest.mark.asyncio
async def test_serialized_slot_is_camel_case_json_array(store, storage):
    await store.append(make_video(1, thumbnail_url="https://cdn.example.com/1.png"))

    raw = json.loads(storage.items[LIBRARY_KEY])

    assert isinstance(raw, list)
    assert raw[0]["videoUrl"] == "https://cdn.example.com/1.mp4"
    assert raw[0]["thumbnailUrl"] == "https://cdn.example.com/1.png"
    assert "createdAt" in raw[0]


@pytest.mark.asyncio
async def test_remove_existing_record(store):
    await store.append(make_video(1))
    await store.append(make_video(2))

    assert await store.remove("video_1") is True
    assert [v.id for v in await store.load()] == ["video_2"]


@pytest.mark.asyncio
async def test_remove_missing_id_is_successful_noop(store):
    await store.append(make_video(1))
    before = await store.load()

    assert await store.remove("video_does_not_exist") is True
    assert await store.load() == before


@pytest.mark.asyncio
async def test_remove_reports_write_failure_as_false(storage):
    store = LocalLibraryStore(storage)
    await store.append(make_video(1))
    storage.set_item = AsyncMock(side_effect=StorageError("disk full"))

    assert await store.remove("video_1") is False


@pytest.mark.asyncio
async def test_owners_are_isolated(store):
    await store.append(make_video(1))
    await store.append(make_video(2), owner="alice")

    assert [v.id for v in await store.load()] == ["video_1"]
    assert [v.id for v in await store.load("alice")] == ["video_2"]
    assert sorted(await store.list_owners()) == ["alice", "local"]


@pytest.mark.asyncio
async def test_get_by_id(store):
    await store.append(make_video(1))

    assert (await store.get("video_1")).prompt == "prompt 1"
    assert await store.get("video_2") is None


@pytest.mark.asyncio
async def test_legacy_status_labels_are_normalized():
    entry = make_video(1).to_json_dict()
    entry["status"] = "generating"
    store = LocalLibraryStore(InMemoryKeyValueStorage({LIBRARY_KEY: json.dumps([entry])}))

    videos = await store.load()

    assert videos[0].status == GenerationStatus.PROCESSING
