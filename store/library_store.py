import json
from typing import List, Optional

import structlog
from pydantic import ValidationError

from core.exceptions import StorageError
from domain.interfaces import DEFAULT_OWNER, KeyValueStorage, LibraryStore
from domain.models import GenerationResult

logger = structlog.get_logger()

LIBRARY_KEY = "generatedVideos"
DEFAULT_CAPACITY = 50


class LocalLibraryStore(LibraryStore):
    """
    Generation history kept in a single key-value slot per owner,
    serialized as a JSON array, newest first, capped at `capacity`.
    Every mutation rewrites the whole array.
    """

    def __init__(self, storage: KeyValueStorage, capacity: int = DEFAULT_CAPACITY):
        self.storage = storage
        self.capacity = capacity

    @staticmethod
    def slot_key(owner: str) -> str:
        if owner == DEFAULT_OWNER:
            return LIBRARY_KEY
        return f"{LIBRARY_KEY}:{owner}"

    async def load(self, owner: str = DEFAULT_OWNER) -> List[GenerationResult]:
        key = self.slot_key(owner)
        try:
            raw = await self.storage.get_item(key)
        except (OSError, StorageError) as e:
            logger.warning("library_slot_unreadable", key=key, error=str(e))
            return []

        if not raw:
            return []

        try:
            entries = json.loads(raw)
        except ValueError:
            logger.warning("library_slot_corrupt", key=key)
            return []

        if not isinstance(entries, list):
            logger.warning("library_slot_not_a_list", key=key)
            return []

        videos: List[GenerationResult] = []
        seen = set()
        for entry in entries:
            try:
                video = GenerationResult.model_validate(entry)
            except ValidationError:
                logger.warning("library_entry_skipped", key=key)
                continue
            if video.id in seen:
                continue
            seen.add(video.id)
            videos.append(video)

        return videos[: self.capacity]

    async def get(self, video_id: str, owner: str = DEFAULT_OWNER) -> Optional[GenerationResult]:
        for video in await self.load(owner):
            if video.id == video_id:
                return video
        return None

    async def _write(self, owner: str, videos: List[GenerationResult]) -> None:
        payload = json.dumps([v.to_json_dict() for v in videos])
        await self.storage.set_item(self.slot_key(owner), payload)

    async def append(self, result: GenerationResult, owner: str = DEFAULT_OWNER) -> List[GenerationResult]:
        videos = [v for v in await self.load(owner) if v.id != result.id]
        videos.insert(0, result)
        videos = videos[: self.capacity]

        await self._write(owner, videos)
        logger.info("library_appended", owner=owner, video_id=result.id, size=len(videos))
        return videos

    async def remove(self, video_id: str, owner: str = DEFAULT_OWNER) -> bool:
        videos = await self.load(owner)
        remaining = [v for v in videos if v.id != video_id]
        try:
            await self._write(owner, remaining)
        except (OSError, StorageError) as e:
            logger.error("library_remove_failed", owner=owner, video_id=video_id, error=str(e))
            return False

        logger.info("library_removed", owner=owner, video_id=video_id, found=len(remaining) != len(videos))
        return True

    async def list_owners(self) -> List[str]:
        owners = []
        for key in await self.storage.keys():
            if key == LIBRARY_KEY:
                owners.append(DEFAULT_OWNER)
            elif key.startswith(f"{LIBRARY_KEY}:"):
                owners.append(key.split(":", 1)[1])
        return owners
