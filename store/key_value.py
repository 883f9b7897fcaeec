import json
import os
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles
import structlog

from core.exceptions import StorageError
from domain.interfaces import KeyValueStorage

logger = structlog.get_logger()


class InMemoryKeyValueStorage(KeyValueStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        # key -> raw serialized value, exactly as written
        self.items: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    async def keys(self) -> List[str]:
        return list(self.items)


class JsonFileKeyValueStorage(KeyValueStorage):
    """
    All slots live in one JSON document on disk: {"<key>": "<serialized value>"}.
    Writes go to a temp file that replaces the document, so a crash never
    leaves a half-written file. Last write wins across processes.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def _read_document(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
            document = json.loads(raw) if raw.strip() else {}
        except (OSError, ValueError) as e:
            logger.warning("kv_document_unreadable", path=str(self.path), error=str(e))
            return {}

        if not isinstance(document, dict):
            logger.warning("kv_document_not_an_object", path=str(self.path))
            return {}
        return {k: v for k, v in document.items() if isinstance(v, str)}

    async def get_item(self, key: str) -> Optional[str]:
        document = await self._read_document()
        return document.get(key)

    async def set_item(self, key: str, value: str) -> None:
        document = await self._read_document()
        document[key] = value

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(document))
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}", e) from e

    async def keys(self) -> List[str]:
        document = await self._read_document()
        return list(document)
