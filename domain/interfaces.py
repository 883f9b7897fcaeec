from abc import ABC, abstractmethod
from typing import List, Optional

from domain.models import GenerationRequest, GenerationResult, InferenceOutcome

DEFAULT_OWNER = "local"


class VideoInferenceClient(ABC):
    @abstractmethod
    async def generate(self, request: GenerationRequest) -> InferenceOutcome:
        """Single upstream round trip. Raises a VideoServiceError subclass on failure."""
        pass


class KeyValueStorage(ABC):
    """A string-keyed slot store, the way a browser's localStorage behaves."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        pass


class LibraryStore(ABC):
    """
    Owner-scoped history of generation results, newest first.
    Implementations must never raise from load().
    """

    @abstractmethod
    async def load(self, owner: str = DEFAULT_OWNER) -> List[GenerationResult]:
        pass

    @abstractmethod
    async def get(self, video_id: str, owner: str = DEFAULT_OWNER) -> Optional[GenerationResult]:
        pass

    @abstractmethod
    async def append(self, result: GenerationResult, owner: str = DEFAULT_OWNER) -> List[GenerationResult]:
        """Prepends (or replaces by id) and returns the library as written."""
        pass

    @abstractmethod
    async def remove(self, video_id: str, owner: str = DEFAULT_OWNER) -> bool:
        pass

    @abstractmethod
    async def list_owners(self) -> List[str]:
        pass
