"""
Object storage adapter.

The core only keeps the URL returned by `put`; where and how the bytes live
is up to the implementation.
"""
import os
from abc import ABC, abstractmethod
from functools import lru_cache

from core.config import StorageSettings, get_settings
from core.logging_config import get_logger
from utils.file_utils import safe_filename

logger = get_logger(__name__)


class ObjectStorage(ABC):
    """Stores raw upload bytes and hands back a durable retrieval URL."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """
        Store `data` under `key`.

        Returns:
            URL the extraction worker can download the file from.
        """

    @staticmethod
    def build_key(user_id: str, document_id: str, filename: str) -> str:
        return f"{user_id}/{document_id}/{safe_filename(filename)}"


class LocalObjectStorage(ObjectStorage):
    """Writes files below a root directory served under `public_base_url`."""

    def __init__(self, settings: StorageSettings | None = None):
        self.settings = settings or get_settings().storage
        self.root_dir = self.settings.root_dir

    def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        path = os.path.join(self.root_dir, *key.split("/"))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as buffer:
            buffer.write(data)
        logger.debug("Stored upload", extra={"key": key, "size": len(data)})
        return f"{self.settings.public_base_url.rstrip('/')}/{key}"


@lru_cache()
def get_storage() -> ObjectStorage:
    return LocalObjectStorage()
