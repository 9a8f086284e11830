"""Key-value persistence backends for settings and chat history."""
import abc
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from supabase import create_client, Client

from config import (
    STORAGE_BACKEND,
    STORAGE_PATH,
    SUPABASE_URL,
    SUPABASE_KEY,
    SUPABASE_KV_TABLE,
)

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when durable storage cannot be read or written."""


class KeyValueStore(abc.ABC):
    """String-to-string durable store, the equivalent of browser localStorage."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value, or None if the key is absent. Raises StorageError if the read fails."""

    @abc.abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store; nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    """
    All keys in a single JSON document on disk.

    Writes go to a temporary file that is renamed over the original, so a
    crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: str = STORAGE_PATH):
        self.path = Path(path)
        self._data: Dict[str, str] = self._read()
        logger.info(f"FileKeyValueStore initialized at {self.path}")

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Storage file {self.path} is not a JSON object, ignoring it")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".json")
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(tmp_path)
            except OSError as cleanup_error:
                logger.warning(f"Could not remove temporary file {tmp_path}: {cleanup_error}")
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._write()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._write()


class SupabaseKeyValueStore(KeyValueStore):
    """Stores keys as rows of a Supabase table with ``key`` and ``value`` columns."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table: str = SUPABASE_KV_TABLE,
        client: Optional[Client] = None,
    ):
        """
        Initialize the store with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table: Table holding the key/value rows
            client: Pre-built client (skips URL/key validation)
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table = table
        logger.info(f"SupabaseKeyValueStore initialized with table {table}")

    def get(self, key: str) -> Optional[str]:
        try:
            result = self.client.table(self.table).select("value").eq("key", key).execute()
        except Exception as e:
            raise StorageError(f"Failed to read key {key} from Supabase: {e}") from e
        if result.data:
            return result.data[0]["value"]
        return None

    def set(self, key: str, value: str) -> None:
        try:
            self.client.table(self.table).upsert({"key": key, "value": value}).execute()
        except Exception as e:
            raise StorageError(f"Failed to write key {key} to Supabase: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.table(self.table).delete().eq("key", key).execute()
        except Exception as e:
            raise StorageError(f"Failed to delete key {key} from Supabase: {e}") from e


def create_key_value_store(backend: str = STORAGE_BACKEND, **kwargs) -> KeyValueStore:
    """
    Build the configured storage backend.

    Args:
        backend: One of "file", "memory" or "supabase"
        **kwargs: Passed to the backend constructor

    Returns:
        KeyValueStore instance
    """
    if backend == "memory":
        return MemoryKeyValueStore(**kwargs)
    if backend == "file":
        return FileKeyValueStore(**kwargs)
    if backend == "supabase":
        return SupabaseKeyValueStore(**kwargs)
    raise ValueError(f"Unknown storage backend: {backend}")
