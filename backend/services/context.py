"""Application context shared by the store, coordinator and UI layer."""
from dataclasses import dataclass, field
from typing import Dict

from config import MAX_HISTORY_ITEMS, MAX_MESSAGE_LENGTH, STORAGE_KEYS
from models.settings import ChatSettings
from .notifications import Notifier
from .storage import KeyValueStore, MemoryKeyValueStore


@dataclass
class AppContext:
    """Everything the chat components share, passed explicitly to constructors."""
    storage: KeyValueStore = field(default_factory=MemoryKeyValueStore)
    settings: ChatSettings = field(default_factory=ChatSettings)
    notifier: Notifier = field(default_factory=Notifier)
    max_history_items: int = MAX_HISTORY_ITEMS
    max_message_length: int = MAX_MESSAGE_LENGTH
    storage_keys: Dict[str, str] = field(default_factory=lambda: dict(STORAGE_KEYS))
