"""Services for Relay Chat."""
from .storage import KeyValueStore, MemoryKeyValueStore, FileKeyValueStore, SupabaseKeyValueStore, StorageError, create_key_value_store
from .notifications import Notifier, Notification
from .context import AppContext
from .errors import (
    LLMError,
    LLMClientError,
    ValidationError,
    MissingCredentialError,
    AuthError,
    RateLimitError,
    ServerError,
    CanceledError,
    UnknownError,
    ConversationNotFoundError,
)
from .cancellation import CancellationToken
from .llm_client import LLMClient, LLMResponse
from .conversation_store import ConversationStore
from .settings_store import SettingsStore
from .request_coordinator import RequestCoordinator, RequestState, Outcome, SubmitResult
from .chat_commands import ChatCommands

__all__ = ['KeyValueStore', 'MemoryKeyValueStore', 'FileKeyValueStore', 'SupabaseKeyValueStore', 'StorageError', 'create_key_value_store', 'Notifier', 'Notification', 'AppContext', 'LLMError', 'LLMClientError', 'ValidationError', 'MissingCredentialError', 'AuthError', 'RateLimitError', 'ServerError', 'CanceledError', 'UnknownError', 'ConversationNotFoundError', 'CancellationToken', 'LLMClient', 'LLMResponse', 'ConversationStore', 'SettingsStore', 'RequestCoordinator', 'RequestState', 'Outcome', 'SubmitResult', 'ChatCommands']
