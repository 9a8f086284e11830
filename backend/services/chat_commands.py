"""Command handlers invoked by the UI layer."""
import logging
from typing import List, Optional

from config import STORAGE_BACKEND
from models.conversation import Conversation
from .context import AppContext
from .conversation_store import ConversationStore
from .llm_client import LLMClient
from .notifications import Notification
from .request_coordinator import RequestCoordinator, RequestState, SubmitResult
from .settings_store import SettingsStore
from .storage import create_key_value_store

logger = logging.getLogger(__name__)


class ChatCommands:
    """
    The operations a chat UI can trigger.

    Holds the store, coordinator and settings store built around one
    AppContext; any UI (the FastAPI app in ``main.py``, a test) calls these
    instead of reaching into the components.
    """

    def __init__(
        self,
        context: AppContext,
        store: Optional[ConversationStore] = None,
        coordinator: Optional[RequestCoordinator] = None,
        settings_store: Optional[SettingsStore] = None,
    ):
        self.context = context
        self.store = store or ConversationStore(context)
        self.coordinator = coordinator or RequestCoordinator(context, self.store)
        self.settings_store = settings_store or SettingsStore(context)

    @classmethod
    def bootstrap(
        cls,
        context: Optional[AppContext] = None,
        client: Optional[LLMClient] = None,
    ) -> "ChatCommands":
        """
        Build a ready-to-use command set: settings and history are loaded.

        Args:
            context: Existing context; by default one is created around the
                configured storage backend
            client: Completion client override
        """
        if context is None:
            context = AppContext(storage=create_key_value_store(STORAGE_BACKEND))

        store = ConversationStore(context)
        commands = cls(
            context,
            store=store,
            coordinator=RequestCoordinator(context, store, client),
        )
        commands.settings_store.load()
        store.load()
        if not context.settings.has_credential:
            logger.warning("No API key configured; the first message will prompt for one")
        return commands

    @property
    def is_typing(self) -> bool:
        return self.coordinator.state == RequestState.SENDING

    async def send_message(self, text: str, conversation_id: Optional[str] = None) -> SubmitResult:
        return await self.coordinator.submit(text, conversation_id)

    async def regenerate(self, conversation_id: Optional[str] = None) -> SubmitResult:
        return await self.coordinator.regenerate(conversation_id)

    def cancel(self) -> bool:
        return self.coordinator.cancel()

    def new_chat(self) -> Conversation:
        return self.store.get(self.store.create_conversation())

    def open_conversation(self, conversation_id: str) -> Conversation:
        return self.store.set_current(conversation_id)

    def list_conversations(self) -> List[Conversation]:
        return self.store.conversations

    def save_settings(self, api_key: str, selected_model: str, custom_model: str) -> List[str]:
        return self.settings_store.save(api_key, selected_model, custom_model)

    def drain_notifications(self) -> List[Notification]:
        return self.context.notifier.drain()
