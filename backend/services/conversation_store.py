"""Conversation store with key-value persistence."""
import json
import logging
import uuid
from typing import Callable, List, Optional

from models.conversation import Conversation, Message, USER
from .context import AppContext
from .errors import ConversationNotFoundError
from .storage import StorageError

logger = logging.getLogger(__name__)


class ConversationStore:
    """
    Owns the ordered list of conversations and the current-conversation pointer.

    Conversations are kept newest first and capped at
    ``context.max_history_items``; every mutation is persisted synchronously
    under the chat-history storage key.
    """

    def __init__(self, context: AppContext):
        """
        Initialize an empty store. Call ``load()`` to read persisted state.

        Args:
            context: Shared application context (storage, notifier, limits)
        """
        self.context = context
        self.history_key = context.storage_keys["CHAT_HISTORY"]
        self._conversations: List[Conversation] = []
        self.current_id: Optional[str] = None
        self._listeners: List[Callable[["ConversationStore"], None]] = []
        # Set when the persisted history could not be read; writes would overwrite it
        self.read_only = False

    @property
    def conversations(self) -> List[Conversation]:
        """Conversations, newest first. Callers must not mutate the list."""
        return list(self._conversations)

    def add_listener(self, callback: Callable[["ConversationStore"], None]) -> None:
        """Register a callback run after every persisted mutation."""
        self._listeners.append(callback)

    def load(self) -> None:
        """
        Load conversations from storage.

        A missing or malformed blob resets the store to empty; the store
        always ends with at least one conversation and a current id.

        If storage cannot be read at all, the session starts with a fresh
        in-memory conversation and the store becomes read-only, so the
        history that could not be read is never overwritten.
        """
        conversations: List[Conversation] = []
        self.read_only = False

        try:
            raw = self.context.storage.get(self.history_key)
        except StorageError as e:
            logger.error(f"Error reading chat history, not saving changes this session: {e}")
            self.context.notifier.error("Failed to load chat history; changes will not be saved")
            self.read_only = True
            raw = None

        if raw:
            try:
                conversations = self.deserialize(raw)
            except (ValueError, KeyError, TypeError, RecursionError) as e:
                logger.error(f"Error loading conversations, resetting history: {e}")
                conversations = []

        self._conversations = conversations[:self.context.max_history_items]
        self.current_id = None

        if self._conversations:
            self.current_id = self._conversations[0].id
            logger.info(f"Loaded {len(self._conversations)} conversations")
        else:
            self.create_conversation()

    def create_conversation(self) -> str:
        """
        Create an empty conversation at the front and make it current.

        Returns:
            The new conversation ID
        """
        conversation = Conversation(id=self._generate_conversation_id())
        self._conversations.insert(0, conversation)
        self.current_id = conversation.id

        # Limit history, oldest last
        overflow = self._conversations[self.context.max_history_items:]
        if overflow:
            del self._conversations[self.context.max_history_items:]
            logger.info(f"Evicted {len(overflow)} oldest conversations")

        logger.info(f"Created new conversation: {conversation.id}")
        self._persist()
        return conversation.id

    def get(self, conversation_id: Optional[str]) -> Optional[Conversation]:
        if conversation_id is None:
            return None
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def get_current(self) -> Optional[Conversation]:
        return self.get(self.current_id)

    def set_current(self, conversation_id: str) -> Conversation:
        conversation = self.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        self.current_id = conversation_id
        return conversation

    def append_message(self, conversation_id: Optional[str], message: Message) -> Conversation:
        """
        Append a message to a conversation and persist.

        If the conversation does not exist a new one is created and the
        message goes there instead.

        Args:
            conversation_id: Target conversation
            message: Message to append

        Returns:
            The conversation the message was appended to
        """
        conversation = self.get(conversation_id)
        if conversation is None:
            logger.warning(f"Conversation {conversation_id} not found, creating new one")
            conversation = self.get(self.create_conversation())

        conversation.append(message)
        logger.debug(
            f"Appended {message.role} message to conversation {conversation.id}",
            extra={"conversation_id": conversation.id},
        )
        self._persist()
        return conversation

    def discard_after_last_user(self, conversation_id: str) -> Optional[Message]:
        """
        Drop every message after the most recent user message.

        Returns:
            The most recent user message, or None if the conversation has none
            (in which case nothing is changed)
        """
        conversation = self.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        last_user = conversation.last_user_message()
        if last_user is None:
            return None

        removed = 0
        while conversation.messages and conversation.messages[-1].role != USER:
            conversation.messages.pop()
            removed += 1

        if removed:
            logger.info(f"Discarded {removed} trailing messages from conversation {conversation_id}")
        self._persist()
        return last_user

    def serialize(self) -> str:
        return json.dumps([c.to_dict() for c in self._conversations])

    @staticmethod
    def deserialize(raw: str) -> List[Conversation]:
        """
        Parse a persisted blob.

        Raises:
            ValueError: If the blob is not a JSON array of valid conversations
        """
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("Chat history must be a JSON array")

        conversations = []
        seen = set()
        for entry in data:
            conversation = Conversation.from_dict(entry)
            if conversation.id in seen:
                logger.warning(f"Skipping duplicate conversation id {conversation.id}")
                continue
            seen.add(conversation.id)
            conversations.append(conversation)
        return conversations

    def _persist(self) -> None:
        if self.read_only:
            logger.debug("Chat history is read-only this session, skipping save")
        else:
            try:
                self.context.storage.set(self.history_key, self.serialize())
            except StorageError as e:
                logger.error(f"Error saving conversations: {e}")
                self.context.notifier.error("Failed to save chat history")

        for callback in list(self._listeners):
            callback(self)

    def _generate_conversation_id(self) -> str:
        """
        Generate a unique conversation ID.

        Returns:
            Unique conversation ID string
        """
        while True:
            conversation_id = f"conv_{uuid.uuid4().hex[:12]}"
            if self.get(conversation_id) is None:
                return conversation_id
