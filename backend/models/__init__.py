"""Data models for Relay Chat."""
from .conversation import Conversation, Message, USER, ASSISTANT, DEFAULT_TITLE
from .settings import ChatSettings
from .api import (
    SendMessageRequest,
    SelectConversationRequest,
    MessageOut,
    ConversationSummary,
    ConversationOut,
    ErrorOut,
    SubmitResponse,
    SettingsOut,
    SettingsUpdate,
    SettingsSaveResponse,
    NotificationOut,
)

__all__ = [
    "Conversation",
    "Message",
    "USER",
    "ASSISTANT",
    "DEFAULT_TITLE",
    "ChatSettings",
    "SendMessageRequest",
    "SelectConversationRequest",
    "MessageOut",
    "ConversationSummary",
    "ConversationOut",
    "ErrorOut",
    "SubmitResponse",
    "SettingsOut",
    "SettingsUpdate",
    "SettingsSaveResponse",
    "NotificationOut",
]
