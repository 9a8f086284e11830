"""API request and response models for the Relay Chat UI layer."""
from typing import List, Optional
from pydantic import BaseModel, Field


class SendMessageRequest(BaseModel):
    """Request body for POST /api/messages."""
    text: str
    conversation_id: Optional[str] = None


class SelectConversationRequest(BaseModel):
    """Request body for PUT /api/conversations/current."""
    conversation_id: str


class MessageOut(BaseModel):
    role: str
    content: str
    timestamp: str


class ConversationSummary(BaseModel):
    id: str
    title: str
    updated_at: str
    message_count: int
    active: bool = False


class ConversationOut(BaseModel):
    id: str
    title: str
    messages: List[MessageOut]
    created_at: str
    updated_at: str


class ErrorOut(BaseModel):
    code: str
    message: str
    prompt_credential: bool = False


class SubmitResponse(BaseModel):
    """Outcome of a submit or regenerate command."""
    outcome: str
    conversation_id: Optional[str] = None
    message: Optional[MessageOut] = None
    error: Optional[ErrorOut] = None


class SettingsOut(BaseModel):
    has_api_key: bool
    masked_api_key: str
    selected_model: str
    custom_model: str
    effective_model: str


class SettingsUpdate(BaseModel):
    """Request body for PUT /api/settings."""
    api_key: str = ""
    selected_model: str = ""
    custom_model: str = ""


class SettingsSaveResponse(BaseModel):
    settings: SettingsOut
    warnings: List[str] = Field(default_factory=list)


class NotificationOut(BaseModel):
    level: str
    message: str
    duration_ms: int
    prompt_credential: bool = False
