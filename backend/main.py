"""Main entry point for the Relay Chat local API."""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from config import CORS_ORIGINS, LOG_FORMAT, LOG_LEVEL, PORT
from logger import setup_logging
from models.api import (
    ConversationOut,
    ConversationSummary,
    ErrorOut,
    MessageOut,
    NotificationOut,
    SelectConversationRequest,
    SendMessageRequest,
    SettingsOut,
    SettingsSaveResponse,
    SettingsUpdate,
    SubmitResponse,
)
from models.conversation import Conversation, Message
from models.settings import ChatSettings
from services.chat_commands import ChatCommands
from services.errors import ConversationNotFoundError
from services.request_coordinator import SubmitResult
from services.storage import StorageError

# Initialize logging
logger = logging.getLogger(__name__)


def _message_out(message: Message) -> MessageOut:
    return MessageOut(
        role=message.role,
        content=message.content,
        timestamp=message.timestamp.isoformat(),
    )


def _conversation_out(conversation: Conversation) -> ConversationOut:
    return ConversationOut(
        id=conversation.id,
        title=conversation.title,
        messages=[_message_out(m) for m in conversation.messages],
        created_at=conversation.created_at.isoformat(),
        updated_at=conversation.updated_at.isoformat(),
    )


def _settings_out(settings: ChatSettings) -> SettingsOut:
    return SettingsOut(
        has_api_key=settings.has_credential,
        masked_api_key=settings.masked_api_key,
        selected_model=settings.selected_model,
        custom_model=settings.custom_model,
        effective_model=settings.effective_model,
    )


def _submit_response(result: SubmitResult) -> SubmitResponse:
    error = None
    if result.error is not None:
        error = ErrorOut(
            code=result.error.error.code,
            message=result.error.user_message,
            prompt_credential=result.error.prompt_credential,
        )
    return SubmitResponse(
        outcome=result.outcome.value,
        conversation_id=result.conversation_id,
        message=_message_out(result.message) if result.message else None,
        error=error,
    )


def create_app(commands: Optional[ChatCommands] = None) -> FastAPI:
    """
    Build the FastAPI application around a set of chat commands.

    Args:
        commands: Pre-built commands (tests inject these); when omitted they
            are bootstrapped from configuration on startup
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize services on startup, cancel any outstanding request on shutdown."""
        if LOG_FORMAT == "json":
            setup_logging(LOG_LEVEL)
        if app.state.commands is None:
            logger.info("Initializing Relay Chat services...")
            try:
                app.state.commands = ChatCommands.bootstrap()
                logger.info("All services initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize services: {e}", exc_info=True)
                raise
        yield
        if app.state.commands is not None:
            app.state.commands.cancel()

    app = FastAPI(
        title="Relay Chat",
        description="Local chat client relaying conversations to an OpenAI-compatible endpoint",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.commands = commands

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_commands(request: Request) -> ChatCommands:
        commands = request.app.state.commands
        if commands is None:
            raise HTTPException(status_code=503, detail="Services not initialized")
        return commands

    @app.get("/health")
    async def health(request: Request):
        """Detailed health check."""
        commands = request.app.state.commands
        return {
            "status": "healthy" if commands is not None else "starting",
            "service": "relay-chat",
            "version": "1.0.0",
            "typing": bool(commands and commands.is_typing),
        }

    @app.get("/api/conversations", response_model=List[ConversationSummary])
    async def list_conversations(request: Request) -> List[ConversationSummary]:
        commands = get_commands(request)
        current_id = commands.store.current_id
        return [
            ConversationSummary(
                id=c.id,
                title=c.title,
                updated_at=c.updated_at.isoformat(),
                message_count=len(c.messages),
                active=c.id == current_id,
            )
            for c in commands.list_conversations()
        ]

    @app.post("/api/conversations", response_model=ConversationOut)
    async def new_conversation(request: Request) -> ConversationOut:
        return _conversation_out(get_commands(request).new_chat())

    @app.get("/api/conversations/{conversation_id}", response_model=ConversationOut)
    async def get_conversation(conversation_id: str, request: Request) -> ConversationOut:
        conversation = get_commands(request).store.get(conversation_id)
        if conversation is None:
            raise HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")
        return _conversation_out(conversation)

    @app.put("/api/conversations/current", response_model=ConversationOut)
    async def select_conversation(body: SelectConversationRequest, request: Request) -> ConversationOut:
        try:
            conversation = get_commands(request).open_conversation(body.conversation_id)
        except ConversationNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return _conversation_out(conversation)

    @app.post("/api/messages", response_model=SubmitResponse)
    async def send_message(body: SendMessageRequest, request: Request) -> SubmitResponse:
        """
        Submit a user message and wait for the reply.

        Failures are reported in the body (and on the notification channel)
        rather than as HTTP errors; a request superseded by a newer one
        returns ``outcome: canceled``.
        """
        result = await get_commands(request).send_message(body.text, body.conversation_id)
        return _submit_response(result)

    @app.post("/api/conversations/{conversation_id}/regenerate", response_model=SubmitResponse)
    async def regenerate(conversation_id: str, request: Request) -> SubmitResponse:
        commands = get_commands(request)
        if commands.store.get(conversation_id) is None:
            raise HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")
        result = await commands.regenerate(conversation_id)
        return _submit_response(result)

    @app.post("/api/cancel")
    async def cancel(request: Request):
        return {"cancelled": get_commands(request).cancel()}

    @app.get("/api/settings", response_model=SettingsOut)
    async def get_settings(request: Request) -> SettingsOut:
        return _settings_out(get_commands(request).context.settings)

    @app.put("/api/settings", response_model=SettingsSaveResponse)
    async def save_settings(body: SettingsUpdate, request: Request) -> SettingsSaveResponse:
        commands = get_commands(request)
        try:
            warnings = commands.save_settings(body.api_key, body.selected_model, body.custom_model)
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return SettingsSaveResponse(settings=_settings_out(commands.context.settings), warnings=warnings)

    @app.get("/api/notifications", response_model=List[NotificationOut])
    async def notifications(request: Request) -> List[NotificationOut]:
        return [
            NotificationOut(
                level=n.level,
                message=n.message,
                duration_ms=n.duration_ms,
                prompt_credential=n.prompt_credential,
            )
            for n in get_commands(request).drain_notifications()
        ]

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Relay Chat on port {PORT}")
    uvicorn.run(app, host="127.0.0.1", port=PORT)
