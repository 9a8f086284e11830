"""Request coordinator: at most one outstanding completion request at a time."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from models.conversation import Conversation, Message, USER, ASSISTANT
from .cancellation import CancellationToken
from .context import AppContext
from .conversation_store import ConversationStore
from .errors import CanceledError, LLMClientError, MissingCredentialError, ValidationError
from .llm_client import LLMClient

logger = logging.getLogger(__name__)


class RequestState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"


class Outcome(str, Enum):
    """Terminal result of a single submit call."""
    IGNORED = "ignored"      # empty input, nothing happened
    REJECTED = "rejected"    # validation or missing credential, nothing mutated
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass
class SubmitResult:
    outcome: Outcome
    conversation_id: Optional[str] = None
    message: Optional[Message] = None
    error: Optional[LLMClientError] = None


class RequestCoordinator:
    """
    Relays user messages to the completion endpoint and applies the replies.

    Submitting while a request is outstanding cancels the earlier one; its
    result is discarded even if it arrives, so only the latest request can
    ever append an assistant message. Failures never mutate the store beyond
    the user message appended before the call.
    """

    def __init__(
        self,
        context: AppContext,
        store: ConversationStore,
        client: Optional[LLMClient] = None,
    ):
        self.context = context
        self.store = store
        self.client = client or LLMClient()
        self._active: Optional[CancellationToken] = None
        self._sequence = 0

    @property
    def state(self) -> RequestState:
        return RequestState.SENDING if self._active is not None else RequestState.IDLE

    def cancel(self) -> bool:
        """Cancel the outstanding request. Returns False when idle."""
        token, self._active = self._active, None
        if token is None:
            return False
        token.cancel()
        logger.info(f"Cancelled outstanding request {token.label}")
        return True

    @staticmethod
    def build_messages(conversation: Conversation) -> List[Dict[str, str]]:
        """Role/content pairs for the endpoint; timestamps are not sent."""
        return [m.to_api() for m in conversation.messages]

    async def submit(self, text: str, conversation_id: Optional[str] = None) -> SubmitResult:
        """
        Validate, append the user message, and request a reply.

        Args:
            text: Raw user input
            conversation_id: Target conversation (defaults to the current one)

        Returns:
            SubmitResult describing what happened
        """
        text = (text or "").strip()
        if not text:
            return SubmitResult(Outcome.IGNORED, conversation_id)

        limit = self.context.max_message_length
        if len(text) > limit:
            return self._reject(
                ValidationError(
                    message=f"Message too long (max {limit} characters)",
                    length=len(text),
                    max_length=limit,
                ),
                conversation_id,
            )

        settings = self.context.settings
        if not settings.has_credential:
            return self._reject(MissingCredentialError(), conversation_id)

        target = conversation_id if conversation_id is not None else self.store.current_id
        conversation = self.store.append_message(target, Message(role=USER, content=text))

        # Supersede whatever is still in flight
        self.cancel()
        self._sequence += 1
        token = CancellationToken(label=f"req-{self._sequence}")
        self._active = token

        model = settings.effective_model
        logger.info(
            f"Sending request {token.label}: model={model}, messages={len(conversation.messages)}",
            extra={"conversation_id": conversation.id, "model": model},
        )

        try:
            response = await self.client.generate(
                model=model,
                messages=self.build_messages(conversation),
                api_key=settings.api_key,
                cancel_token=token,
            )
        except CanceledError:
            logger.info(f"Request {token.label} cancelled", extra={"conversation_id": conversation.id})
            return SubmitResult(Outcome.CANCELED, conversation.id)
        except LLMClientError as e:
            if token.cancelled:
                logger.info(f"Ignoring failure of superseded request {token.label}: {e}")
                return SubmitResult(Outcome.CANCELED, conversation.id)
            self.context.notifier.error(e.user_message, prompt_credential=e.prompt_credential)
            return SubmitResult(Outcome.FAILED, conversation.id, error=e)
        finally:
            if self._active is token:
                self._active = None

        if token.cancelled:
            logger.info(f"Discarding result of superseded request {token.label}")
            return SubmitResult(Outcome.CANCELED, conversation.id)

        reply = Message(role=ASSISTANT, content=response.text)
        self.store.append_message(conversation.id, reply)
        return SubmitResult(Outcome.SUCCEEDED, conversation.id, message=reply)

    async def regenerate(self, conversation_id: Optional[str] = None) -> SubmitResult:
        """
        Replace the latest answer by re-sending the most recent user message.

        Trailing messages after that user message are discarded first, then
        its text goes through ``submit()`` like a fresh message.
        """
        target = conversation_id if conversation_id is not None else self.store.current_id
        conversation = self.store.get(target)
        if conversation is None:
            return SubmitResult(Outcome.IGNORED, target)

        last_user = self.store.discard_after_last_user(conversation.id)
        if last_user is None:
            return SubmitResult(Outcome.IGNORED, conversation.id)

        logger.info("Regenerating reply", extra={"conversation_id": conversation.id})
        return await self.submit(last_user.content, conversation.id)

    def _reject(self, error: LLMClientError, conversation_id: Optional[str]) -> SubmitResult:
        self.context.notifier.error(error.user_message, prompt_credential=error.prompt_credential)
        return SubmitResult(Outcome.REJECTED, conversation_id, error=error)
