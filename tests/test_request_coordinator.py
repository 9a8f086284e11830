"""Unit tests for RequestCoordinator."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import asyncio
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from models.settings import ChatSettings
from services.context import AppContext
from services.conversation_store import ConversationStore
from services.errors import (
    AuthError,
    MissingCredentialError,
    ServerError,
    ValidationError,
)
from services.llm_client import LLMClient, LLMResponse
from services.request_coordinator import Outcome, RequestCoordinator, RequestState
from services.storage import MemoryKeyValueStore


def _response(text):
    return LLMResponse(text=text, tokens_input=10, tokens_output=5, latency_ms=1, model_used="m")


class ControlledClient:
    """Fake completion client whose replies are resolved by the test."""

    def __init__(self):
        self.calls = []

    async def generate(self, model, messages, api_key, cancel_token=None):
        future = asyncio.get_running_loop().create_future()
        self.calls.append(SimpleNamespace(
            model=model,
            messages=list(messages),
            api_key=api_key,
            token=cancel_token,
            future=future,
        ))
        return await future


@pytest.fixture
def context():
    """Context with a configured credential and in-memory storage."""
    return AppContext(
        storage=MemoryKeyValueStore(),
        settings=ChatSettings(api_key="sk-or-test", selected_model="openai/gpt-3.5-turbo"),
    )


@pytest.fixture
def store(context):
    store = ConversationStore(context)
    store.load()
    return store


def _contents(store):
    return [(m.role, m.content) for m in store.get_current().messages]


class TestSubmitValidation:
    """Tests for input rejected before anything is sent."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
    async def test_empty_input_is_ignored(self, context, store, text):
        """Test that empty or whitespace-only input is a silent no-op."""
        client = MagicMock()
        client.generate = AsyncMock()
        coordinator = RequestCoordinator(context, store, client)

        result = await coordinator.submit(text)

        assert result.outcome == Outcome.IGNORED
        assert _contents(store) == []
        assert context.notifier.drain() == []
        client.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_oversized_input_rejected(self, context, store):
        """Test that 4001 characters is rejected with no mutation."""
        client = MagicMock()
        client.generate = AsyncMock()
        coordinator = RequestCoordinator(context, store, client)
        before = store.serialize()

        result = await coordinator.submit("x" * 4001)

        assert result.outcome == Outcome.REJECTED
        assert isinstance(result.error, ValidationError)
        assert store.serialize() == before
        client.generate.assert_not_called()
        notices = context.notifier.drain()
        assert notices[0].message == "Error: Message too long (max 4000 characters)"

    @pytest.mark.asyncio
    async def test_input_at_limit_accepted(self, context, store):
        """Test that exactly 4000 characters is accepted."""
        client = MagicMock()
        client.generate = AsyncMock(return_value=_response("ok"))
        coordinator = RequestCoordinator(context, store, client)

        result = await coordinator.submit("x" * 4000)

        assert result.outcome == Outcome.SUCCEEDED

    @pytest.mark.asyncio
    async def test_missing_credential(self, store):
        """Test that no credential means no message and a credential prompt."""
        context = store.context
        context.settings = ChatSettings(api_key="")
        client = MagicMock()
        client.generate = AsyncMock()
        coordinator = RequestCoordinator(context, store, client)

        result = await coordinator.submit("Hello")

        assert result.outcome == Outcome.REJECTED
        assert isinstance(result.error, MissingCredentialError)
        assert _contents(store) == []
        client.generate.assert_not_called()
        notice = context.notifier.drain()[0]
        assert notice.prompt_credential is True


class TestSubmit:
    """Tests for accepted submissions."""

    @pytest.mark.asyncio
    async def test_user_message_appended_before_network_call(self, context, store):
        """Test that the user message is in the store when the request starts."""
        seen = {}

        async def generate(model, messages, api_key, cancel_token=None):
            seen["stored"] = _contents(store)
            seen["messages"] = messages
            return _response("Hi there")

        client = MagicMock()
        client.generate = generate
        coordinator = RequestCoordinator(context, store, client)

        result = await coordinator.submit("  Hello  ")

        assert seen["stored"] == [("user", "Hello")]
        assert seen["messages"] == [{"role": "user", "content": "Hello"}]
        assert result.outcome == Outcome.SUCCEEDED
        assert result.message.content == "Hi there"
        assert _contents(store) == [("user", "Hello"), ("assistant", "Hi there")]
        assert store.get_current().title == "Hello"

    @pytest.mark.asyncio
    async def test_full_history_sent_with_effective_model(self, context, store):
        """Test that the whole conversation and the custom model are sent."""
        context.settings.custom_model = "anthropic/claude-3-haiku"
        client = MagicMock()
        client.generate = AsyncMock(side_effect=[_response("A1"), _response("A2")])
        coordinator = RequestCoordinator(context, store, client)

        await coordinator.submit("Q1")
        await coordinator.submit("Q2")

        kwargs = client.generate.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-3-haiku"
        assert kwargs["api_key"] == "sk-or-test"
        assert kwargs["messages"] == [
            {"role": "user", "content": "Q1"},
            {"role": "assistant", "content": "A1"},
            {"role": "user", "content": "Q2"},
        ]

    @pytest.mark.asyncio
    async def test_auth_error_keeps_user_message_only(self, context, store):
        """Test that a 401 leaves the user message and prompts for a key."""
        coordinator = RequestCoordinator(context, store, LLMClient(base_url="http://fake"))

        mock_resp = MagicMock()
        mock_resp.status_code = 401
        mock_resp.json.return_value = {"error": {"message": "No auth credentials found"}}
        with patch("services.llm_client.httpx.AsyncClient") as mock_client_cls:
            mock_client = AsyncMock()
            mock_client.post.return_value = mock_resp
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=False)
            mock_client_cls.return_value = mock_client

            result = await coordinator.submit("Hi")

        assert result.outcome == Outcome.FAILED
        assert isinstance(result.error, AuthError)
        assert _contents(store) == [("user", "Hi")]
        notice = context.notifier.drain()[-1]
        assert notice.message == "Error: Invalid API key. Please check your API key in settings."
        assert notice.prompt_credential is True
        assert coordinator.state == RequestState.IDLE

    @pytest.mark.asyncio
    async def test_server_error_not_retried(self, context, store):
        """Test that failures are reported once and never retried."""
        client = MagicMock()
        client.generate = AsyncMock(side_effect=ServerError(status_code=500))
        coordinator = RequestCoordinator(context, store, client)

        result = await coordinator.submit("Hi")

        assert result.outcome == Outcome.FAILED
        assert client.generate.call_count == 1
        assert _contents(store) == [("user", "Hi")]
        assert context.notifier.drain()[-1].message == "Error: Server error. Please try again."

    @pytest.mark.asyncio
    async def test_submit_to_unknown_conversation_creates_one(self, context, store):
        """Test the recovery policy when the target conversation is gone."""
        client = MagicMock()
        client.generate = AsyncMock(return_value=_response("Reply"))
        coordinator = RequestCoordinator(context, store, client)

        result = await coordinator.submit("Hello", conversation_id="conv_gone")

        assert result.conversation_id != "conv_gone"
        assert [m.content for m in store.get(result.conversation_id).messages] == ["Hello", "Reply"]


class TestCancellation:
    """Tests for superseding and cancelling requests."""

    @pytest.mark.asyncio
    async def test_second_submit_supersedes_first(self, context, store):
        """Test that only the later request's reply is applied."""
        client = ControlledClient()
        coordinator = RequestCoordinator(context, store, client)

        task_a = asyncio.ensure_future(coordinator.submit("A"))
        await asyncio.sleep(0)
        assert coordinator.state == RequestState.SENDING
        assert len(client.calls) == 1

        task_b = asyncio.ensure_future(coordinator.submit("B"))
        await asyncio.sleep(0)
        assert client.calls[0].token.cancelled
        assert client.calls[1].messages == [
            {"role": "user", "content": "A"},
            {"role": "user", "content": "B"},
        ]

        # B resolves first, then A's stale reply arrives
        client.calls[1].future.set_result(_response("reply B"))
        result_b = await task_b
        client.calls[0].future.set_result(_response("reply A"))
        result_a = await task_a

        assert result_a.outcome == Outcome.CANCELED
        assert result_b.outcome == Outcome.SUCCEEDED
        assert _contents(store) == [("user", "A"), ("user", "B"), ("assistant", "reply B")]
        assert coordinator.state == RequestState.IDLE

    @pytest.mark.asyncio
    async def test_stale_reply_arriving_first_is_discarded(self, context, store):
        """Test that a superseded reply is dropped even if it lands before the new one."""
        client = ControlledClient()
        coordinator = RequestCoordinator(context, store, client)

        task_a = asyncio.ensure_future(coordinator.submit("A"))
        await asyncio.sleep(0)
        task_b = asyncio.ensure_future(coordinator.submit("B"))
        await asyncio.sleep(0)

        client.calls[0].future.set_result(_response("reply A"))
        result_a = await task_a
        assert result_a.outcome == Outcome.CANCELED
        assert coordinator.state == RequestState.SENDING

        client.calls[1].future.set_result(_response("reply B"))
        await task_b

        assert _contents(store) == [("user", "A"), ("user", "B"), ("assistant", "reply B")]

    @pytest.mark.asyncio
    async def test_failure_of_superseded_request_is_suppressed(self, context, store):
        """Test that a superseded request's error is never reported."""
        client = ControlledClient()
        coordinator = RequestCoordinator(context, store, client)

        task_a = asyncio.ensure_future(coordinator.submit("A"))
        await asyncio.sleep(0)
        task_b = asyncio.ensure_future(coordinator.submit("B"))
        await asyncio.sleep(0)

        client.calls[0].future.set_exception(ServerError(status_code=502))
        result_a = await task_a
        client.calls[1].future.set_result(_response("reply B"))
        await task_b

        assert result_a.outcome == Outcome.CANCELED
        assert context.notifier.drain() == []

    @pytest.mark.asyncio
    async def test_explicit_cancel(self, context, store):
        """Test that cancel() aborts the outstanding request silently."""
        client = ControlledClient()
        coordinator = RequestCoordinator(context, store, client)
        assert coordinator.cancel() is False

        task = asyncio.ensure_future(coordinator.submit("A"))
        await asyncio.sleep(0)

        assert coordinator.cancel() is True
        assert coordinator.state == RequestState.IDLE
        client.calls[0].future.set_result(_response("late"))
        result = await task

        assert result.outcome == Outcome.CANCELED
        assert _contents(store) == [("user", "A")]
        assert context.notifier.drain() == []

    @pytest.mark.asyncio
    async def test_real_client_cancelled_mid_flight(self, context, store):
        """Test superseding with the real client aborts the HTTP task."""
        llm_client = LLMClient(base_url="http://fake")
        replies = {"B": _response("reply B")}
        started = asyncio.Event()

        async def post(model, messages, api_key):
            text = messages[-1]["content"]
            if text == "A":
                started.set()
                await asyncio.Event().wait()
            mock_resp = MagicMock()
            mock_resp.status_code = 200
            mock_resp.json.return_value = {"choices": [{"message": {"content": replies[text].text}}]}
            return mock_resp

        llm_client._post = post
        coordinator = RequestCoordinator(context, store, llm_client)

        task_a = asyncio.ensure_future(coordinator.submit("A"))
        await started.wait()
        result_b = await coordinator.submit("B")
        result_a = await task_a

        assert result_a.outcome == Outcome.CANCELED
        assert result_b.outcome == Outcome.SUCCEEDED
        assert _contents(store) == [("user", "A"), ("user", "B"), ("assistant", "reply B")]


class TestRegenerate:
    """Tests for regenerating the latest answer."""

    @pytest.mark.asyncio
    async def test_regenerate_replaces_answer(self, context, store):
        """Test that the previous assistant answer is replaced."""
        client = MagicMock()
        client.generate = AsyncMock(side_effect=[_response("first"), _response("second")])
        coordinator = RequestCoordinator(context, store, client)
        await coordinator.submit("Question")

        result = await coordinator.regenerate()

        assert result.outcome == Outcome.SUCCEEDED
        contents = _contents(store)
        assert ("assistant", "first") not in contents
        assert contents[-1] == ("assistant", "second")
        sent = client.generate.call_args.kwargs["messages"]
        assert sent[-1] == {"role": "user", "content": "Question"}
        assert {"role": "assistant", "content": "first"} not in sent

    @pytest.mark.asyncio
    async def test_regenerate_without_user_message_is_ignored(self, context, store):
        """Test that an empty conversation has nothing to regenerate."""
        client = MagicMock()
        client.generate = AsyncMock()
        coordinator = RequestCoordinator(context, store, client)

        result = await coordinator.regenerate()

        assert result.outcome == Outcome.IGNORED
        client.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_regenerate_unknown_conversation_is_ignored(self, context, store):
        """Test that regenerating a missing conversation does nothing."""
        coordinator = RequestCoordinator(context, store, MagicMock())

        result = await coordinator.regenerate("conv_missing")

        assert result.outcome == Outcome.IGNORED
