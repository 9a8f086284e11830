"""LLM Client for OpenAI-compatible chat completion endpoints."""
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import httpx
import logging

from config import API_BASE_URL, APP_TITLE, HTTP_REFERER, MAX_TOKENS, REQUEST_TIMEOUT, TEMPERATURE
from .cancellation import CancellationToken
from .errors import CanceledError, LLMError, UnknownError, error_for_status

logger = logging.getLogger(__name__)

NO_RESPONSE_TEXT = "No response from AI"


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


class LLMClient:
    """Client for POSTing conversations to ``{base_url}/chat/completions``."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        temperature: float = TEMPERATURE,
        max_tokens: int = MAX_TOKENS,
    ):
        """
        Initialize LLM client.

        The credential is passed per call so that settings changes apply to
        the next request without rebuilding the client.

        Args:
            base_url: Endpoint base, e.g. https://openrouter.ai/api/v1
            timeout: Transport timeout in seconds
            temperature: Sampling temperature sent with every request
            max_tokens: Completion token limit sent with every request
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        logger.info(f"LLMClient initialized for {self.base_url}")

    def build_payload(self, model: str, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }

    def build_headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": HTTP_REFERER,
            "X-Title": APP_TITLE,
        }

    async def generate(
        self,
        model: str,
        messages: List[Dict[str, str]],
        api_key: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """
        Generate a reply for a conversation.

        Args:
            model: Model identifier understood by the endpoint
            messages: ``{"role", "content"}`` pairs in dialogue order
            api_key: Bearer credential
            cancel_token: Cancelling it aborts the in-flight HTTP call

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            CanceledError: The token was cancelled before a result was produced
            LLMClientError: Classified endpoint or transport failure
        """
        cancel_token = cancel_token or CancellationToken()
        cancel_token.raise_if_cancelled()
        start_time = time.time()

        logger.debug(f"Generating response with model: {model}")
        request = asyncio.ensure_future(self._post(model, messages, api_key))
        cancel_token.add_callback(request.cancel)

        try:
            response = await request
        except asyncio.CancelledError:
            if cancel_token.cancelled:
                raise CanceledError(model=model)
            # Cancellation of the caller itself, not of this request
            raise
        except httpx.TimeoutException as e:
            latency_ms = int((time.time() - start_time) * 1000)
            error = LLMError(
                code="TIMEOUT_ERROR",
                message="Request timed out. Please try again.",
                details={
                    "model": model,
                    "latency_ms": latency_ms,
                    "original_error": str(e)
                }
            )
            logger.error(
                f"Timeout error: model={model}, latency={latency_ms}ms, error={e}",
                extra={"error_code": error.code, "error_details": error.details,
                       "model": model, "latency_ms": latency_ms}
            )
            raise UnknownError(error)
        except httpx.HTTPError as e:
            latency_ms = int((time.time() - start_time) * 1000)
            error = LLMError(
                code="UNKNOWN_ERROR",
                message=str(e) or type(e).__name__,
                details={
                    "model": model,
                    "latency_ms": latency_ms,
                    "original_error": str(e),
                    "error_type": type(e).__name__
                }
            )
            logger.error(
                f"Transport error: model={model}, latency={latency_ms}ms, error={e}",
                exc_info=True,
                extra={"error_code": error.code, "error_details": error.details,
                       "model": model, "latency_ms": latency_ms}
            )
            raise UnknownError(error)
        finally:
            cancel_token.remove_callback(request.cancel)

        latency_ms = int((time.time() - start_time) * 1000)

        if not 200 <= response.status_code < 300:
            error = error_for_status(
                response.status_code,
                self._error_message(response),
                model=model,
                latency_ms=latency_ms,
            )
            logger.error(
                f"API error: model={model}, status={response.status_code}, "
                f"latency={latency_ms}ms, error={error.error.details['original_error']}",
                extra={"error_code": error.error.code, "error_details": error.error.details,
                       "model": model, "status_code": response.status_code, "latency_ms": latency_ms}
            )
            raise error

        return self._parse_success(response, model, latency_ms)

    async def _post(self, model: str, messages: List[Dict[str, str]], api_key: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(
                f"{self.base_url}/chat/completions",
                json=self.build_payload(model, messages),
                headers=self.build_headers(api_key),
            )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """``error.message`` from the body, or a generic status line."""
        try:
            data = response.json()
        except ValueError:
            data = {}
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            message = data["error"].get("message")
            if message:
                return str(message)
        return f"API error: {response.status_code}"

    def _parse_success(self, response: httpx.Response, model: str, latency_ms: int) -> LLMResponse:
        try:
            data = response.json()
        except ValueError as e:
            raise UnknownError(
                message=f"Invalid JSON from completion endpoint: {e}",
                model=model,
                latency_ms=latency_ms,
            )

        text = None
        choices = data.get("choices") if isinstance(data, dict) else None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            text = (choices[0].get("message") or {}).get("content")

        usage = (data.get("usage") if isinstance(data, dict) else None) or {}
        tokens_input = usage.get("prompt_tokens", 0)
        tokens_output = usage.get("completion_tokens", 0)

        logger.info(
            f"Generated response: model={model}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms",
            extra={"model": model, "status_code": response.status_code, "latency_ms": latency_ms}
        )

        return LLMResponse(
            text=text or NO_RESPONSE_TEXT,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=model,
        )

