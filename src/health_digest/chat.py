"""Chat-completion client for the summary API."""

import time
from collections.abc import Sequence

import httpx
import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind
from pydantic import BaseModel, ValidationError

from .config import ChatSettings
from .metrics import CHAT_LATENCY_SECONDS, CHAT_REQUESTS
from .types import ChatCompletionPayload, ChatMessage

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class ChatError(Exception):
    """Base class for chat client failures."""

    pass


class AuthError(ChatError):
    """Raised when no API key is configured."""

    pass


class HttpError(ChatError):
    """Raised when the endpoint answers with a status other than 200."""

    def __init__(self, status: int) -> None:
        super().__init__(f"Chat API request failed with status {status}")
        self.status = status


class DecodeError(ChatError):
    """Raised when the response body does not match the expected schema."""

    pass


class NetworkError(ChatError):
    """Raised when the endpoint is unreachable or the request timed out."""

    pass


class ResponseMessage(BaseModel):
    role: str | None = None
    content: str


class ResponseChoice(BaseModel):
    message: ResponseMessage


class ChatCompletionResponse(BaseModel):
    """The subset of a chat-completion response body that is read."""

    choices: list[ResponseChoice]


class ChatClient:
    """Sends a message list to the chat-completion endpoint.

    Exactly one HTTP attempt is made per call. Failures are raised as
    :class:`ChatError` subclasses for the caller to surface; retrying is the
    caller's decision.
    """

    def __init__(self, settings: ChatSettings) -> None:
        """Initialize the chat client.

        Args:
            settings: Endpoint, model, key and timeout settings.
        """
        self._settings = settings

    def build_payload(self, messages: Sequence[ChatMessage]) -> ChatCompletionPayload:
        return {
            "model": self._settings.model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
        }

    async def send(self, messages: Sequence[ChatMessage]) -> str:
        """POST ``messages`` and return the first choice's content.

        Raises:
            AuthError: If no API key is configured.
            HttpError: If the response status is not 200.
            DecodeError: If the body is malformed or has no choices.
            NetworkError: On transport failure or timeout.
        """
        if not self._settings.api_key:
            logger.error("chat_no_api_key")
            CHAT_REQUESTS.labels(status="auth_error").inc()
            raise AuthError("Chat API key is not configured")

        payload = self.build_payload(messages)
        started = time.perf_counter()
        with tracer.start_as_current_span("chat.completion", kind=SpanKind.CLIENT) as span:
            span.set_attribute("http.method", "POST")
            span.set_attribute("chat.model", self._settings.model)
            span.set_attribute("chat.messages", len(payload["messages"]))
            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self._settings.endpoint,
                        json=payload,
                        headers={
                            "Authorization": f"Bearer {self._settings.api_key}",
                            "Content-Type": "application/json",
                        },
                        timeout=self._settings.timeout_seconds,
                    )
            except httpx.TimeoutException as e:
                CHAT_REQUESTS.labels(status="timeout").inc()
                logger.warning("chat_timeout", timeout=self._settings.timeout_seconds)
                raise NetworkError(
                    f"Chat API request timed out after {self._settings.timeout_seconds}s"
                ) from e
            except httpx.TransportError as e:
                CHAT_REQUESTS.labels(status="network_error").inc()
                logger.warning("chat_network_error", error=str(e))
                raise NetworkError(f"Chat API unreachable: {e}") from e
            finally:
                CHAT_LATENCY_SECONDS.observe(time.perf_counter() - started)

            span.set_attribute("http.status_code", response.status_code)
            if response.status_code != 200:
                CHAT_REQUESTS.labels(status="http_error").inc()
                logger.warning("chat_http_error", status=response.status_code)
                raise HttpError(response.status_code)

            try:
                body = ChatCompletionResponse.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                CHAT_REQUESTS.labels(status="decode_error").inc()
                logger.warning("chat_decode_error", error=str(e))
                raise DecodeError(f"Malformed chat API response: {e}") from e

            if not body.choices:
                CHAT_REQUESTS.labels(status="decode_error").inc()
                logger.warning("chat_no_choices")
                raise DecodeError("Chat API response contained no choices")

        CHAT_REQUESTS.labels(status="success").inc()
        content = body.choices[0].message.content
        logger.info(
            "chat_completed",
            model=self._settings.model,
            response_length=len(content),
            latency_ms=round((time.perf_counter() - started) * 1000),
        )
        return content
