"""
stratostream - Client

Request building shared by both clients, and the synchronous client for
whole request/response exchanges.

Usage:
    from stratostream import Client

    client = Client(api_key="sk-ant-...")
    message = client.chat(
        [{"role": "user", "content": "Hello!"}],
        model="claude-sonnet-4-20250514",
    )
    print(message.get_text())
"""

import json
import uuid
from typing import Any, Dict, List, Optional

import httpx

from .config import API_VERSION, ClientConfig
from .errors import APIError
from .logging import LogContext, TimedOperation, get_logger
from .models import Message
from .retry import OnRetry, RetryHandler


__version__ = "0.1.0"

DEFAULT_MAX_TOKENS = 1024
MESSAGES_PATH = "/v1/messages"

logger = get_logger(__name__)


class BaseClient:
    """
    Configuration, headers and request bodies for the Messages API.

    Args:
        api_key: API key. Falls back to ANTHROPIC_API_KEY.
        base_url: API base URL. Falls back to ANTHROPIC_BASE_URL.
        config: Complete configuration; when given, other options are ignored.
        on_retry: Observer called before each retry with
            (attempt, delay_ms, error).
        **options: Any other ClientConfig field (max_retries,
            default_model, beta_features, ...).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        on_retry: Optional[OnRetry] = None,
        **options: Any
    ):
        self.config = config or ClientConfig.from_env(
            api_key=api_key, base_url=base_url, **options
        )
        self._retry_handler = RetryHandler(
            max_retries=self.config.max_retries,
            base_delay_ms=self.config.base_delay_ms,
            max_delay_ms=self.config.max_delay_ms,
            on_retry=on_retry
        )

    @property
    def messages_url(self) -> str:
        return f"{self.config.base_url}{MESSAGES_PATH}"

    def build_headers(self) -> Dict[str, str]:
        """Headers for a Messages API request."""
        headers = {
            "content-type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": API_VERSION,
            "user-agent": f"stratostream-python/{__version__}",
        }

        if self.config.beta_features:
            headers["anthropic-beta"] = ",".join(self.config.beta_features)

        return headers

    def build_request_body(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        system: Optional[Any] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        thinking: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        top_k: Optional[int] = None,
        stop_sequences: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Assemble a request body from chat options.

        Options left as None (or empty lists) are omitted.

        Raises:
            ValueError: If no model is given and none is configured
        """
        model = model or self.config.default_model
        if not model:
            raise ValueError("model is required")

        body: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": messages,
        }

        optional = {
            "system": system,
            "tools": tools,
            "thinking": thinking,
            "temperature": temperature,
            "top_p": top_p,
            "top_k": top_k,
            "stop_sequences": stop_sequences,
            "metadata": metadata,
        }
        for key, value in optional.items():
            if value is None or value == []:
                continue
            body[key] = value

        return body

    def _encode_body(self, body: Dict[str, Any], stream: bool = False) -> bytes:
        if stream:
            body = {**body, "stream": True}
        return json.dumps(body).encode("utf-8")

    def _new_request_id(self) -> str:
        return f"req_{uuid.uuid4().hex[:12]}"

    def _handle_response(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a whole response or raise the matching APIError."""
        if 200 <= response.status_code < 300:
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict):
                return data

        raise APIError.from_response(response.status_code, response.content, response.headers)


class Client(BaseClient):
    """
    Synchronous client for whole request/response exchanges.

    Transient failures (rate limits, server errors, overload, transport)
    are retried with full-jitter backoff. Use ``AsyncClient`` for streaming.

    Args:
        http_client: Optional preconfigured ``httpx.Client``.
        See ``BaseClient`` for the remaining options.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        on_retry: Optional[OnRetry] = None,
        http_client: Optional[httpx.Client] = None,
        **options: Any
    ):
        super().__init__(api_key=api_key, base_url=base_url, config=config, on_retry=on_retry, **options)
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(timeout=self.config.to_httpx_timeout())
            self._owns_client = True
        return self._client

    def create_message(self, body: Dict[str, Any]) -> Message:
        """
        Send a complete request body and wait for the whole response.

        Raises:
            APIError: The final error once retries are exhausted, or the
                first non-retryable error
        """
        return Message.from_dict(self._retry_handler.execute(lambda: self._request(body)))

    def chat(self, messages: List[Dict[str, Any]], **options: Any) -> Message:
        """
        Send messages and wait for the complete response.

        Example:
            >>> message = client.chat(
            ...     [{"role": "user", "content": "What is 2+2?"}],
            ...     model="claude-sonnet-4-20250514",
            ... )
            >>> print(message.get_text())
        """
        return self.create_message(self.build_request_body(messages, **options))

    def _request(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """One exchange: send, then decode or raise."""
        request_id = self._new_request_id()
        logger.info(
            f"POST {self.messages_url}",
            request_id=request_id,
            model=body.get("model"),
        )

        try:
            with LogContext.bind(request_id=request_id), TimedOperation("messages.create", logger):
                response = self._get_client().post(
                    self.messages_url,
                    content=self._encode_body(body),
                    headers=self.build_headers(),
                    timeout=self.config.to_httpx_timeout(),
                )
        except httpx.HTTPError as e:
            raise APIError.from_transport(e) from e

        logger.debug(
            f"Response: status={response.status_code}",
            request_id=request_id,
        )
        return self._handle_response(response)

    def close(self):
        """Close the HTTP client if this client created it."""
        if self._client is not None and self._owns_client and not self._client.is_closed:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
