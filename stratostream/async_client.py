"""
stratostream - Async Client

Asynchronous client: whole exchanges with retry, plus streaming sessions.

Usage:
    from stratostream import AsyncClient

    async with AsyncClient() as client:
        message = await client.chat(
            [{"role": "user", "content": "Hello!"}],
            model="claude-sonnet-4-20250514",
        )

        async with client.stream(
            [{"role": "user", "content": "Tell me a story"}],
            model="claude-sonnet-4-20250514",
        ) as stream:
            async for text in stream.text_stream():
                print(text, end="", flush=True)
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from .client import BaseClient
from .config import ClientConfig
from .errors import APIError
from .logging import LogContext, TimedOperation, get_logger
from .models import Message
from .retry import OnRetry
from .stream import MessageStream


logger = get_logger(__name__)


class AsyncClient(BaseClient):
    """
    Asynchronous client.

    ``create_message`` / ``chat`` retry transient failures like the sync
    client. ``stream`` / ``stream_body`` never retry; check
    ``MessageStream.can_retry`` after a failure.

    Args:
        http_client: Optional preconfigured ``httpx.AsyncClient``.
        See ``BaseClient`` for the remaining options.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        on_retry: Optional[OnRetry] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        **options: Any
    ):
        super().__init__(api_key=api_key, base_url=base_url, config=config, on_retry=on_retry, **options)
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.to_httpx_timeout())
            self._owns_client = True
        return self._client

    # ============================================================
    # Whole exchanges
    # ============================================================

    async def create_message(self, body: Dict[str, Any]) -> Message:
        """
        Send a complete request body and wait for the whole response.

        Raises:
            APIError: The final error once retries are exhausted, or the
                first non-retryable error
        """
        data = await self._retry_handler.execute_async(lambda: self._request(body))
        return Message.from_dict(data)

    async def chat(self, messages: List[Dict[str, Any]], **options: Any) -> Message:
        """Send messages and wait for the complete response."""
        return await self.create_message(self.build_request_body(messages, **options))

    async def _request(self, body: Dict[str, Any]) -> Dict[str, Any]:
        request_id = self._new_request_id()
        logger.info(
            f"POST {self.messages_url}",
            request_id=request_id,
            model=body.get("model"),
        )

        try:
            with LogContext.bind(request_id=request_id):
                async with TimedOperation("messages.create", logger):
                    response = await self._get_client().post(
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

    # ============================================================
    # Streaming
    # ============================================================

    def stream(
        self,
        messages: List[Dict[str, Any]],
        link_to_caller: bool = True,
        **options: Any
    ) -> MessageStream:
        """
        Start a streaming session for the given messages.

        Returns at once; the request is sent in the background. Raises
        ValueError synchronously if the body cannot be built. With
        ``link_to_caller`` the session is cancelled if the calling task fails
        or is cancelled before it ends; pass False to manage it elsewhere.

        Example:
            >>> async with client.stream(messages, model="claude-sonnet-4-20250514") as stream:
            ...     message = await stream.until_done()
        """
        return self.stream_body(self.build_request_body(messages, **options), link_to_caller=link_to_caller)

    def stream_body(self, body: Dict[str, Any], link_to_caller: bool = True) -> MessageStream:
        """Start a streaming session for a complete request body."""
        request_id = self._new_request_id()
        logger.info(
            f"POST {self.messages_url} (stream)",
            request_id=request_id,
            model=body.get("model"),
        )
        stream = MessageStream(
            lambda: self._open_stream(body),
            request_id=request_id,
            model=body.get("model"),
            link_to_caller=link_to_caller,
        )
        return stream.start()

    @asynccontextmanager
    async def _open_stream(self, body: Dict[str, Any]) -> AsyncIterator[httpx.Response]:
        """Send a streaming request and yield the unread response."""
        client = self._get_client()
        request = client.build_request(
            "POST",
            self.messages_url,
            content=self._encode_body(body, stream=True),
            headers={**self.build_headers(), "accept": "text/event-stream"},
            timeout=self.config.to_httpx_timeout(),
        )
        response = await client.send(request, stream=True)
        try:
            yield response
        finally:
            await response.aclose()

    async def close(self):
        """Close the HTTP client if this client created it."""
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
