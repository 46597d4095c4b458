"""
stratostream - Utility Functions

Convenience functions for quick usage without managing a client.
"""

from typing import Any, Dict, List, Optional

from .async_client import AsyncClient
from .client import Client
from .models import Message


# Default client instance (created lazily)
_default_client: Optional[Client] = None


def _get_default_client() -> Client:
    """Get or create the default client."""
    global _default_client
    if _default_client is None:
        _default_client = Client()
    return _default_client


def set_api_key(api_key: str) -> None:
    """
    Set the API key used by the module-level ``chat``.

    Example:
        >>> import stratostream
        >>> stratostream.set_api_key("sk-ant-...")
        >>> message = stratostream.chat(messages, model="claude-sonnet-4-20250514")
    """
    global _default_client
    if _default_client is not None:
        _default_client.close()
    _default_client = Client(api_key=api_key)


def create_client(**options: Any) -> Client:
    """Create a synchronous client. Options are those of ``Client``."""
    return Client(**options)


def create_async_client(**options: Any) -> AsyncClient:
    """Create an asynchronous client. Options are those of ``AsyncClient``."""
    return AsyncClient(**options)


def chat(messages: List[Dict[str, Any]], **options: Any) -> Message:
    """
    Quick chat using the default client.

    Example:
        >>> import stratostream
        >>> message = stratostream.chat(
        ...     [{"role": "user", "content": "Hello"}],
        ...     model="claude-sonnet-4-20250514",
        ... )
        >>> print(message.get_text())
    """
    return _get_default_client().chat(messages, **options)
