"""
Abstract base class for completion backends.
All providers (OpenAI-compatible, Anthropic, Ollama) implement this interface.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Sequence

import httpx

from ..conversation import AssistantMessage, Conversation
from ..errors import ConfigurationError
from ..structured_logger import log_context

if TYPE_CHECKING:
    from ...config.settings import Config
    from ..tool import ToolInfo

logger = logging.getLogger(__name__)


class Completion(ABC):
    """
    Turns a conversation plus tool definitions into one assistant message.

    ``transport`` replaces the HTTP transport of the underlying client, which
    lets tests plug in ``httpx.MockTransport``.
    """

    requires_key: bool = True

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    async def complete(
        self,
        config: "Config",
        context: Conversation,
        tools: Sequence["ToolInfo"],
    ) -> AssistantMessage:
        """
        Send *context* and *tools* to the model.

        Raises ``ConfigurationError`` before any I/O when the API key is
        missing, and ``ProviderError`` for transport or payload faults.
        """
        if self.requires_key and not config.api_key:
            raise ConfigurationError(
                f"No API key for {config.provider.name}. Set {config.provider.key_name}."
            )
        with log_context(provider_name=config.provider.name):
            logger.debug(
                "Requesting %s (%d messages, %d tools)",
                config.model_name, len(context), len(tools),
            )
            message = await self._complete(config, context, tools)
            logger.debug("Received %d calls", len(message.calls))
            return message

    @abstractmethod
    async def _complete(
        self,
        config: "Config",
        context: Conversation,
        tools: Sequence["ToolInfo"],
    ) -> AssistantMessage:
        ...

    def _http_client(self, config: "Config") -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=config.timeout)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def parse_arguments(arguments: str) -> dict:
    """Decode serialized call arguments into a dict for vendors that want objects."""
    try:
        value = json.loads(arguments) if arguments else {}
    except ValueError:
        logger.warning("Call arguments are not valid JSON, sending empty object")
        return {}
    return value if isinstance(value, dict) else {"value": value}
