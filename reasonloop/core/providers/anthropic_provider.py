"""
Anthropic completion — uses the native tool_use API.

The first system message becomes the ``system`` parameter. Later system
messages (e.g. reminders) are sent as user text tagged as internal
instructions, since the Messages API has no mid-conversation system role.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Optional, Sequence

import anthropic
import httpx
from anthropic import AsyncAnthropic

from .base import Completion, parse_arguments
from ..conversation import (
    AssistantMessage, Call, Conversation, SystemMessage, ToolMessage, UserMessage,
)
from ..errors import ErrorCode, ProviderError

if TYPE_CHECKING:
    from ...config.settings import Config
    from ..tool import ToolInfo

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 8192
INTERNAL_INSTRUCTION_PREFIX = "[INTERNAL SYSTEM INSTRUCTION] "


class AnthropicCompletion(Completion):
    """Messages API with ``tool_choice={"type": "any"}``."""

    def _client(self, config: "Config") -> AsyncAnthropic:
        http_client = httpx.AsyncClient(transport=self._transport) if self._transport else None
        return AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.api_url,
            timeout=config.timeout,
            max_retries=0,
            http_client=http_client,
        )

    def build_request(self, config: "Config", context: Conversation,
                      tools: Sequence["ToolInfo"]) -> dict:
        system, messages = self._convert_messages(context)
        request = {
            "model": config.model_name,
            "max_tokens": config.max_tokens or DEFAULT_MAX_TOKENS,
            # Anthropic accepts [0, 1]
            "temperature": min(config.temperature, 1.0),
            "messages": messages,
        }
        if system is not None:
            request["system"] = system
        if tools:
            request["tools"] = self._convert_tools(tools)
            request["tool_choice"] = {"type": "any"}
        return request

    async def _complete(self, config: "Config", context: Conversation,
                        tools: Sequence["ToolInfo"]) -> AssistantMessage:
        request = self.build_request(config, context, tools)
        client = self._client(config)
        try:
            async with client:
                response = await client.messages.create(**request)
        except anthropic.APITimeoutError as e:
            raise ProviderError(f"Anthropic request timed out: {e}", ErrorCode.PROVIDER_TIMEOUT) from e
        except anthropic.APIStatusError as e:
            raise ProviderError(f"Anthropic returned HTTP {e.status_code}: {e.message}") from e
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic request failed: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(
                f"Malformed Anthropic response: {e}", ErrorCode.PROVIDER_INVALID_RESPONSE,
            ) from e

        text_parts = []
        calls = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                calls.append(Call(block.id, block.name, json.dumps(block.input)))
        return AssistantMessage("\n".join(text_parts), tuple(calls))

    def _convert_tools(self, tools: Sequence["ToolInfo"]) -> list[dict]:
        """Convert to Anthropic tools format."""
        return [
            {
                "name": t.name,
                "description": t.description,
                "input_schema": t.input_schema,
            }
            for t in tools
        ]

    def _convert_messages(self, context: Conversation) -> tuple[Optional[str], list[dict]]:
        """Convert conversation messages to (system, messages) in Anthropic format."""
        system: Optional[str] = None
        result: list[dict] = []

        def append(role: str, blocks: list[dict]) -> None:
            # Consecutive turns of one role are folded into a single message
            if result and result[-1]["role"] == role:
                result[-1]["content"].extend(blocks)
            else:
                result.append({"role": role, "content": blocks})

        for msg in context:
            if isinstance(msg, SystemMessage):
                if system is None:
                    system = msg.content
                else:
                    append("user", [{"type": "text", "text": INTERNAL_INSTRUCTION_PREFIX + msg.content}])
            elif isinstance(msg, UserMessage):
                blocks = []
                if msg.image is not None:
                    blocks.append({
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": msg.image.media_type,
                            "data": msg.image.base64,
                        },
                    })
                blocks.append({"type": "text", "text": msg.content})
                append("user", blocks)
            elif isinstance(msg, AssistantMessage):
                blocks = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for call in msg.calls:
                    blocks.append({
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.function,
                        "input": parse_arguments(call.arguments),
                    })
                if blocks:
                    append("assistant", blocks)
            elif isinstance(msg, ToolMessage):
                append("user", [{
                    "type": "tool_result",
                    "tool_use_id": msg.call_id,
                    "content": msg.content,
                }])
        return system, result
