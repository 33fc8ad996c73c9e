"""
OpenAI-compatible completion — uses native function calling.

Serves OpenAI, DeepSeek, Groq, Gemini and OpenRouter, which all expose the
chat completions API under their own base URL.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional, Sequence

import httpx
import openai
from openai import AsyncOpenAI

from .base import Completion
from ..conversation import (
    AssistantMessage, Call, Conversation, SystemMessage, ToolMessage, UserMessage,
)
from ..errors import ErrorCode, ProviderError

if TYPE_CHECKING:
    from ...config.settings import Config
    from ..tool import ToolInfo

logger = logging.getLogger(__name__)


class OpenAICompletion(Completion):
    """Chat completions with ``tool_choice="required"``."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None,
                 default_headers: Optional[Dict[str, str]] = None):
        super().__init__(transport)
        self.default_headers = dict(default_headers or {})

    def _client(self, config: "Config") -> AsyncOpenAI:
        http_client = httpx.AsyncClient(transport=self._transport) if self._transport else None
        return AsyncOpenAI(
            api_key=config.api_key,
            organization=config.api_org,
            base_url=config.api_url,
            timeout=config.timeout,
            max_retries=0,
            default_headers=self.default_headers or None,
            http_client=http_client,
        )

    def build_request(self, config: "Config", context: Conversation,
                      tools: Sequence["ToolInfo"]) -> dict:
        request = {
            "model": config.model_name,
            "temperature": config.temperature,
            "messages": self._convert_messages(context),
        }
        if config.max_tokens is not None:
            request["max_tokens"] = config.max_tokens
        if config.seed is not None:
            request["seed"] = config.seed
        if tools:
            request["tools"] = self._convert_tools(tools)
            request["tool_choice"] = "required"
        return request

    async def _complete(self, config: "Config", context: Conversation,
                        tools: Sequence["ToolInfo"]) -> AssistantMessage:
        request = self.build_request(config, context, tools)
        client = self._client(config)
        try:
            async with client:
                response = await client.chat.completions.create(**request)
        except openai.APITimeoutError as e:
            raise ProviderError(f"OpenAI request timed out: {e}", ErrorCode.PROVIDER_TIMEOUT) from e
        except openai.APIStatusError as e:
            raise ProviderError(f"OpenAI returned HTTP {e.status_code}: {e.message}") from e
        except openai.APIError as e:
            raise ProviderError(f"OpenAI request failed: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(
                f"Malformed OpenAI response: {e}", ErrorCode.PROVIDER_INVALID_RESPONSE,
            ) from e

        if not response.choices:
            raise ProviderError("OpenAI response has no choices", ErrorCode.PROVIDER_INVALID_RESPONSE)

        message = response.choices[0].message
        calls = tuple(
            Call(tc.id, tc.function.name, tc.function.arguments)
            for tc in (message.tool_calls or ())
        )
        return AssistantMessage(message.content or "", calls)

    def _convert_tools(self, tools: Sequence["ToolInfo"]) -> list[dict]:
        """Convert to OpenAI tools format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.input_schema,
                    "strict": False,
                },
            }
            for t in tools
        ]

    def _convert_messages(self, context: Conversation) -> list[dict]:
        """Convert conversation messages to OpenAI format."""
        result = []
        for msg in context:
            if isinstance(msg, SystemMessage):
                result.append({"role": "system", "content": msg.content})
            elif isinstance(msg, UserMessage):
                if msg.image is not None:
                    result.append({
                        "role": "user",
                        "content": [
                            {"type": "text", "text": msg.content},
                            {"type": "image_url", "image_url": {"url": msg.image.data_url}},
                        ],
                    })
                else:
                    result.append({"role": "user", "content": msg.content})
            elif isinstance(msg, AssistantMessage):
                entry = {"role": "assistant", "content": msg.content or None}
                if msg.calls:
                    entry["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.function, "arguments": call.arguments},
                        }
                        for call in msg.calls
                    ]
                result.append(entry)
            elif isinstance(msg, ToolMessage):
                result.append({
                    "role": "tool",
                    "tool_call_id": msg.call_id,
                    "content": msg.content,
                })
        return result
