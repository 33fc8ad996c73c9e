"""
Ollama completion — local models over the ``/api/chat`` endpoint.

Uses Ollama's native ``tools`` field. No API key is required, and since
Ollama does not assign call ids, one is generated for each call.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Sequence

import httpx

from .base import Completion, parse_arguments
from ..conversation import (
    AssistantMessage, Call, Conversation, SystemMessage, ToolMessage, UserMessage,
)
from ..errors import ErrorCode, ProviderError

if TYPE_CHECKING:
    from ...config.settings import Config
    from ..tool import ToolInfo

logger = logging.getLogger(__name__)


class OllamaCompletion(Completion):
    """Ollama provider with native tool calling."""

    requires_key = False

    def build_request(self, config: "Config", context: Conversation,
                      tools: Sequence["ToolInfo"]) -> dict:
        options = {"temperature": config.temperature}
        if config.max_tokens is not None:
            options["num_predict"] = config.max_tokens
        if config.seed is not None:
            options["seed"] = config.seed
        request = {
            "model": config.model_name,
            "messages": self._convert_messages(context),
            "stream": False,
            "options": options,
        }
        if tools:
            request["tools"] = self._convert_tools(tools)
        return request

    async def _complete(self, config: "Config", context: Conversation,
                        tools: Sequence["ToolInfo"]) -> AssistantMessage:
        url = f"{config.api_url.rstrip('/')}/api/chat"
        try:
            async with self._http_client(config) as client:
                response = await client.post(url, json=self.build_request(config, context, tools))
                response.raise_for_status()
                data = response.json()
        except httpx.ConnectError as e:
            raise ProviderError(
                f"Cannot connect to Ollama at {config.api_url}. Make sure Ollama is running (ollama serve)."
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderError(f"Ollama request timed out: {e}", ErrorCode.PROVIDER_TIMEOUT) from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(f"Ollama returned HTTP {e.response.status_code}: {e.response.text}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Malformed Ollama response: {e}", ErrorCode.PROVIDER_INVALID_RESPONSE) from e

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise ProviderError("Ollama response has no message", ErrorCode.PROVIDER_INVALID_RESPONSE)

        done_reason = data.get("done_reason", "unknown")
        if done_reason == "length":
            logger.warning("Ollama stopped due to token length limit")

        calls = []
        for tc in message.get("tool_calls") or ():
            function = tc.get("function", {})
            arguments = function.get("arguments", {})
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            calls.append(Call(tc.get("id") or Call.generate_id(), function.get("name", ""), arguments))
        return AssistantMessage(message.get("content") or "", tuple(calls))

    def _convert_tools(self, tools: Sequence["ToolInfo"]) -> list[dict]:
        return [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.input_schema,
                },
            }
            for t in tools
        ]

    def _convert_messages(self, context: Conversation) -> list[dict]:
        """Convert conversation messages to Ollama format."""
        result = []
        for msg in context:
            if isinstance(msg, SystemMessage):
                result.append({"role": "system", "content": msg.content})
            elif isinstance(msg, UserMessage):
                entry = {"role": "user", "content": msg.content}
                if msg.image is not None:
                    entry["images"] = [msg.image.base64]
                result.append(entry)
            elif isinstance(msg, AssistantMessage):
                entry = {"role": "assistant", "content": msg.content}
                if msg.calls:
                    entry["tool_calls"] = [
                        {"function": {"name": c.function, "arguments": parse_arguments(c.arguments)}}
                        for c in msg.calls
                    ]
                result.append(entry)
            elif isinstance(msg, ToolMessage):
                result.append({"role": "tool", "content": msg.content})
        return result
