"""
Conversation state — an immutable, append-only log of typed messages.
These are provider-agnostic — each provider converts to/from its native format.
"""

from __future__ import annotations

import base64
import mimetypes
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class Image:
    """Base64-encoded image attached to a user message."""
    base64: str
    media_type: str = "image/jpeg"

    @classmethod
    def from_bytes(cls, data: bytes, media_type: str = "image/jpeg") -> "Image":
        return cls(base64.b64encode(data).decode("ascii"), media_type)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Image":
        path = Path(path)
        media_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        return cls.from_bytes(path.read_bytes(), media_type)

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.base64}"


@dataclass(frozen=True)
class Call:
    """A single tool invocation requested by the model."""
    id: str
    function: str
    arguments: str  # raw serialized JSON

    @staticmethod
    def generate_id() -> str:
        return f"call_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class SystemMessage:
    content: str

    @property
    def role(self) -> Role:
        return Role.SYSTEM


@dataclass(frozen=True)
class UserMessage:
    content: str
    image: Optional[Image] = None

    @property
    def role(self) -> Role:
        return Role.USER


@dataclass(frozen=True)
class AssistantMessage:
    content: str
    calls: Tuple[Call, ...] = ()

    @property
    def role(self) -> Role:
        return Role.ASSISTANT

    @property
    def has_calls(self) -> bool:
        return len(self.calls) > 0


@dataclass(frozen=True)
class ToolMessage:
    call_id: str
    content: str

    @property
    def role(self) -> Role:
        return Role.TOOL


Message = Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage]


@dataclass(frozen=True)
class Conversation:
    """Ordered message log. Every operation returns a new value."""
    messages: Tuple[Message, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "Conversation":
        return _EMPTY

    def add(self, message: Message) -> "Conversation":
        return Conversation(self.messages + (message,))

    def system_message(self, content: str) -> "Conversation":
        if not content.strip():
            return self
        return self.add(SystemMessage(content))

    def user_message(self, content: str, image: Optional[Image] = None) -> "Conversation":
        if not content.strip() and image is None:
            return self
        return self.add(UserMessage(content, image))

    def assistant_message(self, content: str, calls: Tuple[Call, ...] = ()) -> "Conversation":
        if not content.strip() and not calls:
            return self
        return self.add(AssistantMessage(content, tuple(calls)))

    def tool_message(self, call_id: str, content: str) -> "Conversation":
        return self.add(ToolMessage(call_id, content))

    def replace(self, old: Message, new: Message) -> "Conversation":
        return Conversation(tuple(new if m == old else m for m in self.messages))

    def merge(self, other: "Conversation") -> "Conversation":
        """Append the part of *other* that follows the common prefix."""
        prefix = 0
        for mine, theirs in zip(self.messages, other.messages):
            if mine != theirs:
                break
            prefix += 1
        return Conversation(self.messages + other.messages[prefix:])

    @property
    def is_empty(self) -> bool:
        return not self.messages

    @property
    def last(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)


_EMPTY = Conversation(())
