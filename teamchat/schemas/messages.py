from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

if TYPE_CHECKING:
    from teamchat.tools.base import Tool


class MessageRole(str, Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    FUNCTION = "function"


@dataclass(frozen=True)
class ToolCall:
    """Function invocation requested by the backend; arguments stay raw JSON."""

    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class Message:
    """Single conversation turn. Position is stamped by the transcript."""

    speaker: str
    content: str
    role: MessageRole = MessageRole.ASSISTANT
    position: int = -1
    tool_calls: Tuple[ToolCall, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return bool(self.metadata.get("error"))


@dataclass(frozen=True)
class GenerateOptions:
    """Per-call options handed down the middleware chain."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stop_sequences: Tuple[str, ...] = ()
    functions: Tuple["Tool", ...] = ()
    # seconds left in the turn; collaborators bound their own calls by it
    timeout: Optional[float] = None


@dataclass
class Task:
    """Opening request that starts a conversation."""

    id: str
    description: str
