from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from openai import APITimeoutError, OpenAI, OpenAIError

from teamchat.exceptions import GenerationError, GenerationTimeout
from teamchat.schemas.messages import GenerateOptions, Message, MessageRole, ToolCall

logger = logging.getLogger(__name__)

_OPENAI_NAME = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


class LLMClient(ABC):
    """Lightweight interface so agents can swap between real and stub models."""

    @abstractmethod
    def generate(self, messages: Sequence[Message], options: GenerateOptions) -> Message:
        """Return the backend's reply to ``messages``.

        ``messages`` is already rendered from the caller's point of view: its own
        turns carry the assistant role and everyone else's the user role.
        """


class EchoLLMClient(LLMClient):
    """Fallback implementation used for local runs without external APIs."""

    def generate(self, messages: Sequence[Message], options: GenerateOptions) -> Message:
        transcript = "\n".join(f"{m.speaker}: {m.content}" for m in messages if m.role != MessageRole.SYSTEM)
        return Message(speaker="", content=f"Transcript:\n{transcript.strip()}")


class OpenAIChatClient(LLMClient):
    """Chat-completions backend; any OpenAI-compatible endpoint works."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Any = None,
    ) -> None:
        self.model = model
        self.client = client or OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    def generate(self, messages: Sequence[Message], options: GenerateOptions) -> Message:
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": [self._to_openai(m) for m in messages],
        }
        if options.temperature is not None:
            request["temperature"] = options.temperature
        if options.max_tokens is not None:
            request["max_tokens"] = options.max_tokens
        if options.stop_sequences:
            request["stop"] = list(options.stop_sequences)
        if options.functions:
            request["tools"] = [tool.to_openai_tool() for tool in options.functions]
        if options.timeout is not None:
            request["timeout"] = options.timeout

        logger.debug("Requesting %s with %d messages", self.model, len(request["messages"]))
        try:
            response = self.client.chat.completions.create(**request)
        except APITimeoutError as exc:
            raise GenerationTimeout(f"{self.model} did not answer within {options.timeout} seconds") from exc
        except OpenAIError as exc:
            raise GenerationError(f"{self.model} request failed: {exc}") from exc

        if not response.choices:
            raise GenerationError(f"{self.model} returned no choices")
        reply = response.choices[0].message
        tool_calls = tuple(
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
            for call in (reply.tool_calls or [])
        )
        return Message(speaker="", content=reply.content or "", tool_calls=tool_calls)

    @staticmethod
    def _to_openai(message: Message) -> Dict[str, Any]:
        if message.role == MessageRole.SYSTEM:
            return {"role": "system", "content": message.content}
        if message.role == MessageRole.ASSISTANT:
            return {"role": "assistant", "content": message.content}
        payload: Dict[str, Any] = {"role": "user", "content": message.content}
        if _OPENAI_NAME.match(message.speaker):
            payload["name"] = message.speaker
        return payload


def build_llm_client(provider: str, model: str, **kwargs: Any) -> LLMClient:
    if provider == "openai":
        return OpenAIChatClient(model=model, **kwargs)
    if provider == "echo":
        return EchoLLMClient()
    raise ValueError(f"Unknown LLM provider: {provider}")


def render_for(agent_name: str, history: Sequence[Message], system_message: Optional[str] = None) -> List[Message]:
    """Re-role ``history`` relative to ``agent_name`` with an optional system turn first."""
    rendered: List[Message] = []
    if system_message:
        rendered.append(Message(speaker=agent_name, content=system_message, role=MessageRole.SYSTEM))
    for message in history:
        if message.role == MessageRole.SYSTEM:
            rendered.append(message)
            continue
        role = MessageRole.ASSISTANT if message.speaker == agent_name else MessageRole.USER
        rendered.append(Message(speaker=message.speaker, content=message.content, role=role))
    return rendered
