from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from teamchat.agents.base import Agent
from teamchat.exceptions import ConfigurationError
from teamchat.schemas.messages import GenerateOptions, Message, MessageRole
from teamchat.utils.llm_clients import LLMClient, render_for


class AssistantAgent(Agent):
    """Backend-driven agent that falls back to a canned reply without a backend."""

    def __init__(
        self,
        name: str,
        system_message: Optional[str] = None,
        llm_client: Optional[LLMClient] = None,
        default_reply: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> None:
        super().__init__(name=name)
        if llm_client is None and default_reply is None:
            raise ConfigurationError(f"{name} needs either an llm_client or a default_reply")
        self.system_message = system_message
        self.llm_client = llm_client
        self.default_reply = default_reply
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_prompt_file(cls, name: str, prompt_path: str | Path, **kwargs) -> "AssistantAgent":
        prompt = Path(prompt_path).read_text(encoding="utf-8")
        return cls(name=name, system_message=prompt, **kwargs)

    def _generate(self, history: Sequence[Message], options: GenerateOptions) -> Message:
        if self.llm_client is None:
            return Message(speaker=self.name, content=self.default_reply or "")

        if options.temperature is None and self.temperature is not None:
            options = replace(options, temperature=self.temperature)
        if options.max_tokens is None and self.max_tokens is not None:
            options = replace(options, max_tokens=self.max_tokens)

        prompt = render_for(self.name, history, self.system_message)
        reply = self.llm_client.generate(prompt, options)
        return replace(reply, speaker=self.name, role=MessageRole.ASSISTANT)
