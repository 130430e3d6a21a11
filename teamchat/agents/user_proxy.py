from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional, Sequence

from teamchat.agents.base import Agent
from teamchat.schemas.messages import GenerateOptions, Message, MessageRole

logger = logging.getLogger(__name__)

TERMINATE = "[GROUPCHAT_TERMINATE]"

_DECLINE_ANSWERS = {"", "exit"}


class HumanInputMode(str, Enum):
    NEVER = "never"
    ALWAYS = "always"


class UserProxyAgent(Agent):
    """Stands in for the human; declining to answer ends the conversation."""

    def __init__(
        self,
        name: str = "user",
        human_input_mode: HumanInputMode = HumanInputMode.NEVER,
        default_reply: str = TERMINATE,
        input_fn: Optional[Callable[[str], str]] = None,
    ) -> None:
        super().__init__(name=name)
        self.human_input_mode = human_input_mode
        self.default_reply = default_reply
        self.input_fn = input_fn or input

    def _generate(self, history: Sequence[Message], options: GenerateOptions) -> Message:
        if self.human_input_mode == HumanInputMode.NEVER:
            return self._reply(self.default_reply)

        last = history[-1] if history else None
        prompt = f"{last.speaker}: {last.content}\n> " if last else "> "
        answer = self.input_fn(prompt).strip()
        if answer.lower() in _DECLINE_ANSWERS:
            logger.info("%s declined to continue", self.name)
            return self._reply(self.default_reply, declined=True)
        return self._reply(answer)

    def _reply(self, content: str, declined: bool = False) -> Message:
        metadata = {"declined": True} if declined else {}
        return Message(speaker=self.name, content=content, role=MessageRole.USER, metadata=metadata)
