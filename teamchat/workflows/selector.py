from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from teamchat.agents.base import Agent
from teamchat.schemas.messages import GenerateOptions, Message, MessageRole

logger = logging.getLogger(__name__)

SELECTION_OPTIONS = GenerateOptions(temperature=0.0, max_tokens=128, stop_sequences=(":",))


class SpeakerSelector:
    """Asks an admin agent to pick the next speaker by role-play.

    The admin sees every turn as ``From <name>:`` and is stopped at the first
    colon, so a well-behaved reply is just ``From <name>``.
    """

    def __init__(self, admin: Agent) -> None:
        self.admin = admin

    def select(
        self, choices: Sequence[str], history: Sequence[Message], timeout: Optional[float] = None
    ) -> Optional[str]:
        if not choices:
            return None
        options = replace(SELECTION_OPTIONS, timeout=timeout)
        reply = self.admin.generate_reply(self.build_prompt(choices, history), options)
        selected = self.parse(reply.content, choices)
        if selected is None:
            logger.warning("%s picked no valid speaker from %s: %r", self.admin.name, list(choices), reply.content)
        return selected

    def build_prompt(self, choices: Sequence[str], history: Sequence[Message]) -> List[Message]:
        system = (
            "You are in a role play game. Carefully read the conversation history "
            "and carry on the conversation.\n"
            "The available roles are:\n"
            f"{','.join(choices)}\n\n"
            "Each message will start with 'From name:', e.g:\n"
            f"From {choices[0]}:\n"
            "//your message//."
        )
        prompt = [Message(speaker=self.admin.name, content=system, role=MessageRole.SYSTEM)]
        for message in history:
            prompt.append(
                Message(
                    speaker=message.speaker,
                    content=f"From {message.speaker}:\n{message.content}\n<eof_msg>",
                    role=MessageRole.USER,
                )
            )
        return prompt

    @staticmethod
    def parse(content: str, choices: Sequence[str]) -> Optional[str]:
        name = content.strip()
        if name.lower().startswith("from "):
            name = name[5:]
        name = name.strip().rstrip(":").strip().lower()
        for choice in choices:
            if choice.lower() == name:
                return choice
        return None
