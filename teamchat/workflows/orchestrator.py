from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from teamchat.agents.base import Agent
from teamchat.agents.user_proxy import TERMINATE
from teamchat.exceptions import ConfigurationError, GenerationTimeout
from teamchat.memory.transcript import Transcript
from teamchat.schemas.messages import GenerateOptions, Message, MessageRole, Task
from teamchat.workflows.graph import Graph
from teamchat.workflows.selector import SpeakerSelector

logger = logging.getLogger(__name__)


class ConversationOutcome(str, Enum):
    COMPLETED = "completed"
    MAX_ROUNDS = "max_rounds"
    STALLED = "stalled"
    FAILED = "failed"


@dataclass(frozen=True)
class ConversationResult:
    history: Tuple[Message, ...]
    outcome: ConversationOutcome
    rounds: int
    detail: str = ""

    @property
    def last_message(self) -> Message:
        return self.history[-1]

    @property
    def speakers(self) -> List[str]:
        return [message.speaker for message in self.history]


class GroupChat:
    """Members, optional transition graph and the admin that breaks ties."""

    def __init__(
        self,
        members: Iterable[Agent],
        admin: Optional[Agent] = None,
        graph: Optional[Graph] = None,
        termination_sentinel: str = TERMINATE,
    ) -> None:
        self.members: Dict[str, Agent] = {}
        for agent in members:
            if agent.name in self.members:
                raise ConfigurationError(f"duplicate member name: {agent.name}")
            self.members[agent.name] = agent
        if graph is not None:
            # sources may be outsiders such as the initiator; targets must be members
            unknown = sorted({t.to_agent for t in graph.transitions} - set(self.members))
            if unknown:
                raise ConfigurationError(f"graph routes to unknown agents: {', '.join(unknown)}")
        self.admin = admin
        self.graph = graph
        self.termination_sentinel = termination_sentinel

    def is_termination(self, message: Message) -> bool:
        return message.content.strip() == self.termination_sentinel


class GroupChatManager:
    """Turn scheduler: select a speaker, let it reply, append, repeat.

    Exactly one agent speaks per round and only the manager writes to the
    transcript. The round cap is the guard against cyclic graphs.
    """

    def __init__(
        self,
        group_chat: GroupChat,
        turn_timeout: Optional[float] = None,
        max_consecutive_failures: Optional[int] = None,
        transcript: Transcript | None = None,
    ) -> None:
        self.group_chat = group_chat
        self.turn_timeout = turn_timeout
        self.max_consecutive_failures = max_consecutive_failures
        self.transcript = transcript or Transcript()
        self.selector = SpeakerSelector(group_chat.admin) if group_chat.admin else None

    def initiate(self, opening_task: Task | str, max_rounds: int, initiator: str = "user") -> ConversationResult:
        if max_rounds < 0:
            raise ValueError("max_rounds must be non-negative")
        description = opening_task.description if isinstance(opening_task, Task) else opening_task
        self.transcript.reset([Message(speaker=initiator, content=description, role=MessageRole.USER)])

        rounds = 0
        failures = 0
        while rounds < max_rounds:
            history = self.transcript.all()
            speaker = self.select_next_speaker(history)
            if speaker is None:
                return self._finish(ConversationOutcome.STALLED, rounds, f"no next speaker after {history[-1].speaker}")

            message = self._produce(speaker, history)
            self.transcript.append(message)
            rounds += 1
            logger.info("Round %d: %s spoke", rounds, speaker.name)

            if message.is_error:
                failures += 1
                if self.max_consecutive_failures is not None and failures > self.max_consecutive_failures:
                    return self._finish(ConversationOutcome.FAILED, rounds, f"{failures} failed turns in a row")
            else:
                failures = 0

            if self.group_chat.is_termination(message):
                reason = "declined to continue" if message.metadata.get("declined") else "terminated"
                return self._finish(ConversationOutcome.COMPLETED, rounds, f"{speaker.name} {reason}")

        return self._finish(ConversationOutcome.MAX_ROUNDS, rounds, f"reached {max_rounds} rounds")

    def select_next_speaker(self, history: Tuple[Message, ...]) -> Optional[Agent]:
        current = history[-1].speaker
        members = self.group_chat.members
        if self.group_chat.graph is not None:
            candidates = self.group_chat.graph.next_candidates(current, history)
        else:
            candidates = list(members)
        if len(candidates) == 1:
            return members[candidates[0]]

        choices = candidates or list(members)
        if self.selector is None:
            logger.warning("No admin to choose among %s after %s", choices, current)
            return None
        logger.info("Escalating selection after %s to %s among %s", current, self.selector.admin.name, choices)
        try:
            selected = self.selector.select(choices, history, timeout=self.turn_timeout)
        except Exception:
            logger.exception("%s failed to select a speaker", self.selector.admin.name)
            return None
        return members[selected] if selected is not None else None

    def _produce(self, speaker: Agent, history: Tuple[Message, ...]) -> Message:
        try:
            message = self._call_with_timeout(speaker, history)
        except Exception as exc:
            logger.exception("%s failed to reply", speaker.name)
            return Message(
                speaker=speaker.name,
                content=f"Error: {type(exc).__name__}: {exc}",
                metadata={"error": True},
            )
        if message.speaker != speaker.name:
            logger.warning("Reply from %s claimed speaker %r; re-stamping", speaker.name, message.speaker)
            message = replace(message, speaker=speaker.name)
        return message

    def _call_with_timeout(self, speaker: Agent, history: Tuple[Message, ...]) -> Message:
        if self.turn_timeout is None:
            return speaker.generate_reply(history)
        # runs in this thread; collaborators bound their own calls by options.timeout
        started = time.monotonic()
        message = speaker.generate_reply(history, GenerateOptions(timeout=self.turn_timeout))
        elapsed = time.monotonic() - started
        if elapsed > self.turn_timeout:
            raise GenerationTimeout(f"no reply within {self.turn_timeout} seconds (took {elapsed:.2f})")
        return message

    def _finish(self, outcome: ConversationOutcome, rounds: int, detail: str) -> ConversationResult:
        logger.info("Conversation ended: %s (%s)", outcome.value, detail)
        return ConversationResult(history=self.transcript.all(), outcome=outcome, rounds=rounds, detail=detail)
