from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from teamchat.exceptions import TransitionGuardError
from teamchat.schemas.messages import Message

Guard = Callable[[str, str, Sequence[Message]], bool]


@dataclass(frozen=True)
class Transition:
    """Directed edge between two agent names, optionally gated by a guard.

    Guards must be pure: they may only read the history they are given.
    """

    from_agent: str
    to_agent: str
    guard: Optional[Guard] = None

    def allows(self, history: Sequence[Message]) -> bool:
        if self.guard is None:
            return True
        try:
            return bool(self.guard(self.from_agent, self.to_agent, history))
        except Exception as exc:
            raise TransitionGuardError(
                f"guard on {self.from_agent} -> {self.to_agent} failed: {exc}"
            ) from exc


class Graph:
    """Static set of allowed speaker transitions, evaluated in registration order."""

    def __init__(self, transitions: Iterable[Transition]) -> None:
        self.transitions: Tuple[Transition, ...] = tuple(transitions)
        nodes = set()
        for transition in self.transitions:
            nodes.add(transition.from_agent)
            nodes.add(transition.to_agent)
        self.nodes: FrozenSet[str] = frozenset(nodes)

    def outbound(self, current: str) -> List[Transition]:
        return [t for t in self.transitions if t.from_agent == current]

    def next_candidates(self, current: str, history: Sequence[Message]) -> List[str]:
        candidates: List[str] = []
        for transition in self.outbound(current):
            if transition.allows(history) and transition.to_agent not in candidates:
                candidates.append(transition.to_agent)
        return candidates


def always(from_agent: str, to_agent: str, history: Sequence[Message]) -> bool:
    return True


def last_speaker_is(name: str) -> Guard:
    def guard(from_agent: str, to_agent: str, history: Sequence[Message]) -> bool:
        return bool(history) and history[-1].speaker == name

    return guard


def history_has_speaker(name: str) -> Guard:
    def guard(from_agent: str, to_agent: str, history: Sequence[Message]) -> bool:
        return any(message.speaker == name for message in history)

    return guard


def last_message_contains(marker: str) -> Guard:
    def guard(from_agent: str, to_agent: str, history: Sequence[Message]) -> bool:
        return bool(history) and marker in history[-1].content

    return guard


def negate(inner: Guard) -> Guard:
    def guard(from_agent: str, to_agent: str, history: Sequence[Message]) -> bool:
        return not inner(from_agent, to_agent, history)

    return guard


def all_of(*guards: Guard) -> Guard:
    def guard(from_agent: str, to_agent: str, history: Sequence[Message]) -> bool:
        return all(g(from_agent, to_agent, history) for g in guards)

    return guard
