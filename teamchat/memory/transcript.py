from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Tuple

from teamchat.schemas.messages import Message


class Transcript:
    """Append-only conversation log backing the group chat manager."""

    def __init__(self) -> None:
        self._turns: List[Message] = []

    def __len__(self) -> int:
        return len(self._turns)

    def reset(self, initial: Iterable[Message] | None = None) -> None:
        self._turns = []
        for message in initial or []:
            self.append(message)

    def append(self, message: Message) -> Message:
        stored = replace(message, position=len(self._turns))
        self._turns.append(stored)
        return stored

    def last(self, k: int = 1) -> List[Message]:
        if k <= 0:
            return []
        return self._turns[-k:]

    def all(self) -> Tuple[Message, ...]:
        return tuple(self._turns)
