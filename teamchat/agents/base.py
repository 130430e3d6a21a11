from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from teamchat.agents.middleware import FunctionMiddleware, Middleware, MiddlewareChain
from teamchat.schemas.messages import GenerateOptions, Message


class Agent(ABC):
    """Base contract for every participant in a group chat."""

    name: str

    def __init__(self, name: str) -> None:
        if not name:
            raise ValueError("agent name must not be empty")
        self.name = name
        self.middlewares = MiddlewareChain()

    @abstractmethod
    def _generate(self, history: Sequence[Message], options: GenerateOptions) -> Message:
        """Produce the next message; the innermost link of the chain."""

    def generate_reply(self, history: Sequence[Message], options: GenerateOptions | None = None) -> Message:
        return self.middlewares.invoke(tuple(history), options or GenerateOptions(), self, self._generate)

    def register_middleware(self, middleware: Middleware, name: str | None = None) -> "Agent":
        if name is not None:
            middleware = FunctionMiddleware(middleware, name=name)
        self.middlewares.add(middleware)
        return self

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
