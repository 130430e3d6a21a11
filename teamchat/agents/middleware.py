from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Sequence

from teamchat.exceptions import MiddlewareError
from teamchat.schemas.messages import GenerateOptions, Message, MessageRole
from teamchat.tools.base import Tool
from teamchat.tools.code_executor import CodeBlockExecutor, extract_file_blocks
from teamchat.tools.file_system import FileSystemTools

if TYPE_CHECKING:
    from teamchat.agents.base import Agent

logger = logging.getLogger(__name__)

Next = Callable[[Sequence[Message], GenerateOptions], Message]
Middleware = Callable[[Sequence[Message], GenerateOptions, "Agent", Next], Message]


class MiddlewareChain:
    """Ordered interceptors around an agent's base reply behaviour.

    Index 0 is the first registration and sits closest to the base behaviour;
    the last registration runs first. Each interceptor gets an explicit
    ``next_`` continuation and may skip it to short-circuit.
    """

    def __init__(self, middlewares: Iterable[Middleware] | None = None) -> None:
        self._middlewares: List[Middleware] = list(middlewares or [])

    def __len__(self) -> int:
        return len(self._middlewares)

    def add(self, middleware: Middleware) -> None:
        self._middlewares.append(middleware)

    def invoke(
        self,
        history: Sequence[Message],
        options: GenerateOptions,
        agent: "Agent",
        base: Next,
    ) -> Message:
        return self._continuation(len(self._middlewares) - 1, agent, base)(history, options)

    def _continuation(self, index: int, agent: "Agent", base: Next) -> Next:
        if index < 0:
            return base
        middleware = self._middlewares[index]

        def step(history: Sequence[Message], options: GenerateOptions) -> Message:
            return middleware(history, options, agent, self._continuation(index - 1, agent, base))

        return step


class FunctionMiddleware:
    """Wraps a plain function so it shows up with a readable name."""

    def __init__(self, func: Middleware, name: Optional[str] = None) -> None:
        self.func = func
        self.name = name or getattr(func, "__name__", "middleware")

    def __call__(self, history: Sequence[Message], options: GenerateOptions, agent: "Agent", next_: Next) -> Message:
        return self.func(history, options, agent, next_)

    def __repr__(self) -> str:
        return f"FunctionMiddleware({self.name})"


class LogMessageMiddleware:
    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def __call__(self, history: Sequence[Message], options: GenerateOptions, agent: "Agent", next_: Next) -> Message:
        reply = next_(history, options)
        logger.log(self.level, "Message from %s (%s):\n%s", reply.speaker or agent.name, reply.role.value, reply.content)
        return reply


class LastMessageFromMiddleware:
    """Hands only the most recent message of ``source`` to the inner chain."""

    def __init__(self, source: str) -> None:
        self.source = source

    def __call__(self, history: Sequence[Message], options: GenerateOptions, agent: "Agent", next_: Next) -> Message:
        for message in reversed(history):
            if message.speaker == self.source:
                return next_([message], options)
        raise MiddlewareError(f"No {self.source} message found")


class CodeBlockExecutionMiddleware:
    """Runs fenced code from the last message instead of calling inward."""

    def __init__(self, executor: CodeBlockExecutor) -> None:
        self.executor = executor

    def __call__(self, history: Sequence[Message], options: GenerateOptions, agent: "Agent", next_: Next) -> Message:
        if not history or not history[-1].content:
            return next_(history, options)
        report = self.executor.execute(history[-1].content, timeout=options.timeout)
        if report is None:
            return next_(history, options)
        return Message(speaker=agent.name, content=report, metadata={"executed": self.executor.label})


class FileBlockMiddleware:
    """Writes ```file[path] blocks of the last message into the working directory."""

    def __init__(self, file_system: FileSystemTools) -> None:
        self.file_system = file_system

    def __call__(self, history: Sequence[Message], options: GenerateOptions, agent: "Agent", next_: Next) -> Message:
        blocks = extract_file_blocks(history[-1].content) if history else []
        if not blocks:
            return next_(history, options)
        results = [f"{path}: {self.file_system.write_to_file(path, content)}" for path, content in blocks]
        return Message(speaker=agent.name, content="\n".join(results), role=MessageRole.FUNCTION)


class FunctionCallMiddleware:
    """Advertises ``tools`` to the inner chain and executes the calls it returns."""

    def __init__(self, tools: Iterable[Tool]) -> None:
        self.tools: Dict[str, Tool] = {tool.name: tool for tool in tools}

    def __call__(self, history: Sequence[Message], options: GenerateOptions, agent: "Agent", next_: Next) -> Message:
        advertised = options.functions + tuple(t for t in self.tools.values() if t not in options.functions)
        reply = next_(history, replace(options, functions=advertised))
        if not reply.tool_calls:
            return reply

        results: List[str] = []
        for call in reply.tool_calls:
            tool = self.tools.get(call.name)
            if tool is None:
                result = f"Function {call.name} is not available"
            else:
                logger.info("%s calls %s", agent.name, call.name)
                result = tool.invoke(call.arguments)
            results.append(f"[{call.name}] {result}")
        return Message(
            speaker=agent.name,
            content="\n".join(results),
            role=MessageRole.FUNCTION,
            tool_calls=reply.tool_calls,
            metadata={"request": reply.content} if reply.content else {},
        )
