from __future__ import annotations


class TeamChatError(Exception):
    """Base class for errors raised by the group chat runtime."""


class ConfigurationError(TeamChatError):
    """An agent, graph or settings object was wired incorrectly."""


class GenerationError(TeamChatError):
    """The text-generation backend failed to produce a reply."""


class GenerationTimeout(GenerationError):
    """A turn did not finish within the configured timeout."""


class MiddlewareError(TeamChatError):
    """An interceptor could not complete its step."""


class TransitionGuardError(TeamChatError):
    """A transition guard raised instead of returning a boolean."""
