"""External service integrations for the processor."""

from .claude import ClaudeClient, ClaudeError

__all__ = ["ClaudeClient", "ClaudeError"]
