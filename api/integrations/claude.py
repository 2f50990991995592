"""Claude AI client for the adaptive question pipeline.

All model traffic from the API goes through ``ClaudeClient.complete``: one
ordered list of role-tagged messages in, one text completion out.
"""

import re
from string import Template
from typing import List, Optional

import structlog
from anthropic import AsyncAnthropic, APIError

from api.config.settings import settings

logger = structlog.get_logger()


def safe_template_substitute(template: str, **kwargs) -> str:
    """Safely substitute template variables without crashing on special chars.

    Uses string.Template which handles $variable syntax and doesn't crash
    on curly braces in user content. Falls back to simple replacement.
    """
    # Convert {var} syntax to $var, preserving {{ and }} as literal braces
    converted = template.replace("{{", "__DOUBLE_OPEN__").replace("}}", "__DOUBLE_CLOSE__")
    converted = converted.replace("$", "$$")
    converted = re.sub(r'\{(\w+)\}', r'${\1}', converted)
    converted = converted.replace("__DOUBLE_OPEN__", "{").replace("__DOUBLE_CLOSE__", "}")

    try:
        return Template(converted).safe_substitute(**kwargs)
    except ValueError:
        result = template
        for key, value in kwargs.items():
            result = result.replace(f"{{{key}}}", str(value))
        return result


def extract_json(text: str) -> str:
    """Extract JSON from a response that may contain other text."""
    candidates = []
    for open_char, close_char in (("{", "}"), ("[", "]")):
        start = text.find(open_char)
        end = text.rfind(close_char) + 1
        if start != -1 and end > start:
            candidates.append((start, text[start:end]))

    if not candidates:
        raise ValueError("No JSON found in response")

    # Whichever structure opens first is the outermost one
    return min(candidates)[1]


class ClaudeClient:
    """Async Claude client used by the suggestion, adaptation and AI-help steps."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.client = AsyncAnthropic(
            api_key=api_key or settings.ANTHROPIC_API_KEY,
            timeout=timeout or settings.CLAUDE_TIMEOUT_SECONDS,
            max_retries=0,
        )
        self.model = model or settings.CLAUDE_MODEL
        self.max_tokens = settings.CLAUDE_MAX_TOKENS

    async def complete(
        self,
        messages: List[dict],
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Run one completion.

        Args:
            messages: Ordered [{"role": "system/user/assistant", "content": "..."}].
                System messages are joined into the system prompt.
            temperature: Sampling temperature
            max_tokens: Override for the configured token cap

        Returns:
            Completion text

        Raises:
            ClaudeError: On any API failure or an empty completion
        """
        if not self.client.api_key:
            raise ClaudeError("ANTHROPIC_API_KEY is not configured")

        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        chat = [m for m in messages if m["role"] != "system"]

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": temperature,
            "messages": chat,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        try:
            response = await self.client.messages.create(**kwargs)
        except APIError as e:
            logger.error("Claude API error", error=str(e))
            raise ClaudeError(f"Completion failed: {str(e)}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise ClaudeError("Completion returned no text")
        return text


class ClaudeError(Exception):
    """Raised when Claude API calls fail."""

    pass
