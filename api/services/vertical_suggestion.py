"""Suggest catalog verticals that match a candidate's problem description."""

import json
from dataclasses import dataclass
from typing import Sequence

import structlog

from api.config.settings import settings
from api.integrations.claude import ClaudeClient, ClaudeError, extract_json
from api.models import Vertical

logger = structlog.get_logger()

MIN_SUGGESTIONS = 3
MAX_SUGGESTIONS = 5

SUGGEST_SYSTEM_PROMPT = """You are an expert at matching community problems with {chapter}'s vertical focus areas.

{chapter} Verticals:
{verticals}

Your task is to analyze the user's problem description and suggest 3-5 most relevant verticals based on:
- Direct keyword matches
- Thematic connections (e.g., "pollution" -> a climate vertical, "traffic accidents" -> a road safety vertical)
- Target audience overlap (e.g., "students struggling" -> a youth vertical)

Respond with ONLY a JSON array of vertical IDs (no other text). If no strong matches exist, return the 3 most general/relevant verticals. Always return 3-5 IDs.
Example format: [4, 9, 12]"""


@dataclass(frozen=True)
class VerticalSuggestions:
    """Ordered vertical ids; fallback marks generic (non-AI) suggestions."""

    vertical_ids: list[int]
    fallback: bool = False


def _format_catalog(verticals: Sequence[Vertical]) -> str:
    lines = []
    for idx, vertical in enumerate(verticals, start=1):
        line = f"{idx}. {vertical.name} (ID: {vertical.id})"
        if vertical.description:
            line += f": {vertical.description}"
        lines.append(line)
    return "\n".join(lines)


def _normalize_id(value) -> int | None:
    """Models sometimes quote numeric ids."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def select_valid_ids(raw_ids: list, catalog_ids: Sequence[int]) -> list[int]:
    """Keep known ids in model order, then backfill and truncate.

    Fewer than three valid ids are topped up with unused catalog entries,
    in catalog order, up to five in total.
    """
    known = set(catalog_ids)
    valid: list[int] = []
    for raw in raw_ids:
        vertical_id = _normalize_id(raw)
        if vertical_id in known and vertical_id not in valid:
            valid.append(vertical_id)

    if len(valid) < MIN_SUGGESTIONS:
        remaining = [vid for vid in catalog_ids if vid not in valid]
        valid.extend(remaining[: MAX_SUGGESTIONS - len(valid)])

    return valid[:MAX_SUGGESTIONS]


class VerticalSuggester:
    """Asks the model for matching verticals. Never raises to the caller."""

    def __init__(self, claude: ClaudeClient):
        self.claude = claude

    async def suggest(
        self,
        problem_text: str,
        catalog: Sequence[Vertical],
        chapter_name: str = "the chapter",
    ) -> VerticalSuggestions:
        """Return 3-5 vertical ids for the problem, or the first five on failure."""
        catalog_ids = [vertical.id for vertical in catalog]
        fallback = VerticalSuggestions(catalog_ids[:MAX_SUGGESTIONS], fallback=True)

        if not catalog_ids:
            logger.warning("No active verticals to suggest from")
            return fallback

        system_prompt = SUGGEST_SYSTEM_PROMPT.format(
            chapter=chapter_name,
            verticals=_format_catalog(catalog),
        )
        messages = [
            {"role": "system", "content": system_prompt},
            {
                "role": "user",
                "content": f'Problem description: "{problem_text}"\n\nSuggest 3-5 relevant vertical IDs:',
            },
        ]

        try:
            raw = await self.claude.complete(messages, temperature=settings.EXTRACTION_TEMPERATURE)
            parsed = json.loads(extract_json(raw))
        except ClaudeError as e:
            logger.warning("Vertical suggestion failed, using defaults", error=str(e))
            return fallback
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("Failed to parse vertical suggestions, using defaults", error=str(e))
            return fallback

        if not isinstance(parsed, list):
            logger.warning("Vertical suggestions were not a list, using defaults")
            return fallback

        vertical_ids = select_valid_ids(parsed, catalog_ids)
        logger.info(
            "Verticals suggested",
            suggested=vertical_ids,
            returned=len(parsed),
        )
        return VerticalSuggestions(vertical_ids)
