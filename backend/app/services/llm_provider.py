"""
LLM provider interface for campaign suggestions.

Each call returns the raw structured payload of one forced tool call
(``get_sports_suggestion``, ``get_media_suggestion``, ``generate_demographics``);
hashtag cleanup and validation happen in ``app.services.campaigns``.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from anthropic import AsyncAnthropic

from app.settings import get_settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """The model did not return the expected structured output."""


_STRING_LIST = {"type": "array", "items": {"type": "string"}}

SPORTS_TOOL = {
    "name": "get_sports_suggestion",
    "description": "Get the top sport, league, teams, and hashtags for a region or market",
    "input_schema": {
        "type": "object",
        "properties": {
            "sport": {"type": "string", "description": 'The top sport name (e.g. "Hockey", "Cricket")'},
            "league": {"type": "string", "description": 'The main league for this sport (e.g. "NHL", "IPL")'},
            "teams": {
                "type": "array",
                "description": "Top 3-5 teams in this league",
                "items": {
                    "type": "object",
                    "properties": {"team_name": {"type": "string"}, "team_hashtags": _STRING_LIST},
                    "required": ["team_name", "team_hashtags"],
                },
            },
            "global_hashtags": {
                **_STRING_LIST,
                "description": "20-30 hashtags for the sport and league. Full team names only, never two-letter abbreviations.",
            },
        },
        "required": ["sport", "league", "teams", "global_hashtags"],
    },
}

MEDIA_TOOL = {
    "name": "get_media_suggestion",
    "description": "Get the top franchise, series, characters, and hashtags for a media IP",
    "input_schema": {
        "type": "object",
        "properties": {
            "franchise": {"type": "string", "description": 'The franchise name (e.g. "Marvel", "Star Wars")'},
            "series": {"type": "string", "description": 'The main series or universe (e.g. "MCU", "One Piece")'},
            "characters": {
                "type": "array",
                "description": "Top 3-5 characters",
                "items": {
                    "type": "object",
                    "properties": {"character_name": {"type": "string"}, "character_hashtags": _STRING_LIST},
                    "required": ["character_name", "character_hashtags"],
                },
            },
            "global_hashtags": {**_STRING_LIST, "description": "20-30 hashtags for the franchise, series and characters"},
        },
        "required": ["franchise", "series", "characters", "global_hashtags"],
    },
}

DEMOGRAPHICS_TOOL = {
    "name": "generate_demographics",
    "description": (
        "Generate fake viewership demographics with exactly 5 locations. "
        "Country-specific team hashtags push that country to 65-75%."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "type": {"type": "string", "enum": ["country", "city"]},
            "locations": {
                "type": "array",
                "description": 'Exactly 5 locations; the 5th is "Other". Percentages sum to 100.',
                "items": {
                    "type": "object",
                    "properties": {"name": {"type": "string"}, "percentage": {"type": "number"}},
                    "required": ["name", "percentage"],
                },
                "minItems": 5,
                "maxItems": 5,
            },
        },
        "required": ["type", "locations"],
    },
}

SPORTS_SYSTEM_PROMPT = """You are an expert in sports, leagues, teams, and social media hashtags.
Given a region or market (like "Canada", "India", "Spain"), identify the most popular sport there,
its main league, the top 3-5 teams and 20-30 hashtags covering the sport, league, full team names,
major players and regional terms. Return only one suggestion.
Never put two-letter abbreviations ("DC", "MI") in global_hashtags: they match unrelated content."""

MEDIA_SYSTEM_PROMPT = """You are an expert in movies, TV shows, anime, franchises, and social media hashtags.
Given a media IP (like "Marvel", "Iron Man", "Stranger Things"), identify the franchise, the main
series or universe, the top 3-5 characters and 20-30 hashtags for all of them. Return only one suggestion."""

DEMOGRAPHICS_SYSTEM_PROMPT = """You generate realistic but fake viewership demographics for demo purposes.
Decide whether the input is a country or a city and answer with locations of the same kind.
If the hashtags name teams from the input country, give that country 65-75%; if the input names a
country but the hashtags are generic, give it 55-65%. Return exactly 5 locations, the 5th named
"Other", with percentages summing to 100."""


class LLMProvider(ABC):
    """Abstract LLM provider. Each method returns the tool-call arguments as a dict."""

    name = "abstract"

    @abstractmethod
    async def suggest_sports(self, input_text: str) -> dict[str, Any]:
        ...

    @abstractmethod
    async def suggest_media(self, input_text: str) -> dict[str, Any]:
        ...

    @abstractmethod
    async def suggest_demographics(self, input_text: str, hashtags: list[str]) -> dict[str, Any]:
        ...


class StubLLMProvider(LLMProvider):
    """Deterministic stub that returns plausible placeholder suggestions."""

    name = "stub-v1"

    async def suggest_sports(self, input_text: str) -> dict[str, Any]:
        slug = "".join(ch for ch in input_text.lower() if ch.isalnum()) or "local"
        return {
            "sport": "Football",
            "league": f"{input_text} League",
            "teams": [
                {"team_name": f"{input_text} United", "team_hashtags": [f"{slug}united"]},
                {"team_name": f"{input_text} City", "team_hashtags": [f"{slug}city"]},
            ],
            "global_hashtags": ["football", "soccer", f"{slug}football", "footballfans"],
        }

    async def suggest_media(self, input_text: str) -> dict[str, Any]:
        slug = "".join(ch for ch in input_text.lower() if ch.isalnum()) or "media"
        return {
            "franchise": input_text,
            "series": input_text,
            "characters": [{"character_name": f"{input_text} Hero", "character_hashtags": [f"{slug}hero"]}],
            "global_hashtags": [slug, f"{slug}fans", "fandom"],
        }

    async def suggest_demographics(self, input_text: str, hashtags: list[str]) -> dict[str, Any]:
        return {
            "type": "country",
            "locations": [
                {"name": input_text, "percentage": 60},
                {"name": "United States", "percentage": 15},
                {"name": "United Kingdom", "percentage": 10},
                {"name": "Canada", "percentage": 5},
                {"name": "Other", "percentage": 10},
            ],
        }


class AnthropicLLMProvider(LLMProvider):
    """Claude with a forced tool call, so the reply is always the tool's JSON input."""

    def __init__(self, api_key: str, model: str, temperature: float = 0.7, client: AsyncAnthropic | None = None):
        self.client = client or AsyncAnthropic(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.name = model

    async def _call_tool(self, tool: dict[str, Any], system: str, prompt: str) -> dict[str, Any]:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=2000,
            temperature=self.temperature,
            system=system,
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
            messages=[{"role": "user", "content": prompt}],
        )
        for block in response.content or []:
            if getattr(block, "type", None) == "tool_use" and block.name == tool["name"]:
                if isinstance(block.input, dict):
                    return block.input
        logger.error("[llm] %s returned no %s tool call", self.model, tool["name"])
        raise LLMError(f"model did not return {tool['name']}")

    async def suggest_sports(self, input_text: str) -> dict[str, Any]:
        return await self._call_tool(
            SPORTS_TOOL, SPORTS_SYSTEM_PROMPT, f"Generate the top sports suggestion for: {input_text}"
        )

    async def suggest_media(self, input_text: str) -> dict[str, Any]:
        return await self._call_tool(
            MEDIA_TOOL, MEDIA_SYSTEM_PROMPT, f"Generate the top media IP suggestion for: {input_text}"
        )

    async def suggest_demographics(self, input_text: str, hashtags: list[str]) -> dict[str, Any]:
        prompt = (
            f"Generate demographics for:\nInput: {input_text}\nHashtags: {', '.join(hashtags)}\n\n"
            "Look for country-specific team names among the hashtags before deciding the split."
        )
        return await self._call_tool(DEMOGRAPHICS_TOOL, DEMOGRAPHICS_SYSTEM_PROMPT, prompt)


_provider: LLMProvider | None = None


def _build_provider() -> LLMProvider:
    settings = get_settings()
    if settings.llm_provider == "anthropic":
        if settings.anthropic_api_key:
            return AnthropicLLMProvider(settings.anthropic_api_key, settings.llm_model, settings.llm_temperature)
        logger.warning("[llm] LLM_PROVIDER=anthropic but ANTHROPIC_API_KEY is empty, using stub")
    return StubLLMProvider()


def get_llm_provider() -> LLMProvider:
    global _provider
    if _provider is None:
        _provider = _build_provider()
    return _provider


def set_llm_provider(provider: LLMProvider | None) -> None:
    global _provider
    _provider = provider
