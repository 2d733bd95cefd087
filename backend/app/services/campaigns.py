"""
Campaign suggestions and saved campaigns.

A suggestion is one sports (sport/league/teams) or media (franchise/series/
characters) proposal with hashtags, each paired with an ``edit`` variant so
fan-edit videos match, plus a synthetic viewership breakdown.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Campaign, SubmissionStatus, User, VideoSubmission
from app.schemas import CampaignSuggestion, Character, Demographics, DemographicsLocation, Team
from app.services.llm_provider import LLMProvider, get_llm_provider

logger = logging.getLogger(__name__)

MEDIA_KEYWORDS = (
    "marvel", "disney", "iron man", "anime", "tv show", "tv", "television",
    "movie", "film", "franchise", "character", "mcu", "dc", "comics",
    "star wars", "harry potter", "game of thrones", "stranger things",
    "netflix", "hbo", "disney+", "series", "show", "episode",
)

DEMOGRAPHIC_LOCATIONS = 5
DEFAULT_DEMOGRAPHICS = Demographics(
    type="country",
    locations=[
        DemographicsLocation(name="United States", percentage=35),
        DemographicsLocation(name="United Kingdom", percentage=20),
        DemographicsLocation(name="Canada", percentage=15),
        DemographicsLocation(name="Australia", percentage=10),
        DemographicsLocation(name="Other", percentage=20),
    ],
)


class CampaignGenerationError(Exception):
    pass


def detect_category(input_text: str) -> str:
    """``media`` when any media keyword appears (plain substring match), else ``sports``."""
    lower = input_text.lower()
    if any(keyword in lower for keyword in MEDIA_KEYWORDS):
        return "media"
    return "sports"


def normalize_hashtag(tag: str) -> str:
    tag = tag.lower()
    if tag.startswith("#"):
        tag = tag[1:]
    return tag.strip()


def add_edit_variants(hashtags: Iterable[str] | None) -> list[str]:
    result: list[str] = []
    for tag in hashtags or []:
        if not isinstance(tag, str):
            continue
        normalized = normalize_hashtag(tag)
        if not normalized:
            continue
        for variant in (normalized, None if normalized.endswith("edit") else f"{normalized}edit"):
            if variant and variant not in result:
                result.append(variant)
    return result


def extract_hashtags_from_suggestion(suggestion: CampaignSuggestion) -> list[str]:
    tags: list[str] = []
    for tag in suggestion.global_hashtags:
        tags.append(tag)
    for team in suggestion.teams or []:
        tags.extend(team.team_hashtags)
    for character in suggestion.characters or []:
        tags.extend(character.character_hashtags)

    result: list[str] = []
    for tag in tags:
        normalized = normalize_hashtag(tag)
        if normalized and normalized not in result:
            result.append(normalized)
    return result


def normalize_demographics(raw: Any) -> Demographics:
    """Validate a model-produced breakdown and rescale it to 100%.

    Raises ValueError when the shape is wrong (not five locations, last not "Other").
    """
    if not isinstance(raw, dict):
        raise ValueError("demographics must be an object")
    locations = raw.get("locations")
    if not isinstance(locations, list) or len(locations) != DEMOGRAPHIC_LOCATIONS:
        raise ValueError(f"demographics must have exactly {DEMOGRAPHIC_LOCATIONS} locations")
    parsed = [DemographicsLocation.model_validate(loc) for loc in locations]
    if parsed[-1].name != "Other":
        raise ValueError('5th location must be "Other"')

    total = sum(loc.percentage for loc in parsed)
    if total <= 0:
        raise ValueError("demographics percentages must be positive")
    if abs(total - 100) > 0.1:
        factor = 100 / total
        for loc in parsed:
            loc.percentage = round(loc.percentage * factor, 1)
        head = sum(loc.percentage for loc in parsed[:-1])
        parsed[-1].percentage = round(100 - head, 1)

    return Demographics(type=raw.get("type") or "country", locations=parsed)


async def generate_demographics(provider: LLMProvider, input_text: str, hashtags: list[str]) -> Demographics:
    try:
        raw = await provider.suggest_demographics(input_text, hashtags)
        return normalize_demographics(raw)
    except Exception as exc:
        logger.warning("[campaigns] demographics fell back to default for %r: %s", input_text, exc)
        return DEFAULT_DEMOGRAPHICS.model_copy(deep=True)


def _sports_suggestion(raw: dict[str, Any]) -> CampaignSuggestion:
    return CampaignSuggestion(
        category="sports",
        sport=raw.get("sport"),
        league=raw.get("league"),
        teams=[
            Team(team_name=team.get("team_name") or "", team_hashtags=add_edit_variants(team.get("team_hashtags")))
            for team in raw.get("teams") or []
            if isinstance(team, dict)
        ],
        global_hashtags=add_edit_variants(raw.get("global_hashtags")),
    )


def _media_suggestion(raw: dict[str, Any]) -> CampaignSuggestion:
    return CampaignSuggestion(
        category="media",
        franchise=raw.get("franchise"),
        series=raw.get("series"),
        characters=[
            Character(
                character_name=character.get("character_name") or "",
                character_hashtags=add_edit_variants(character.get("character_hashtags")),
            )
            for character in raw.get("characters") or []
            if isinstance(character, dict)
        ],
        global_hashtags=add_edit_variants(raw.get("global_hashtags")),
    )


async def generate_campaign_suggestions(
    input_text: str, provider: LLMProvider | None = None
) -> list[CampaignSuggestion]:
    provider = provider or get_llm_provider()
    category = detect_category(input_text)
    try:
        if category == "media":
            suggestions = [_media_suggestion(await provider.suggest_media(input_text))]
        else:
            suggestions = [_sports_suggestion(await provider.suggest_sports(input_text))]
    except Exception as exc:
        logger.exception("[campaigns] %s suggestion failed for %r", category, input_text)
        raise CampaignGenerationError(f"Failed to generate campaign suggestions: {exc}") from exc

    for suggestion in suggestions:
        hashtags = extract_hashtags_from_suggestion(suggestion)
        suggestion.demographics = await generate_demographics(provider, input_text, hashtags)
    return suggestions


async def find_matching_video_ids(session: AsyncSession, hashtags: list[str]) -> list[int]:
    """Ids of completed submissions tagged with any of ``hashtags``."""
    wanted = set(hashtags)
    if not wanted:
        return []
    rows = await session.execute(
        select(VideoSubmission.id, VideoSubmission.hashtags)
        .where(
            VideoSubmission.status == SubmissionStatus.completed.value,
            VideoSubmission.hashtags.is_not(None),
        )
        .order_by(VideoSubmission.id)
    )
    return [video_id for video_id, tags in rows.all() if wanted.intersection(tags or [])]


async def create_campaign(
    session: AsyncSession, user: User, input_text: str, suggestion: CampaignSuggestion
) -> Campaign:
    hashtags = extract_hashtags_from_suggestion(suggestion)
    if not hashtags:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No hashtags found in AI payload")

    campaign = Campaign(
        user_id=user.id,
        name=f"{input_text} Campaign",
        input_text=input_text,
        ai_payload=suggestion.model_dump(mode="json"),
        hashtags=hashtags,
        video_ids=await find_matching_video_ids(session, hashtags),
    )
    session.add(campaign)
    await session.commit()
    await session.refresh(campaign)
    logger.info("[campaigns] user=%s created campaign=%s hashtags=%d videos=%d", user.id, campaign.id, len(hashtags), len(campaign.video_ids))
    return campaign
