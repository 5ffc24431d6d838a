"""Milestone suggestions from the Anthropic Messages API."""

import json
import logging
import math
import os
import re
import time
from typing import Any, Dict, List, Optional

import httpx
from fastapi import HTTPException
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.models import AgentAction, AgentActionType, MilestoneCategory, MilestoneTemplateInput
from steady.permissions import Permission
from steady.services.errors import (
    AI_NOT_CONFIGURED,
    AI_UNAVAILABLE,
    MILESTONES_UNPARSEABLE,
    commit_or_raise,
    validation_failed,
)
from steady.services.membership import get_active_membership, get_user_id, require_permission

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"
ANTHROPIC_API_KEY_ENV_VAR = "ANTHROPIC_API_KEY"
DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_TIMEOUT_SECONDS = 60.0

DEFAULT_DAYS_BEFORE_EVENT = 30
SUMMARY_LENGTH = 500

MILESTONES_PATTERN = re.compile(r"<milestones>([\s\S]*?)</milestones>")
TEMPLATE_NAME_PATTERN = re.compile(r"<templateName>([\s\S]*?)</templateName>")

SYSTEM_PROMPT = """You are helping a nonprofit executive director create an event template in Steady, an event management platform.

Based on their event description, generate a comprehensive list of milestones (tasks) needed to execute the event.

Output milestones in this JSON format:
<milestones>
[
  {
    "title": "Book venue",
    "description": "Reserve the location and sign contract",
    "category": "VENUE",
    "daysBeforeEvent": 90,
    "estimatedHours": 2
  }
]
</milestones>

Guidelines:
- Generate 8-15 milestones for a typical event
- Space milestones appropriately (venue booking early, final confirmations late)
- Use ONLY these categories: VENUE, CATERING, MARKETING, LOGISTICS, PERMITS, SPONSORS, VOLUNTEERS, GENERAL
- Be practical and comprehensive
- Include setup/teardown tasks near the event date

Also suggest a template name based on the description.
<templateName>Suggested Name Here</templateName>"""


class MilestoneParseError(ValueError):
    """The AI response did not contain a usable milestone list."""


class AIMessage(SQLModel):
    role: str
    content: str


class AIResponse(SQLModel):
    content: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class GeneratedTemplate(SQLModel):
    name: Optional[str] = None
    milestones: List[MilestoneTemplateInput]


class GenerateMilestonesRequest(SQLModel):
    description: str


async def generate_ai_response(
    system: Optional[str],
    messages: List[AIMessage],
    max_tokens: int = 2000,
    temperature: float = 0.7,
) -> AIResponse:
    api_key = os.getenv(ANTHROPIC_API_KEY_ENV_VAR)
    if not api_key:
        logger.error("%s is not configured", ANTHROPIC_API_KEY_ENV_VAR)
        raise HTTPException(status_code=503, detail=AI_NOT_CONFIGURED)

    body: Dict[str, Any] = {
        "model": os.getenv("ANTHROPIC_MODEL", DEFAULT_MODEL),
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": [{"role": m.role, "content": m.content} for m in messages],
    }
    if system:
        body["system"] = system

    headers = {
        "content-type": "application/json",
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_API_VERSION,
    }
    timeout = float(os.getenv("AI_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(ANTHROPIC_API_URL, json=body, headers=headers)
    except httpx.HTTPError as exc:
        logger.error("AI request failed: %s", exc)
        raise HTTPException(status_code=502, detail=AI_UNAVAILABLE) from exc

    if response.status_code != 200:
        logger.error("AI service returned %s: %s", response.status_code, response.text)
        raise HTTPException(status_code=502, detail=AI_UNAVAILABLE)

    try:
        data = response.json()
        content = "".join(
            block.get("text", "")
            for block in data.get("content") or []
            if block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        return AIResponse(
            content=content,
            input_tokens=usage.get("input_tokens") or 0,
            output_tokens=usage.get("output_tokens") or 0,
        )
    except (ValueError, AttributeError, TypeError) as exc:
        logger.error("AI service returned an unreadable body: %s", response.text[:SUMMARY_LENGTH])
        raise HTTPException(status_code=502, detail=AI_UNAVAILABLE) from exc


def _parse_category(value: Any) -> MilestoneCategory:
    try:
        return MilestoneCategory(value)
    except ValueError:
        return MilestoneCategory.GENERAL


def _as_number(value: Any) -> Optional[float]:
    # JSON allows NaN and Infinity, which no milestone can use.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_days(value: Any) -> int:
    number = _as_number(value)
    if not number:
        return DEFAULT_DAYS_BEFORE_EVENT
    return max(0, int(number))


def _parse_hours(value: Any) -> Optional[float]:
    number = _as_number(value)
    return None if number is None else float(number)


def parse_generated_template(content: str) -> GeneratedTemplate:
    """Pull the milestone list and suggested name out of an AI response.

    Raises ``MilestoneParseError`` when the ``<milestones>`` block is missing
    or does not hold a JSON array. Individual entries are cleaned up rather
    than rejected.
    """
    match = MILESTONES_PATTERN.search(content or "")
    if match is None:
        raise MilestoneParseError("No <milestones> block in response")

    try:
        raw = json.loads(match.group(1))
    except json.JSONDecodeError as exc:
        raise MilestoneParseError(f"Milestones are not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise MilestoneParseError("Milestones must be a JSON array")

    milestones: List[MilestoneTemplateInput] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        title = entry.get("title")
        if not isinstance(title, str) or not title.strip():
            continue
        description = entry.get("description")
        if not isinstance(description, str):
            description = None
        milestones.append(
            MilestoneTemplateInput(
                title=title.strip(),
                description=(description or "").strip() or None,
                category=_parse_category(entry.get("category")),
                days_before_event=_parse_days(entry.get("daysBeforeEvent")),
                estimated_hours=_parse_hours(entry.get("estimatedHours")),
            )
        )

    name_match = TEMPLATE_NAME_PATTERN.search(content)
    name = name_match.group(1).strip() if name_match else None
    return GeneratedTemplate(name=name or None, milestones=milestones)


async def generate_template_milestones(
    session: AsyncSession, user: dict, description: str
) -> GeneratedTemplate:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_CREATE)

    description = (description or "").strip()
    if not description:
        raise validation_failed("Please describe the event type first")

    started = time.monotonic()
    result = await generate_ai_response(
        SYSTEM_PROMPT,
        [AIMessage(role="user", content=description)],
        max_tokens=2000,
        temperature=0.7,
    )
    latency_ms = int((time.monotonic() - started) * 1000)

    session.add(
        AgentAction(
            organization_id=membership.organization_id,
            user_id=get_user_id(user),
            action_type=AgentActionType.MILESTONE_GENERATION,
            prompt_summary=description[:SUMMARY_LENGTH],
            response_summary=result.content[:SUMMARY_LENGTH],
            tokens_used=result.total_tokens,
            latency_ms=latency_ms,
        )
    )
    await commit_or_raise(session)

    try:
        generated = parse_generated_template(result.content)
    except MilestoneParseError as exc:
        logger.warning("Could not parse generated milestones: %s", exc)
        raise validation_failed(MILESTONES_UNPARSEABLE) from exc

    logger.info(
        "Generated %s milestones in %sms",
        len(generated.milestones),
        latency_ms,
        extra={"organization_id": str(membership.organization_id)},
    )
    return generated
