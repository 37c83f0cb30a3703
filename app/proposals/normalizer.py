"""Response Normalizer — turns raw model text into a ProposalResponse.

Extraction is best-effort: a budget, timeline or hours estimate that
cannot be found is left as None, never treated as an error.
"""

from __future__ import annotations

import logging
import re
import uuid

from app.gateway.types import CompletionResult
from app.proposals.types import GenerationMetadata, ProposalRequest, ProposalResponse

logger = logging.getLogger(__name__)

MAX_KEY_POINTS = 5

_BULLET_PATTERN = re.compile(r"^(?:[-*•]|\d+[.)])\s+(.+)$")
_HEADING_PATTERN = re.compile(r"^#{1,3}\s+(.+?)\s*#*$")
_BUDGET_PATTERN = re.compile(r"\$\s?\d[\d,]*(?:\.\d+)?(?:\s?(?:-|–|to)\s?\$?\s?\d[\d,]*(?:\.\d+)?)?")
_TIMELINE_PATTERNS = (
    re.compile(r"(?:timeline|duration)\s*:\s*(\d+(?:\s?-\s?\d+)?\s*(?:weeks?|months?|days?))", re.IGNORECASE),
    re.compile(r"(\d+(?:\s?-\s?\d+)?\s*(?:weeks?|months?|days?))\s+to\s+complete", re.IGNORECASE),
    re.compile(r"\b(\d+(?:\s?-\s?\d+)?\s+(?:weeks?|months?|days?))\b", re.IGNORECASE),
)
_HOURS_PATTERNS = (
    re.compile(r"estimated\s+hours?\s*:\s*(\d+(?:\s?-\s?\d+)?)", re.IGNORECASE),
    re.compile(r"total\s+hours?\s*:\s*(\d+(?:\s?-\s?\d+)?)", re.IGNORECASE),
    re.compile(r"(\d+(?:\s?-\s?\d+)?)\s*hours?\s+total", re.IGNORECASE),
)
_MARKDOWN_EMPHASIS = re.compile(r"[*_`]+")


def _strip_markup(text: str) -> str:
    return _MARKDOWN_EMPHASIS.sub("", text).strip()


def extract_key_points(content: str, limit: int = MAX_KEY_POINTS) -> list[str]:
    """Bullet or numbered list items, in order, up to `limit`."""
    points: list[str] = []
    for line in content.splitlines():
        match = _BULLET_PATTERN.match(line.strip())
        if not match:
            continue
        point = _strip_markup(match.group(1))
        if point:
            points.append(point)
        if len(points) >= limit:
            break
    return points


def extract_budget(content: str) -> str | None:
    """First dollar amount (or range) mentioned."""
    match = _BUDGET_PATTERN.search(content)
    return match.group(0).strip() if match else None


def extract_timeline(content: str) -> str | None:
    """Labelled duration first, then any "N days/weeks/months" mention."""
    for pattern in _TIMELINE_PATTERNS:
        match = pattern.search(content)
        if match:
            return match.group(1).strip()
    return None


def extract_hours(content: str) -> str | None:
    for pattern in _HOURS_PATTERNS:
        match = pattern.search(content)
        if match:
            return f"{match.group(1).strip()} hours"
    return None


def derive_title(content: str, request: ProposalRequest) -> str:
    """First markdown heading of the proposal, falling back to the job title."""
    for line in content.splitlines():
        match = _HEADING_PATTERN.match(line.strip())
        if match:
            heading = _strip_markup(match.group(1))
            if heading:
                return heading
    return request.job_title.strip()


def normalize_proposal(
    completion: CompletionResult,
    request: ProposalRequest,
    processing_time_ms: int,
    template_id: str = "",
    configured_model: str = "",
) -> ProposalResponse:
    """Build the immutable ProposalResponse for a completion."""
    content = completion.text.strip()

    return ProposalResponse(
        id=f"proposal_{uuid.uuid4().hex[:16]}",
        content=content,
        title=derive_title(content, request),
        key_points=tuple(extract_key_points(content)),
        estimated_budget=extract_budget(content),
        estimated_timeline=extract_timeline(content),
        estimated_hours=extract_hours(content),
        template_id=template_id,
        metadata=GenerationMetadata(
            model=configured_model or completion.model,
            tokens_used=completion.tokens_used,
            processing_time_ms=processing_time_ms,
        ),
    )
