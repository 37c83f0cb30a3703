"""Core types and enums for the proposal pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ProjectCategory(str, Enum):
    """Project categories a proposal can be generated for."""

    WEB_DEVELOPMENT = "web-development"
    MOBILE_APP = "mobile-app"
    DESIGN = "design"
    CONSULTING = "consulting"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | ProjectCategory) -> ProjectCategory:
        """Parse a category after trimming and case-folding. Raises ValueError."""
        if isinstance(value, ProjectCategory):
            return value
        return cls(str(value).strip().casefold())


class ProposalStage(str, Enum):
    """Stages a request passes through in ProposalService."""

    VALIDATING = "validating"
    CACHE_CHECK = "cache_check"
    RATE_LIMIT_CHECK = "rate_limit_check"
    BUILDING = "building"
    GENERATING = "generating"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Request: input to the pipeline
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProposalRequest:
    """A job posting to draft a proposal for.

    `job_title` and `job_description` are required; the service rejects
    requests where either is blank before doing any work.
    """

    job_title: str
    job_description: str
    category: ProjectCategory = ProjectCategory.OTHER
    budget: str | None = None
    timeline: str | None = None
    additional_context: str | None = None
    client_name: str | None = None
    requirements: tuple[str, ...] = ()

    def normalized(self) -> dict:
        """Canonical form used for fingerprinting."""
        return {
            "job_title": _clean(self.job_title),
            "job_description": _clean(self.job_description),
            "category": self.category.value.casefold(),
            "budget": _clean(self.budget),
            "timeline": _clean(self.timeline),
            "additional_context": _clean(self.additional_context),
            "client_name": _clean(self.client_name),
            "requirements": [item.strip() for item in self.requirements if item and item.strip()],
        }


def _clean(value: str | None) -> str:
    return (value or "").strip()


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProposalTemplate:
    """Reusable prompt pair for one project category."""

    id: str
    name: str
    category: ProjectCategory
    system_prompt: str
    user_prompt_template: str
    variables: frozenset[str] = frozenset()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_summary_dict(self) -> dict:
        """Public description without prompt text."""
        return {
            "id": self.id,
            "name": self.name,
            "projectType": self.category.value,
            "variables": sorted(self.variables),
            "updatedAt": self.updated_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Response: output of the pipeline
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenerationMetadata:
    model: str
    tokens_used: int = 0
    processing_time_ms: int = 0  # Wall-clock time of the generation stage


@dataclass(frozen=True)
class ProposalResponse:
    """Normalized proposal. Immutable, so it is safe to cache and share."""

    id: str
    content: str
    title: str
    metadata: GenerationMetadata
    key_points: tuple[str, ...] = ()
    estimated_budget: str | None = None
    estimated_timeline: str | None = None
    estimated_hours: str | None = None
    template_id: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict for the API."""
        return {
            "id": self.id,
            "content": self.content,
            "title": self.title,
            "estimatedBudget": self.estimated_budget,
            "estimatedTimeline": self.estimated_timeline,
            "estimatedHours": self.estimated_hours,
            "keyPoints": list(self.key_points),
            "templateId": self.template_id,
            "createdAt": self.created_at.isoformat(),
            "metadata": {
                "model": self.metadata.model,
                "tokensUsed": self.metadata.tokens_used,
                "processingTime": self.metadata.processing_time_ms,
            },
        }


# ---------------------------------------------------------------------------
# Cache config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool = True
    ttl_minutes: int = 60
    max_entries: int = 100
