"""Pydantic schemas for the Proposal Generator API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class ProposalGenerateRequest(BaseModel):
    """Job posting submitted from the proposal form.

    Required fields are checked by the pipeline, not here, so a missing
    title or requirements comes back as `invalid_input` with a 400.
    """

    model_config = ConfigDict(extra="ignore")

    jobTitle: str | None = Field(None, max_length=300, description="Job or project title")
    projectTitle: str | None = Field(None, max_length=300, description="Alias of jobTitle used by the form")
    jobDescription: str | None = Field(None, max_length=20_000, description="Full job description")
    requirements: str | list[str] | None = Field(
        None,
        description="Free-text requirements or a list of discrete requirement strings",
    )
    projectType: str | None = Field(
        None,
        description="web-development | mobile-app | design | consulting | other",
    )
    clientBudget: str | None = Field(None, max_length=200)
    budget: str | None = Field(None, max_length=200, description="Alias of clientBudget")
    timeline: str | None = Field(None, max_length=200)
    additionalContext: str | None = Field(None, max_length=5000)
    additionalNotes: str | None = Field(None, max_length=5000, description="Alias of additionalContext")
    clientName: str | None = Field(None, max_length=200)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class ProposalMetadataOut(BaseModel):
    model: str
    tokensUsed: int
    processingTime: int = Field(description="Generation time in milliseconds")


class ProposalOut(BaseModel):
    id: str
    content: str
    title: str
    estimatedBudget: str | None = None
    estimatedTimeline: str | None = None
    estimatedHours: str | None = None
    keyPoints: list[str]
    templateId: str
    createdAt: str
    metadata: ProposalMetadataOut


class GenerateProposalResponse(BaseModel):
    proposal: ProposalOut


class TemplateSummary(BaseModel):
    id: str
    name: str
    projectType: str
    variables: list[str]
    updatedAt: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryAfter: float | None = None
