"""API endpoints for the Proposal Generator.

Provides:
  - POST /proposals/generate — draft a proposal from a job posting
  - GET /proposals/templates — active templates (no prompt text)
  - GET /proposals/status — shared rate limit and cache state

Pipeline errors are raised as ProposalError and rendered by the
application-level handler in app.main.
"""

import logging

from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.dependencies import get_proposal_service
from app.core.rate_limit import limiter
from app.proposals.service import ProposalService
from app.schemas.proposal import (
    ErrorResponse,
    GenerateProposalResponse,
    ProposalGenerateRequest,
    TemplateSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proposals", tags=["proposals"])


@router.post(
    "/generate",
    response_model=GenerateProposalResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
@limiter.limit(settings.http_generate_limit)
async def generate_proposal(
    request: Request,
    body: ProposalGenerateRequest,
    service: ProposalService = Depends(get_proposal_service),
):
    """Generate a proposal draft for a job posting.

    `jobTitle` (or `projectTitle`) and `requirements` (or
    `jobDescription`) are required. Identical requests within the cache
    TTL return the same proposal without calling the model again.
    """
    proposal = await service.generate_from_payload(body.model_dump(exclude_none=True))
    return {"proposal": proposal.to_dict()}


@router.get("/templates", response_model=list[TemplateSummary])
async def list_templates(service: ProposalService = Depends(get_proposal_service)):
    """List the active template for each project category."""
    return [t.to_summary_dict() for t in service.templates.list_templates()]


@router.get("/status")
async def proposal_status(service: ProposalService = Depends(get_proposal_service)):
    """Current rate-limit windows, cache statistics and model."""
    return service.status()
