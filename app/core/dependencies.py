from functools import lru_cache

from app.proposals.service import ProposalService


@lru_cache
def get_proposal_service() -> ProposalService:
    """Process-wide service; its limiter and cache live until restart.

    Tests replace this via app.dependency_overrides.
    """
    return ProposalService.from_settings()
