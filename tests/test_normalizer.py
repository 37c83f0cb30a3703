"""Tests for turning raw completions into ProposalResponse objects."""

from app.gateway.types import CompletionResult
from app.proposals.normalizer import (
    MAX_KEY_POINTS,
    derive_title,
    extract_budget,
    extract_hours,
    extract_key_points,
    extract_timeline,
    normalize_proposal,
)
from app.proposals.types import ProposalRequest

REQUEST = ProposalRequest(job_title="Landing Page", job_description="Build a responsive landing page")


class TestKeyPoints:
    def test_collects_bullets_and_numbered_items(self):
        content = "Intro\n- First point\n* **Second** point\n1. Third point\n2) Fourth point\nOutro"
        assert extract_key_points(content) == ["First point", "Second point", "Third point", "Fourth point"]

    def test_caps_at_max(self):
        content = "\n".join(f"- point {i}" for i in range(10))
        points = extract_key_points(content)
        assert len(points) == MAX_KEY_POINTS
        assert points[0] == "point 0"

    def test_no_list_means_no_points(self):
        assert extract_key_points("Just a paragraph of prose.") == []


class TestBudget:
    def test_single_amount(self):
        assert extract_budget("I estimate the cost at $2,500 for the full build.") == "$2,500"

    def test_range(self):
        assert extract_budget("Budget: $1,000 - $1,500 depending on scope") == "$1,000 - $1,500"

    def test_absent(self):
        assert extract_budget("We can discuss pricing on a call.") is None


class TestTimeline:
    def test_labelled_timeline_wins(self):
        content = "Phase one takes 2 days.\nTimeline: 3 weeks"
        assert extract_timeline(content) == "3 weeks"

    def test_to_complete_phrase(self):
        assert extract_timeline("It will take 4-6 weeks to complete.") == "4-6 weeks"

    def test_any_duration(self):
        assert extract_timeline("Delivery within 2 months of kickoff.") == "2 months"

    def test_absent(self):
        assert extract_timeline("We will agree milestones together.") is None


class TestHours:
    def test_labelled_hours(self):
        assert extract_hours("Estimated hours: 40") == "40 hours"

    def test_total_suffix(self):
        assert extract_hours("Roughly 30-35 hours total across phases.") == "30-35 hours"

    def test_absent(self):
        assert extract_hours("No estimate yet.") is None


class TestTitle:
    def test_uses_first_heading(self):
        assert derive_title("Intro\n## **Proposal:** Landing Page\n# Other", REQUEST) == "Proposal: Landing Page"

    def test_falls_back_to_job_title(self):
        assert derive_title("No heading here.", REQUEST) == "Landing Page"


class TestNormalizeProposal:
    def test_builds_full_response(self):
        completion = CompletionResult(
            text="  # Landing Page Proposal\n- Fast\n- Accessible\nTimeline: 3 weeks\nCost: $2,500\n",
            tokens_used=850,
            model="gpt-4o-mini-2024-07-18",
        )
        response = normalize_proposal(
            completion,
            REQUEST,
            processing_time_ms=1234,
            template_id="web-development-template",
            configured_model="gpt-4o-mini",
        )

        assert response.id.startswith("proposal_")
        assert response.content.startswith("# Landing Page Proposal")
        assert response.title == "Landing Page Proposal"
        assert response.key_points == ("Fast", "Accessible")
        assert response.estimated_budget == "$2,500"
        assert response.estimated_timeline == "3 weeks"
        assert response.estimated_hours is None
        assert response.template_id == "web-development-template"
        assert response.metadata.model == "gpt-4o-mini"
        assert response.metadata.tokens_used == 850
        assert response.metadata.processing_time_ms == 1234

    def test_falls_back_to_reported_model(self):
        completion = CompletionResult(text="Plain proposal", tokens_used=10, model="gpt-4o")
        response = normalize_proposal(completion, REQUEST, processing_time_ms=1)
        assert response.metadata.model == "gpt-4o"
        assert response.title == "Landing Page"
        assert response.key_points == ()

    def test_ids_are_unique(self):
        completion = CompletionResult(text="Plain proposal")
        ids = {normalize_proposal(completion, REQUEST, processing_time_ms=1).id for _ in range(50)}
        assert len(ids) == 50

    def test_to_dict_uses_camel_case(self):
        completion = CompletionResult(text="Plain proposal", tokens_used=10, model="gpt-4o")
        data = normalize_proposal(completion, REQUEST, processing_time_ms=7).to_dict()
        assert data["metadata"] == {"model": "gpt-4o", "tokensUsed": 10, "processingTime": 7}
        assert data["keyPoints"] == []
        assert data["estimatedBudget"] is None
