"""Tests for the proposal HTTP endpoints."""

import pytest

from app.gateway.types import GatewayError, GatewayErrorKind, RateLimitConfig
from app.proposals.types import ProjectCategory

GENERATE_URL = "/api/v1/proposals/generate"

PAYLOAD = {
    "projectTitle": "Landing Page",
    "requirements": "Build a responsive landing page",
    "projectType": "web-development",
}


class TestGenerateEndpoint:
    @pytest.mark.asyncio
    async def test_generate_success(self, client, gateway):
        resp = await client.post(GENERATE_URL, json=PAYLOAD)
        assert resp.status_code == 200
        proposal = resp.json()["proposal"]
        assert proposal["id"].startswith("proposal_")
        assert proposal["title"] == "Responsive Landing Page Proposal"
        assert proposal["estimatedBudget"] == "$2,500"
        assert proposal["estimatedTimeline"] == "3 weeks"
        assert proposal["templateId"] == "web-development-template"
        assert proposal["metadata"]["model"] == "gpt-4o-mini"
        assert proposal["metadata"]["tokensUsed"] == 850
        assert len(proposal["keyPoints"]) == 5
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_repeat_request_returns_cached_proposal(self, client, gateway):
        first = await client.post(GENERATE_URL, json=PAYLOAD)
        second = await client.post(GENERATE_URL, json={**PAYLOAD, "projectTitle": "Landing Page  "})
        assert second.status_code == 200
        assert second.json()["proposal"]["id"] == first.json()["proposal"]["id"]
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_missing_fields_returns_400(self, client, gateway):
        resp = await client.post(GENERATE_URL, json={"projectType": "design"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "invalid_input"
        assert body["message"] == "Missing required fields: jobTitle, requirements"
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_requirements_list_without_description(self, client, gateway):
        resp = await client.post(
            GENERATE_URL,
            json={
                "jobTitle": "Landing Page",
                "requirements": ["Responsive layout", "Contact form"],
                "projectType": "web-development",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["proposal"]["templateId"] == "web-development-template"
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_unknown_project_type_returns_400(self, client):
        resp = await client.post(GENERATE_URL, json={**PAYLOAD, "projectType": "gardening"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_malformed_body_returns_400(self, client):
        resp = await client.post(GENERATE_URL, json={**PAYLOAD, "requirements": {"a": 1}})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_rate_limited_returns_503_with_retry_after(self, client, service):
        service.rate_limiter.config = RateLimitConfig(max_requests_per_minute=1, max_tokens_per_minute=100_000)
        first = await client.post(GENERATE_URL, json=PAYLOAD)
        assert first.status_code == 200

        resp = await client.post(GENERATE_URL, json={**PAYLOAD, "projectTitle": "Another Page"})
        assert resp.status_code == 503
        assert resp.headers["Retry-After"] == "60"
        body = resp.json()
        assert body["error"] == "rate_limited"
        assert body["retryAfter"] == 60.0

    @pytest.mark.asyncio
    async def test_missing_template_returns_500(self, client, service):
        service.templates.unregister(ProjectCategory.WEB_DEVELOPMENT)
        resp = await client.post(GENERATE_URL, json=PAYLOAD)
        assert resp.status_code == 500
        assert resp.json()["error"] == "template_not_found"

    @pytest.mark.asyncio
    async def test_unconfigured_gateway_returns_503(self, client, gateway):
        gateway.configured = False
        resp = await client.post(GENERATE_URL, json=PAYLOAD)
        assert resp.status_code == 503
        assert resp.json()["error"] == "gateway_not_configured"

    @pytest.mark.asyncio
    async def test_provider_rejection_returns_502(self, client, gateway):
        gateway.outcomes = [GatewayError("content policy", GatewayErrorKind.INVALID)]
        resp = await client.post(GENERATE_URL, json=PAYLOAD)
        assert resp.status_code == 502
        body = resp.json()
        assert body["error"] == "gateway_invalid"
        assert body["message"].startswith("Failed to generate proposal:")


class TestTemplatesAndStatus:
    @pytest.mark.asyncio
    async def test_list_templates(self, client):
        resp = await client.get("/api/v1/proposals/templates")
        assert resp.status_code == 200
        templates = resp.json()
        assert {t["projectType"] for t in templates} == {
            "web-development",
            "mobile-app",
            "design",
            "consulting",
            "other",
        }
        assert all("system_prompt" not in t for t in templates)

    @pytest.mark.asyncio
    async def test_status_reflects_usage(self, client):
        await client.post(GENERATE_URL, json=PAYLOAD)
        resp = await client.get("/api/v1/proposals/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["model"] == "gpt-4o-mini"
        assert data["rate_limit"]["current_rpm"] == 1
        assert data["cache"]["size"] == 1


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "openai_configured": True, "model": "gpt-4o-mini"}

    @pytest.mark.asyncio
    async def test_llm_health_ok(self, client):
        resp = await client.get("/api/v1/health/llm")
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_llm_health_unavailable(self, client, gateway):
        gateway.outcomes = [GatewayError("down", GatewayErrorKind.TRANSIENT)]
        resp = await client.get("/api/v1/health/llm")
        assert resp.status_code == 503
        assert resp.json() == {"status": "unavailable"}

    @pytest.mark.asyncio
    async def test_metrics(self, client):
        await client.get("/api/v1/health")
        resp = await client.get("/metrics")
        assert resp.status_code == 200
        assert "http_requests_total" in resp.text
