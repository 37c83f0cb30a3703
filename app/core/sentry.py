"""Sentry error tracking integration.

Enabled only when SENTRY_DSN is set. Job postings and generated proposals
are client data, so events are scrubbed of request bodies and of any
prompt text before they leave the process.
"""

import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# Keys that may carry prompt or proposal text in event extras
_SENSITIVE_KEYS = frozenset({"system_prompt", "user_prompt", "prompt", "content", "job_description"})


def scrub_event(event: dict, hint: dict) -> dict:
    """before_send hook: drop request bodies and prompt-bearing extras."""
    request = event.get("request")
    if isinstance(request, dict):
        request.pop("data", None)

    extra = event.get("extra")
    if isinstance(extra, dict):
        for key in _SENSITIVE_KEYS & extra.keys():
            extra[key] = "[scrubbed]"
    return event


def init_sentry() -> None:
    if not settings.sentry_dsn:
        logger.debug("Sentry disabled (no DSN)")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.httpx import HttpxIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        release="proposal-generator@1.0.0",
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        max_request_body_size="never",
        before_send=scrub_event,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            HttpxIntegration(),
        ],
    )
    sentry_sdk.set_tag("openai_model", settings.openai_model)
    logger.info("Sentry initialized (env=%s)", settings.app_env)
