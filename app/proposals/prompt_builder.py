"""Prompt Builder — fills a proposal template from a request.

Template variables are sourced from request fields by a fixed mapping:

    jobTitle          → job_title            (required)
    jobDescription    → job_description      (required)
    projectType       → category value       (required)
    requirements      → "- item" lines       (optional)
    clientBudget      → budget               (optional)
    timeline          → timeline             (optional)
    additionalContext → additional_context   (optional)
    clientName        → client_name          (optional)

Optional variables whose field is absent become an empty string. Required
variables whose field is blank raise MissingVariablesError.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass

from app.proposals.errors import MissingVariablesError
from app.proposals.types import ProposalRequest, ProposalTemplate

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

# Rough estimate: 1 token ≈ 4 characters
CHARS_PER_TOKEN = 4


def _bullets(items: tuple[str, ...]) -> str:
    return "\n".join(f"- {item.strip()}" for item in items if item and item.strip())


# variable name → (extractor, required)
VARIABLE_SOURCES: dict[str, tuple[Callable[[ProposalRequest], str | None], bool]] = {
    "jobTitle": (lambda r: r.job_title, True),
    "jobDescription": (lambda r: r.job_description, True),
    "projectType": (lambda r: r.category.value, True),
    "requirements": (lambda r: _bullets(r.requirements), False),
    "clientBudget": (lambda r: r.budget, False),
    "timeline": (lambda r: r.timeline, False),
    "additionalContext": (lambda r: r.additional_context, False),
    "clientName": (lambda r: r.client_name, False),
}

KNOWN_VARIABLES = frozenset(VARIABLE_SOURCES)


@dataclass(frozen=True)
class BuiltPrompt:
    system_prompt: str
    user_prompt: str

    @property
    def char_count(self) -> int:
        return len(self.system_prompt) + len(self.user_prompt)


def estimate_tokens(prompt: BuiltPrompt, max_tokens: int) -> int:
    """Input tokens (chars / 4, rounded up) plus the full output allowance."""
    return math.ceil(prompt.char_count / CHARS_PER_TOKEN) + max_tokens


class PromptBuilder:
    """Resolves template variables against a request and substitutes them."""

    def resolve_variables(self, template: ProposalTemplate, request: ProposalRequest) -> dict[str, str]:
        values: dict[str, str] = {}
        missing: list[str] = []

        for name in template.variables:
            extractor, required = VARIABLE_SOURCES[name]
            value = (extractor(request) or "").strip()
            if required and not value:
                missing.append(name)
            values[name] = value

        if missing:
            raise MissingVariablesError(missing)
        return values

    def build(self, template: ProposalTemplate, request: ProposalRequest) -> BuiltPrompt:
        """Produce the system and user prompts for `request`."""
        values = self.resolve_variables(template, request)
        return BuiltPrompt(
            system_prompt=self.render(template.system_prompt, values),
            user_prompt=self.render(template.user_prompt_template, values),
        )

    @staticmethod
    def render(text: str, values: dict[str, str]) -> str:
        """Single-pass substitution; inserted values are never re-expanded."""
        # Registration guarantees every placeholder is declared
        return PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], text)
