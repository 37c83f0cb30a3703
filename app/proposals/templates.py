"""Template Registry — one active proposal template per project category.

Templates are validated when registered: every {placeholder} used in the
system or user prompt must be declared in the template's variables, and
every declared variable must be one the PromptBuilder knows how to fill.
Per-request building therefore never meets an unknown placeholder.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone

from app.proposals.errors import TemplateNotFoundError, TemplateValidationError
from app.proposals.prompt_builder import KNOWN_VARIABLES, PLACEHOLDER_PATTERN
from app.proposals.types import ProjectCategory, ProposalTemplate

logger = logging.getLogger(__name__)

# Placeholders every user prompt must contain
REQUIRED_USER_VARIABLES = ("jobTitle", "jobDescription")

_STANDARD_VARIABLES = frozenset(
    {"jobTitle", "jobDescription", "clientBudget", "timeline", "requirements", "additionalContext"}
)

_JOB_BLOCK = """Job Title: {jobTitle}
Job Description: {jobDescription}
Client Budget: {clientBudget}
Timeline: {timeline}
Requirements:
{requirements}
Additional Context: {additionalContext}"""


def extract_variables(text: str) -> set[str]:
    """Return the placeholder names referenced in `text`."""
    return set(PLACEHOLDER_PATTERN.findall(text))


def validate_template(template: ProposalTemplate) -> list[str]:
    """Return a list of problems; empty means the template can be registered."""
    problems: list[str] = []

    if not template.id.strip():
        problems.append("Template id is required")
    if not template.name.strip():
        problems.append("Template name is required")
    if not template.system_prompt.strip():
        problems.append("System prompt is required")
    if not template.user_prompt_template.strip():
        problems.append("User prompt template is required")

    referenced = extract_variables(template.system_prompt) | extract_variables(template.user_prompt_template)
    undeclared = referenced - template.variables
    if undeclared:
        problems.append(f"Undeclared placeholders: {', '.join(sorted(undeclared))}")

    unknown = template.variables - KNOWN_VARIABLES
    if unknown:
        problems.append(f"Unknown variables: {', '.join(sorted(unknown))}")

    user_vars = extract_variables(template.user_prompt_template)
    for name in REQUIRED_USER_VARIABLES:
        if name not in user_vars:
            problems.append(f"User prompt template must include {{{name}}}")

    return problems


class TemplateRegistry:
    """Maps each ProjectCategory to its active ProposalTemplate.

    Usage:
        registry = TemplateRegistry.with_defaults()
        template = registry.resolve(ProjectCategory.DESIGN)
    """

    def __init__(self, templates: list[ProposalTemplate] | None = None):
        self._by_category: dict[ProjectCategory, ProposalTemplate] = {}
        for template in templates or []:
            self.register(template)

    @classmethod
    def with_defaults(cls) -> TemplateRegistry:
        return cls(list(DEFAULT_TEMPLATES))

    def register(self, template: ProposalTemplate) -> ProposalTemplate:
        """Validate and activate `template`, replacing any for the same category."""
        problems = validate_template(template)
        if problems:
            raise TemplateValidationError(template.id, problems)

        existing = self._by_category.get(template.category)
        if existing is not None:
            if existing.id == template.id:
                template = replace(template, created_at=existing.created_at, updated_at=datetime.now(timezone.utc))
            logger.info(
                "Template for %s replaced: %s -> %s",
                template.category.value,
                existing.id,
                template.id,
            )

        self._by_category[template.category] = template
        return template

    def unregister(self, category: ProjectCategory) -> bool:
        """Remove the template for `category`. Returns whether one existed."""
        return self._by_category.pop(category, None) is not None

    def resolve(self, category: ProjectCategory) -> ProposalTemplate:
        """Return the active template or raise TemplateNotFoundError."""
        template = self._by_category.get(category)
        if template is None:
            raise TemplateNotFoundError(category.value)
        return template

    def get(self, template_id: str) -> ProposalTemplate | None:
        for template in self._by_category.values():
            if template.id == template_id:
                return template
        return None

    def list_templates(self) -> list[ProposalTemplate]:
        return list(self._by_category.values())

    def categories(self) -> list[ProjectCategory]:
        return list(self._by_category)


# ---------------------------------------------------------------------------
# Default templates
# ---------------------------------------------------------------------------

DEFAULT_TEMPLATES: tuple[ProposalTemplate, ...] = (
    ProposalTemplate(
        id="web-development-template",
        name="Web Development Template",
        category=ProjectCategory.WEB_DEVELOPMENT,
        system_prompt=(
            "You are an experienced freelance web developer writing a proposal for a {projectType} project.\n"
            "You work with modern web technologies such as React, Next.js, TypeScript, Node.js and "
            "relational and document databases.\n"
            "Write a professional, personalized proposal that shows you understand the client's needs. "
            "Be clear about timeline and budget."
        ),
        user_prompt_template=(
            "Write a professional proposal for the following job:\n\n"
            f"{_JOB_BLOCK}\n\n"
            "Structure the proposal with:\n"
            "1. A greeting that reflects their specific needs\n"
            "2. Relevant experience\n"
            "3. Project approach and methodology\n"
            "4. Recommended technology stack\n"
            "5. Timeline breakdown\n"
            "6. Budget considerations\n"
            "7. Next steps\n\n"
            "Keep the tone professional but approachable."
        ),
        variables=_STANDARD_VARIABLES | {"projectType"},
    ),
    ProposalTemplate(
        id="mobile-app-template",
        name="Mobile App Development Template",
        category=ProjectCategory.MOBILE_APP,
        system_prompt=(
            "You are an experienced mobile app developer writing a proposal for a mobile application project.\n"
            "You build for iOS and Android with React Native, Flutter, Swift and Kotlin, plus backend services.\n"
            "Show that you understand mobile performance, platform guidelines and user experience."
        ),
        user_prompt_template=(
            "Write a professional mobile app development proposal for:\n\n"
            f"{_JOB_BLOCK}\n\n"
            "Structure the proposal with:\n"
            "1. Understanding of their app vision\n"
            "2. Recommended stack (native or cross-platform)\n"
            "3. UX and design considerations\n"
            "4. Development phases and milestones\n"
            "5. App store submission and post-launch support\n"
            "6. Timeline and budget breakdown"
        ),
        variables=_STANDARD_VARIABLES,
    ),
    ProposalTemplate(
        id="design-template",
        name="UI/UX Design Template",
        category=ProjectCategory.DESIGN,
        system_prompt=(
            "You are an experienced UI/UX designer writing a proposal for a design project.\n"
            "You work across user research, wireframing, prototyping, visual design and design systems."
        ),
        user_prompt_template=(
            "Write a professional UI/UX design proposal for:\n\n"
            f"{_JOB_BLOCK}\n\n"
            "Structure the proposal with:\n"
            "1. Understanding of their design challenges and users\n"
            "2. Research and discovery\n"
            "3. Wireframes and information architecture\n"
            "4. Visual design, prototyping and testing\n"
            "5. Deliverables, revisions and timeline"
        ),
        variables=_STANDARD_VARIABLES,
    ),
    ProposalTemplate(
        id="consulting-template",
        name="Technical Consulting Template",
        category=ProjectCategory.CONSULTING,
        system_prompt=(
            "You are an experienced technical consultant writing a proposal for a consulting engagement.\n"
            "You cover system architecture, code review, performance optimization and technical strategy."
        ),
        user_prompt_template=(
            "Write a professional technical consulting proposal for:\n\n"
            f"{_JOB_BLOCK}\n\n"
            "Structure the proposal with:\n"
            "1. Understanding of their technical challenges\n"
            "2. Assessment and discovery approach\n"
            "3. Recommendations and implementation strategy\n"
            "4. Knowledge transfer and documentation\n"
            "5. Expected outcomes, timeline and budget"
        ),
        variables=_STANDARD_VARIABLES,
    ),
    ProposalTemplate(
        id="general-template",
        name="General Project Template",
        category=ProjectCategory.OTHER,
        system_prompt=(
            "You are an experienced freelancer writing a proposal for a project.\n"
            "Show that you understand the client's needs and can deliver results."
        ),
        user_prompt_template=(
            "Write a professional proposal for:\n\n"
            f"{_JOB_BLOCK}\n\n"
            "Structure the proposal with:\n"
            "1. Understanding of the requirements\n"
            "2. Relevant experience\n"
            "3. Approach, phases and deliverables\n"
            "4. Timeline and milestones\n"
            "5. Budget considerations"
        ),
        variables=_STANDARD_VARIABLES,
    ),
)
