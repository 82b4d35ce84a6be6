"""Templates shipped with bulkflow.

Their actions are simulated; applications replace them with templates whose
actions call the real backend.
"""

from __future__ import annotations

from ..contracts import WorkflowStep, WorkflowTemplate
from ..tools import SimulationOptions, simulate_action


def _step(step_id: str, name: str, description: str, **kwargs) -> WorkflowStep:
    return WorkflowStep(
        id=step_id,
        name=name,
        description=description,
        action=simulate_action,
        options=SimulationOptions(),
        **kwargs,
    )


BULK_APPLY_OPPORTUNITIES = WorkflowTemplate(
    id="bulk-apply-opportunities",
    name="Bulk Apply to Opportunities",
    description="Apply to multiple job opportunities with customized applications",
    category="opportunities",
    steps=[
        _step(
            "validate-eligibility",
            "Validate Eligibility",
            "Check if user meets requirements for each opportunity",
            estimated_duration=30,
            retryable=True,
        ),
        _step(
            "customize-applications",
            "Customize Applications",
            "Tailor application content for each opportunity",
            estimated_duration=60,
            can_skip=True,
        ),
        _step(
            "submit-applications",
            "Submit Applications",
            "Submit applications to employers",
            estimated_duration=45,
            retryable=True,
        ),
        _step(
            "schedule-followups",
            "Schedule Follow-ups",
            "Set up automatic follow-up reminders",
            estimated_duration=15,
            can_skip=True,
        ),
    ],
)

BULK_PORTFOLIO_OPTIMIZATION = WorkflowTemplate(
    id="bulk-portfolio-optimization",
    name="Portfolio Optimization",
    description="Optimize multiple portfolio items for better visibility",
    category="portfolio",
    steps=[
        _step(
            "analyze-performance",
            "Analyze Performance",
            "Analyze current performance metrics",
            estimated_duration=45,
        ),
        _step(
            "optimize-content",
            "Optimize Content",
            "Apply SEO and content optimizations",
            estimated_duration=90,
        ),
        _step(
            "update-tags",
            "Update Tags",
            "Update tags and categories for better discoverability",
            estimated_duration=20,
        ),
    ],
)

BULK_SKILL_VERIFICATION = WorkflowTemplate(
    id="bulk-skill-verification",
    name="Skill Verification",
    description="Verify and endorse multiple skills",
    category="skills",
    steps=[
        _step(
            "request-endorsements",
            "Request Endorsements",
            "Send endorsement requests to connections",
            estimated_duration=30,
        ),
        _step(
            "schedule-assessments",
            "Schedule Assessments",
            "Schedule skill assessment tests",
            estimated_duration=25,
            can_skip=True,
        ),
        _step(
            "update-skill-levels",
            "Update Skill Levels",
            "Update skill proficiency levels",
            estimated_duration=15,
        ),
    ],
)

DEFAULT_TEMPLATES = [
    BULK_APPLY_OPPORTUNITIES,
    BULK_PORTFOLIO_OPTIMIZATION,
    BULK_SKILL_VERIFICATION,
]
