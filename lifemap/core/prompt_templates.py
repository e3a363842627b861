"""Default instruction templates and per-user overrides.

A template only supplies the instruction header of a prompt. The chains
always append the context block and the output contract themselves.
"""

import re
from typing import Any, Mapping
from uuid import UUID

from lifemap.core.logging import get_logger
from lifemap.db import custom_prompts as prompts_db

logger = get_logger(__name__)

PROMPT_TYPES = (
    "timeline_prediction",
    "mission_steps",
    "timeline_adaptation",
    "steps_adaptation",
)

PLACEHOLDERS = ("branch_name", "mission_text", "current_age", "past_events", "metrics")

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*\}\}")

DEFAULT_PROMPTS: dict[str, str] = {
    "timeline_prediction": """You are a thoughtful life coach helping someone explore their future possibilities.

Based on the theme "{{branch_name}}", the person's life mission, recent past, and their stated plans, generate 3-5 important milestone events that could realistically happen in their future on this life path.

Requirements:
- Events should be between age {{current_age}} and 100
- Each event should be a single concise sentence (max 15 words)
- Events should align with the theme, mission, and build upon past and stated plans
- Be realistic and thoughtful, not overly optimistic or pessimistic
- Spread events across different life stages (don't cluster them)
- Avoid years that already have content""",
    "mission_steps": """You are a strategic life planning expert helping someone break down their ultimate life mission into actionable steps.

Create a comprehensive, hierarchical breakdown of key steps needed to achieve this mission. Include:
- Major milestones (top-level steps)
- Sub-steps for each milestone (nested steps)
- Be specific and actionable
- Consider short-term, medium-term, and long-term actions
- Align with the success metrics provided

Generate 5-8 major steps with 2-5 substeps each. Be thoughtful and realistic.""",
    "timeline_adaptation": """You are a life planning AI assistant. A user just edited an event in their future timeline on the path "{{branch_name}}".

Analyze how this change affects the timeline and suggest updated predictions for years BEFORE and AFTER the edited event.
- Ensure predictions align with the mission, metrics, and the new context
- Keep predictions realistic and specific (max 15 words each)""",
    "steps_adaptation": """You are a life planning AI assistant. A user just edited a step in their mission plan for the path "{{branch_name}}".

Analyze how this change affects the overall plan and suggest updates to OTHER steps to maintain coherence and alignment with the mission.
- Ensure the flow makes logical sense: earlier steps should lead to later steps
- Keep suggestions specific and actionable
- Consider both main steps and substeps""",
}


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """
    Substitute {{name}} placeholders.

    Unknown placeholders are left untouched so a user's override never fails
    to render.
    """

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables or variables[name] is None:
            return match.group(0)
        return str(variables[name])

    return _PLACEHOLDER_RE.sub(_sub, template)


def resolve_template(user_id: UUID | None, prompt_type: str) -> str:
    """Return the user's active override for a prompt type, or the default."""
    default = DEFAULT_PROMPTS[prompt_type]
    if user_id is None:
        return default

    override = prompts_db.get_active_prompt(user_id, prompt_type)
    if override and override.strip():
        logger.debug(f"Using custom {prompt_type} prompt for user {user_id}")
        return override
    return default


def instruction_header(
    user_id: UUID | None,
    prompt_type: str,
    variables: Mapping[str, Any],
) -> str:
    """Resolve and render the instruction header for a flow."""
    return render_template(resolve_template(user_id, prompt_type), variables).strip()
