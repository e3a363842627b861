"""Bulk generation of a hierarchical step plan for a life mission."""

import logging
from typing import Any
from uuid import UUID, uuid4

from lifemap.chains._timeline_context import branch_name_for, mission_metrics
from lifemap.chains.detect_language import resolve_language
from lifemap.core.access import require_owned_mission
from lifemap.core.errors import InvalidInputError
from lifemap.core.languages import language_instruction
from lifemap.core.llm import STEPS_OPTIONS, GenerationOracle
from lifemap.core.llm_parsing import parse_json_array
from lifemap.core.logging import get_logger, log_with_context
from lifemap.core.prompt_templates import instruction_header
from lifemap.core.provenance import Provenance, step_provenance
from lifemap.core.schemas_generation import StepsResponse
from lifemap.db import mission_steps as steps_db

logger = get_logger(__name__)


def build_steps_prompt(mission_text: str, metrics: list[str], header: str, language: str) -> str:
    metrics_block = "\n".join(f"- {m}" for m in metrics) if metrics else "No specific metrics defined"
    lang_line = language_instruction(language)

    prompt = f"""{header}

**Life Mission:**
{mission_text}

**Success Metrics:**
{metrics_block}
"""
    if lang_line:
        prompt += f"\n{lang_line}\n"

    prompt += """
Return ONLY a JSON array:
[
  {
    "step": "Main step description",
    "substeps": ["Substep 1", "Substep 2", "Substep 3"]
  }
]"""
    return prompt


def _substep_text(raw: Any) -> str:
    if isinstance(raw, dict):
        raw = raw.get("step") or raw.get("text") or ""
    return str(raw or "").strip()


def build_step_rows(mission_id: UUID, parsed: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Flatten a generated step tree into insertable rows.

    Parents come first so substeps can reference them; display_order starts
    at 0 within each sibling level.
    """
    parents: list[dict[str, Any]] = []
    children: list[dict[str, Any]] = []

    for item in parsed:
        text = str(item.get("step") or item.get("text") or "").strip()
        if not text:
            continue

        parent_id = str(uuid4())
        parents.append(
            {
                "id": parent_id,
                "mission_id": str(mission_id),
                "parent_step_id": None,
                "step_text": text,
                "display_order": len(parents),
                "is_ai_generated": True,
                "is_user_edited": False,
            }
        )

        substeps = item.get("substeps") or []
        if not isinstance(substeps, list):
            continue
        order = 0
        for raw_sub in substeps:
            sub_text = _substep_text(raw_sub)
            if not sub_text:
                continue
            children.append(
                {
                    "id": str(uuid4()),
                    "mission_id": str(mission_id),
                    "parent_step_id": parent_id,
                    "step_text": sub_text,
                    "display_order": order,
                    "is_ai_generated": True,
                    "is_user_edited": False,
                }
            )
            order += 1

    return parents + children


def _replaceable_step_ids(steps: list[dict[str, Any]]) -> list[UUID]:
    """Untouched AI steps, minus AI parents that still hold user-owned substeps."""
    protected_parents = {
        str(s["parent_step_id"])
        for s in steps
        if s.get("parent_step_id") and step_provenance(s) is not Provenance.AI_GENERATED
    }
    return [
        UUID(str(s["id"]))
        for s in steps
        if step_provenance(s) is Provenance.AI_GENERATED and str(s["id"]) not in protected_parents
    ]


async def generate_mission_steps(
    mission_id: UUID,
    user_id: UUID,
    oracle: GenerationOracle,
    language: str | None = None,
) -> StepsResponse:
    """
    Replace a mission's untouched AI steps with a freshly generated plan.

    Raises:
        NotFoundError: Mission not owned by the caller
        InvalidInputError: Mission text is empty
        TransportError, MalformedResponseError, ParseError: Oracle failures;
            nothing is written in that case
    """
    mission, timeline = require_owned_mission(mission_id, user_id)

    mission_text = (mission.get("mission_text") or "").strip()
    if not mission_text:
        raise InvalidInputError("Please enter a mission first")

    metrics = mission_metrics(mission_id)
    branch_name = branch_name_for(UUID(str(timeline["id"])), int(mission["branch_index"]))

    lang = await resolve_language([mission_text, *metrics], oracle, hint=language)
    header = instruction_header(
        user_id,
        "mission_steps",
        {
            "branch_name": branch_name,
            "mission_text": mission_text,
            "current_age": timeline.get("current_age"),
            "metrics": ", ".join(metrics),
        },
    )
    prompt = build_steps_prompt(mission_text, metrics, header, lang)

    log_with_context(
        logger,
        logging.INFO,
        "Generating mission steps",
        mission_id=str(mission_id),
        metrics=len(metrics),
        language=lang,
    )

    raw = await oracle.generate(prompt, STEPS_OPTIONS)
    parsed = parse_json_array(raw)
    if not parsed:
        logger.info(f"Oracle returned no steps for mission {mission_id}")
        return StepsResponse(steps=[], language=lang)

    rows = build_step_rows(mission_id, list(parsed))

    existing = steps_db.list_mission_steps(mission_id)
    deleted = steps_db.delete_ai_steps(mission_id, _replaceable_step_ids(existing))
    inserted = steps_db.insert_steps(rows)

    logger.info(f"Replaced {deleted} AI steps with {len(inserted)} for mission {mission_id}")
    return StepsResponse(steps=inserted, language=lang)
