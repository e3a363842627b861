"""Re-adapt neighbouring AI steps after a user edits a mission step."""

import logging
from uuid import UUID

from lifemap.chains._timeline_context import branch_name_for, mission_metrics
from lifemap.chains.detect_language import resolve_language
from lifemap.core import adaptation_merge
from lifemap.core.access import require_owned_mission
from lifemap.core.config import get_settings
from lifemap.core.context_window import ContextWindow, build_step_window, render_step_sequence
from lifemap.core.errors import NotFoundError
from lifemap.core.languages import language_instruction
from lifemap.core.llm import ADAPTATION_OPTIONS, GenerationOracle
from lifemap.core.llm_parsing import parse_json_array
from lifemap.core.logging import get_logger, log_with_context
from lifemap.core.prompt_templates import instruction_header
from lifemap.core.provenance import mark_step_edited
from lifemap.core.schemas_generation import AdaptationResponse
from lifemap.db import mission_steps as steps_db

logger = get_logger(__name__)


def build_steps_adaptation_prompt(
    window: ContextWindow,
    branch_name: str,
    mission_text: str,
    metrics: list[str],
    header: str,
    language: str,
) -> str:
    """Assemble the adaptation prompt for an edited mission step."""
    candidates = "\n".join(f"- id={item.id} | {item.text}" for item in window.candidates) or "None"
    metrics_block = ", ".join(metrics) if metrics else "No metrics defined"
    lang_line = language_instruction(language)

    prompt = f"""{header}

**Context:**
- Branch/Possibility: {branch_name}
- Life Mission: {mission_text or "No mission defined"}
- Success Metrics: {metrics_block}

**Current Steps** ([USER] = user-controlled, [EDITED] = just edited, [AI] = AI-generated):
{render_step_sequence(window)}

**Recent Edit:**
"{window.edited.text}" [EDITED]

**Revisable Steps** (the ONLY steps you may change, all close to the edit):
{candidates}

IMPORTANT RULES:
1. DO NOT modify steps marked with [USER] or [EDITED].
2. ONLY return ids from the Revisable Steps list.
3. Ensure the flow makes logical sense: earlier steps should lead to later steps.
4. Keep suggestions concise, specific and actionable.
5. To remove a step that no longer makes sense, return it with "newText": "" (its substeps are removed too).
"""
    if lang_line:
        prompt += f"\n{lang_line}\n"

    prompt += """
Return ONLY a JSON array:
[
  {"stepId": "<id of a revisable step>", "newText": "<updated step text, or empty to remove>", "reason": "<why>"}
]

Return [] if no changes are needed."""
    return prompt


async def adapt_mission_step(
    mission_id: UUID,
    step_id: UUID,
    text: str,
    user_id: UUID,
    oracle: GenerationOracle,
    apply: bool = True,
    language: str | None = None,
) -> AdaptationResponse:
    """
    Store a user edit to a step and re-adapt neighbouring AI steps.

    With apply=False nothing is written: the eligibility-filtered suggestions
    are returned as a preview and the edited step is not marked.

    Raises:
        NotFoundError: Mission not owned by the caller, or step not in the mission
        TransportError, MalformedResponseError, ParseError: Oracle failures;
            the user's edit is already stored, no other step is changed
    """
    settings = get_settings()
    mission, timeline = require_owned_mission(mission_id, user_id)

    steps = steps_db.list_mission_steps(mission_id)
    stored = next((s for s in steps if str(s["id"]) == str(step_id)), None)
    if stored is None:
        raise NotFoundError("Step", step_id)

    edited = mark_step_edited(stored, text)
    if apply:
        adaptation_merge.persist_step_edit(edited)

    rows = [edited if str(s["id"]) == str(step_id) else s for s in steps]
    window = build_step_window(
        rows,
        str(step_id),
        before=settings.STEPS_WINDOW_BEFORE,
        after=settings.STEPS_WINDOW_AFTER,
    )

    log_with_context(
        logger,
        logging.INFO,
        "Adapting mission steps",
        mission_id=str(mission_id),
        step_id=str(step_id),
        eligible=len(window.eligible_ids),
        apply=apply,
    )

    if not window.has_eligible_items or not window.candidates:
        logger.info(f"No eligible AI steps around step {step_id}; skipping oracle call")
        return AdaptationResponse(
            edited_id=str(step_id),
            oracle_called=False,
            window_start=window.lower,
            window_end=window.upper,
            message="No AI steps to adapt",
        )

    branch_index = int(mission["branch_index"])
    branch_name = branch_name_for(UUID(str(timeline["id"])), branch_index)
    metrics = mission_metrics(mission_id)
    mission_text = (mission.get("mission_text") or "").strip()

    lang = await resolve_language(
        [mission_text, *metrics, text],
        oracle,
        hint=language,
    )
    header = instruction_header(
        user_id,
        "steps_adaptation",
        {
            "branch_name": branch_name,
            "mission_text": mission_text,
            "current_age": timeline.get("current_age"),
            "metrics": ", ".join(metrics),
        },
    )
    prompt = build_steps_adaptation_prompt(window, branch_name, mission_text, metrics, header, lang)

    raw = await oracle.generate(prompt, ADAPTATION_OPTIONS)
    logger.debug(f"Oracle step adaptation response: {raw[:300]}")

    parsed = parse_json_array(raw)
    suggestions = [adaptation_merge.normalize_suggestion(s) for s in parsed]
    plan = adaptation_merge.plan_step_merge(suggestions, window.eligible_ids, rows)

    if not apply:
        accepted = [s for s in suggestions if s not in plan.discarded]
        return AdaptationResponse(
            edited_id=str(step_id),
            oracle_called=True,
            discarded_count=len(plan.discarded),
            window_start=window.lower,
            window_end=window.upper,
            suggestions=accepted,
            message=f"{len(accepted)} suggested changes (not applied)",
        )

    result = adaptation_merge.apply_step_merge(plan, suggestions, mission_id)
    return AdaptationResponse(
        edited_id=str(step_id),
        oracle_called=True,
        applied_count=result.applied_count,
        discarded_count=result.discarded_count,
        window_start=window.lower,
        window_end=window.upper,
        suggestions=result.suggestions,
        message=(
            f"Updated {result.applied_count} related steps"
            if result.applied_count
            else "No updates needed"
        ),
    )
