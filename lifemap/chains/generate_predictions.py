"""Bulk generation of future milestone predictions for one branch."""

import logging
from typing import Any
from uuid import UUID

from lifemap.chains._timeline_context import BranchContext, load_branch_context
from lifemap.chains.detect_language import resolve_language
from lifemap.core.access import require_owned_timeline
from lifemap.core.languages import language_instruction
from lifemap.core.llm import PREDICTION_OPTIONS, GenerationOracle
from lifemap.core.llm_parsing import parse_json_array
from lifemap.core.logging import get_logger, log_with_context
from lifemap.core.prompt_templates import instruction_header
from lifemap.core.provenance import Provenance, event_provenance
from lifemap.core.schemas_generation import PredictionsResponse
from lifemap.core.schemas_timeline import MAX_AGE
from lifemap.db import events as events_db

logger = get_logger(__name__)


def build_predictions_prompt(
    context: BranchContext,
    user_plans: list[dict[str, Any]],
    header: str,
    language: str,
) -> str:
    """Assemble the predictions prompt for a branch."""
    plans_block = (
        "\n".join(f"Year {e['year']}: {e['event_text']}" for e in user_plans)
        if user_plans
        else "No plans specified yet"
    )
    taken = ", ".join(str(e["year"]) for e in user_plans) or "None"
    lang_line = language_instruction(language)

    prompt = f"""{header}

**Life Path Theme:** {context.branch_name}
**Current Age:** {context.current_age}

**Life Mission:**
{context.mission_block}

**Success Metrics:** {context.metrics_block}

**Recent Past (Y{context.past_start}-Y{context.current_age}):**
{context.past_block}

**User's Plans for This Path:**
{plans_block}

**Years already taken (do not use):** {taken}
"""
    if lang_line:
        prompt += f"\n{lang_line}\n"

    prompt += f"""
Return ONLY a JSON array of 3-5 events, with years between {context.current_age} and {MAX_AGE}:
[
  {{"year": <year>, "event": "<concise event description>"}}
]"""
    return prompt


def _select_predictions(
    parsed: list[dict[str, Any]],
    current_age: int,
    taken_years: set[int],
) -> dict[int, str]:
    """Keep one prediction per valid, free year; the first answer for a year wins."""
    selected: dict[int, str] = {}
    for item in parsed:
        try:
            year = int(item.get("year"))
        except (TypeError, ValueError):
            logger.warning(f"Skipping prediction without a usable year: {item}")
            continue

        text = str(item.get("event") or item.get("newText") or "").strip()
        if not text:
            continue
        if not current_age <= year <= MAX_AGE:
            logger.warning(f"Skipping prediction outside [{current_age}, {MAX_AGE}]: year {year}")
            continue
        if year in taken_years or year in selected:
            continue
        selected[year] = text

    return selected


async def generate_branch_predictions(
    timeline_id: UUID,
    branch_index: int,
    user_id: UUID,
    oracle: GenerationOracle,
    language: str | None = None,
) -> PredictionsResponse:
    """
    Replace a branch's untouched AI predictions with a fresh set.

    User entries and user-edited predictions are never touched, and a returned
    year they already occupy is dropped. Re-running the flow is safe: it always
    starts by deleting the AI-owned subset.

    Args:
        timeline_id: Timeline UUID
        branch_index: Branch index (0-4)
        user_id: Authenticated caller
        oracle: Generation oracle
        language: Optional language hint

    Returns:
        PredictionsResponse with the inserted rows

    Raises:
        NotFoundError: Timeline not owned by the caller
        TransportError, MalformedResponseError, ParseError: Oracle failures;
            nothing is written in that case
    """
    timeline = require_owned_timeline(timeline_id, user_id)
    context = load_branch_context(timeline, branch_index)

    branch_events = events_db.list_branch_events(timeline_id, branch_index)
    user_owned = [e for e in branch_events if event_provenance(e) is not Provenance.AI_GENERATED]

    lang = await resolve_language(
        [
            *(e["event_text"] for e in context.past_events),
            context.mission_text,
            *(e.get("event_text") for e in user_owned),
        ],
        oracle,
        hint=language,
    )
    header = instruction_header(
        user_id,
        "timeline_prediction",
        {
            "branch_name": context.branch_name,
            "mission_text": context.mission_block,
            "current_age": context.current_age,
            "past_events": context.past_block,
            "metrics": context.metrics_block,
        },
    )
    prompt = build_predictions_prompt(context, user_owned, header, lang)

    log_with_context(
        logger,
        logging.INFO,
        "Generating branch predictions",
        timeline_id=str(timeline_id),
        branch_index=branch_index,
        language=lang,
    )

    raw = await oracle.generate(prompt, PREDICTION_OPTIONS)
    parsed = parse_json_array(raw)
    if not parsed:
        logger.info(f"Oracle returned no predictions for branch {branch_index}")
        return PredictionsResponse(predictions=[], language=lang)

    selected = _select_predictions(
        list(parsed),
        context.current_age,
        {int(e["year"]) for e in user_owned},
    )

    deleted = events_db.delete_ai_predictions(timeline_id, branch_index)
    inserted = events_db.insert_events(
        [
            {
                "timeline_id": str(timeline_id),
                "branch_index": branch_index,
                "year": year,
                "event_text": text,
                "is_prediction": True,
                "is_user_edited": False,
            }
            for year, text in sorted(selected.items())
        ]
    )

    logger.info(
        f"Replaced {deleted} predictions with {len(inserted)} on branch {branch_index}"
    )
    return PredictionsResponse(predictions=inserted, language=lang)
