"""Re-adapt nearby AI predictions after a user edits a branch event.

Flow: apply the user edit in memory, build the year window around it, ask the
oracle for revisions of eligible predictions only, then merge the answer and
persist the edited event as user-owned.
"""

import logging
from typing import Any
from uuid import UUID, uuid4

from lifemap.chains._timeline_context import BranchContext, load_branch_context
from lifemap.chains.detect_language import resolve_language
from lifemap.core import adaptation_merge
from lifemap.core.access import require_owned_timeline
from lifemap.core.config import get_settings
from lifemap.core.context_window import ContextWindow, build_event_window, render_event_sequence
from lifemap.core.errors import NotFoundError
from lifemap.core.languages import language_instruction
from lifemap.core.llm import ADAPTATION_OPTIONS, GenerationOracle
from lifemap.core.llm_parsing import parse_json_array
from lifemap.core.logging import get_logger, log_with_context
from lifemap.core.prompt_templates import instruction_header
from lifemap.core.provenance import Provenance, event_provenance, mark_event_edited
from lifemap.core.schemas_generation import AdaptationResponse
from lifemap.db import events as events_db

logger = get_logger(__name__)


def _year_ranges(window: ContextWindow) -> str:
    year = window.edited.year or 0
    return (
        f"Years {window.lower}-{year - 1} (before) and "
        f"Years {year + 1}-{window.upper} (after)"
    )


def build_timeline_adaptation_prompt(
    window: ContextWindow,
    context: BranchContext,
    header: str,
    language: str,
) -> str:
    """Assemble the adaptation prompt for an edited branch event."""
    edited = window.edited
    candidates = "\n".join(
        f"- id={item.id} | Year {item.year}: {item.text}" for item in window.candidates
    ) or "None"
    lang_line = language_instruction(language)

    prompt = f"""{header}

**Context:**
- Branch/Possibility: {context.branch_name}
- Current Age: {context.current_age}
- Life Mission: {context.mission_block}
- Success Metrics: {context.metrics_block}
- Past Years (Y{context.past_start}-Y{context.current_age}):
{context.past_block}

**Branch Timeline** ([USER] = written by the user, [EDITED] = just edited, [AI] = AI prediction):
{render_event_sequence(window)}

**Recent Edit:**
- Year {edited.year}: {edited.text} [EDITED]

**Revisable Predictions** (the ONLY existing items you may change):
{candidates}

IMPORTANT RULES:
1. NEVER modify or return items marked [USER] or [EDITED].
2. Only revise [AI] predictions inside {_year_ranges(window)}.
3. You may add a new prediction for an EMPTY year inside those ranges; omit "id" for it.
4. Keep predictions realistic and specific (max 15 words each).
5. Leaving a prediction out of your answer means "keep it as is".
"""
    if lang_line:
        prompt += f"\n{lang_line}\n"

    prompt += """
Return ONLY a JSON array:
[
  {"id": "<id of a revisable prediction>", "newText": "<updated prediction>", "reason": "<why>"},
  {"year": <empty year in range>, "newText": "<new prediction>", "reason": "<why>"}
]

Return [] if no changes are needed."""
    return prompt


def _locate_edited_event(
    branch_events: list[dict[str, Any]],
    year: int,
    event_id: UUID | None,
) -> tuple[dict[str, Any], bool]:
    """Find the stored event being edited, or start a new user entry for the year."""
    if event_id is not None:
        for event in branch_events:
            if str(event["id"]) == str(event_id):
                return event, False
        raise NotFoundError("Event", event_id)

    for event in branch_events:
        if int(event["year"]) == year and not event.get("is_prediction"):
            return event, False

    return {"id": str(uuid4()), "year": year, "is_prediction": False, "event_text": ""}, True


async def adapt_timeline_event(
    timeline_id: UUID,
    branch_index: int,
    year: int,
    text: str,
    user_id: UUID,
    oracle: GenerationOracle,
    event_id: UUID | None = None,
    language: str | None = None,
) -> AdaptationResponse:
    """
    Store a user edit to a branch event and re-adapt neighbouring predictions.

    Args:
        timeline_id: Timeline UUID
        branch_index: Branch index (0-4)
        year: Year of the edited event
        text: New event text
        user_id: Authenticated caller
        oracle: Generation oracle
        event_id: Stored event id when editing an existing row
        language: Optional language hint

    Returns:
        AdaptationResponse with applied/discarded counts and suggestions

    Raises:
        NotFoundError: Timeline not owned by the caller, or event_id unknown
        TransportError, MalformedResponseError, ParseError: Oracle failures;
            the user's edit is already stored, no prediction is changed
    """
    settings = get_settings()
    timeline = require_owned_timeline(timeline_id, user_id)

    branch_events = events_db.list_branch_events(timeline_id, branch_index)
    stored, is_new = _locate_edited_event(branch_events, year, event_id)
    edited = mark_event_edited(stored, text)
    adaptation_merge.persist_event_edit(timeline_id, branch_index, edited, is_new)

    rows = [
        e
        for e in branch_events
        if str(e["id"]) != str(edited["id"])
        and not (int(e["year"]) == year and event_provenance(e) is Provenance.AI_GENERATED)
    ] + [edited]
    window = build_event_window(
        rows,
        str(edited["id"]),
        before=settings.TIMELINE_WINDOW_BEFORE,
        after=settings.TIMELINE_WINDOW_AFTER,
    )

    log_with_context(
        logger,
        logging.INFO,
        "Adapting timeline predictions",
        timeline_id=str(timeline_id),
        branch_index=branch_index,
        year=year,
        eligible=len(window.eligible_ids),
    )

    if not window.has_eligible_items:
        logger.info(f"No AI predictions on branch {branch_index}; skipping oracle call")
        return AdaptationResponse(
            edited_id=str(edited["id"]),
            oracle_called=False,
            window_start=window.lower,
            window_end=window.upper,
            message="No AI predictions to adapt",
        )

    context = load_branch_context(timeline, branch_index)
    user_texts = [
        e.get("event_text")
        for e in rows
        if event_provenance(e) is not Provenance.AI_GENERATED
    ]
    lang = await resolve_language(
        [*(e["event_text"] for e in context.past_events), context.mission_text, *user_texts],
        oracle,
        hint=language,
    )
    header = instruction_header(
        user_id,
        "timeline_adaptation",
        {
            "branch_name": context.branch_name,
            "mission_text": context.mission_block,
            "current_age": context.current_age,
            "past_events": context.past_block,
            "metrics": context.metrics_block,
        },
    )
    prompt = build_timeline_adaptation_prompt(window, context, header, lang)

    raw = await oracle.generate(prompt, ADAPTATION_OPTIONS)
    logger.debug(f"Oracle adaptation response: {raw[:300]}")

    parsed = parse_json_array(raw)
    suggestions = [adaptation_merge.normalize_suggestion(s) for s in parsed]
    plan = adaptation_merge.plan_event_merge(suggestions, window)
    result = adaptation_merge.apply_event_merge(plan, suggestions, timeline_id, branch_index)

    return AdaptationResponse(
        edited_id=str(edited["id"]),
        oracle_called=True,
        applied_count=result.applied_count,
        discarded_count=result.discarded_count,
        window_start=window.lower,
        window_end=window.upper,
        suggestions=result.suggestions,
        message=(
            f"Updated {result.applied_count} related predictions"
            if result.applied_count
            else "No updates needed"
        ),
    )

