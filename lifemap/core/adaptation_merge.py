"""Reconciliation of oracle suggestions against stored events and steps.

The oracle is untrusted: every suggestion is checked against the eligible id
set computed from current state before anything is written. User-authored and
user-edited items are never changed here, whatever the suggestion list says.
The edited item itself is persisted as user-edited before the oracle is
asked, so an oracle failure never loses the user's own change.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping
from uuid import UUID

from pydantic import BaseModel, Field

from lifemap.core.context_window import ContextWindow
from lifemap.core.logging import get_logger
from lifemap.core.provenance import Provenance, step_provenance
from lifemap.db import events as events_db
from lifemap.db import mission_steps as steps_db

logger = get_logger(__name__)


class AdaptationSuggestion(BaseModel):
    """One normalized oracle suggestion."""

    id: str | None = Field(default=None, description="Target event/step id, if any")
    year: int | None = Field(default=None, description="Target year (events only)")
    new_text: str = Field(default="", description="Replacement text; empty deletes a step")
    reason: str = Field(default="", description="Why the oracle proposed this change")


class MergeResult(BaseModel):
    """Outcome of one adaptation pass."""

    applied_count: int = 0
    suggestions: list[AdaptationSuggestion] = Field(default_factory=list)
    discarded_count: int = 0


def _first_str(raw: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return str(value)
    return None


def normalize_suggestion(raw: Mapping[str, Any]) -> AdaptationSuggestion:
    """Read a suggestion object defensively, accepting both event and step key names."""
    year = raw.get("year")
    try:
        year = int(year) if year is not None else None
    except (TypeError, ValueError):
        year = None

    return AdaptationSuggestion(
        id=_first_str(raw, "id", "stepId", "eventId"),
        year=year,
        new_text=(_first_str(raw, "newText", "suggestedText", "event") or "").strip(),
        reason=_first_str(raw, "reason") or "",
    )


# ============================================================================
# Planning (pure)
# ============================================================================


@dataclass
class EventMergePlan:
    updates: dict[str, str] = field(default_factory=dict)
    inserts: dict[int, str] = field(default_factory=dict)
    discarded: list[AdaptationSuggestion] = field(default_factory=list)

    @property
    def change_count(self) -> int:
        return len(self.updates) + len(self.inserts)


@dataclass
class StepMergePlan:
    updates: dict[str, str] = field(default_factory=dict)
    deletions: set[str] = field(default_factory=set)
    discarded: list[AdaptationSuggestion] = field(default_factory=list)

    @property
    def change_count(self) -> int:
        return len(self.updates) + len(self.deletions)


def plan_event_merge(
    suggestions: Iterable[AdaptationSuggestion],
    window: ContextWindow,
) -> EventMergePlan:
    """
    Decide which event suggestions to apply.

    - A suggestion with an id updates that prediction's text if the id is
      eligible. Empty text means "no change"; events are never deleted here.
    - A suggestion with only a year inserts a new prediction if the year lies
      inside the window, is not the edited year, and no event occupies it.
    - Everything else is discarded.
    """
    plan = EventMergePlan()
    eligible = window.eligible_ids
    edited_year = window.edited.year
    occupied_years = {item.year for item in window.items}

    for suggestion in suggestions:
        if suggestion.id is not None:
            if suggestion.id not in eligible or suggestion.id in plan.updates:
                plan.discarded.append(suggestion)
                continue
            if not suggestion.new_text:
                continue
            plan.updates[suggestion.id] = suggestion.new_text
            continue

        year = suggestion.year
        if (
            year is None
            or not suggestion.new_text
            or year == edited_year
            or not window.lower <= year <= window.upper
            or year in occupied_years
            or year in plan.inserts
        ):
            plan.discarded.append(suggestion)
            continue
        plan.inserts[year] = suggestion.new_text

    return plan


def plan_step_merge(
    suggestions: Iterable[AdaptationSuggestion],
    eligible_ids: frozenset[str] | set[str],
    steps: Iterable[Mapping[str, Any]],
) -> StepMergePlan:
    """
    Decide which step suggestions to apply.

    Non-empty text updates an eligible step. Empty text deletes an eligible
    step together with its substeps, unless one of those substeps is
    user-owned, in which case the deletion is discarded.
    """
    plan = StepMergePlan()
    rows = list(steps)
    children: dict[str, list[Mapping[str, Any]]] = {}
    for row in rows:
        if row.get("parent_step_id"):
            children.setdefault(str(row["parent_step_id"]), []).append(row)

    for suggestion in suggestions:
        step_id = suggestion.id
        if step_id is None or step_id not in eligible_ids:
            plan.discarded.append(suggestion)
            continue

        if suggestion.new_text:
            if step_id not in plan.deletions:
                plan.updates[step_id] = suggestion.new_text
            continue

        substeps = children.get(step_id, [])
        if any(step_provenance(s) is not Provenance.AI_GENERATED for s in substeps):
            logger.warning(f"Refusing to delete step {step_id}: it has user-owned substeps")
            plan.discarded.append(suggestion)
            continue

        plan.deletions.add(step_id)
        plan.deletions.update(str(s["id"]) for s in substeps)
        plan.updates.pop(step_id, None)
        for s in substeps:
            plan.updates.pop(str(s["id"]), None)

    return plan


# ============================================================================
# Application (writes)
# ============================================================================


def persist_event_edit(
    timeline_id: UUID,
    branch_index: int,
    edited_event: Mapping[str, Any],
    is_new_event: bool,
) -> None:
    """
    Store the user's own edit as a user-owned event.

    Any AI prediction sharing its (branch, year) slot is removed so the slot
    holds one event.
    """
    edited_id = UUID(str(edited_event["id"]))
    events_db.delete_ai_predictions(
        timeline_id,
        branch_index,
        years=[int(edited_event["year"])],
        exclude_ids=[edited_id],
    )
    if is_new_event:
        events_db.insert_events(
            [
                {
                    "id": str(edited_id),
                    "timeline_id": str(timeline_id),
                    "branch_index": branch_index,
                    "year": int(edited_event["year"]),
                    "event_text": edited_event["event_text"],
                    "is_prediction": False,
                    "is_user_edited": True,
                }
            ]
        )
    else:
        events_db.mark_event_user_edited(edited_id, edited_event["event_text"])


def persist_step_edit(edited_step: Mapping[str, Any]) -> None:
    """Store the user's own edit; the step is user-owned from now on."""
    steps_db.mark_step_user_edited(UUID(str(edited_step["id"])), edited_step["step_text"])


def apply_event_merge(
    plan: EventMergePlan,
    suggestions: list[AdaptationSuggestion],
    timeline_id: UUID,
    branch_index: int,
) -> MergeResult:
    """Persist an event merge plan through the AI-only guarded writes."""
    applied = 0
    for event_id, text in plan.updates.items():
        if events_db.update_prediction_text(UUID(event_id), text):
            applied += 1

    if plan.inserts:
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
                for year, text in sorted(plan.inserts.items())
            ]
        )
        applied += len(inserted)

    logger.info(
        f"Applied {applied} event adaptations for branch {branch_index}, "
        f"discarded {len(plan.discarded)}"
    )
    return MergeResult(
        applied_count=applied,
        suggestions=suggestions,
        discarded_count=len(plan.discarded),
    )


def apply_step_merge(
    plan: StepMergePlan,
    suggestions: list[AdaptationSuggestion],
    mission_id: UUID,
) -> MergeResult:
    """Persist a step merge plan through the AI-only guarded writes."""
    applied = 0
    for step_id, text in plan.updates.items():
        if steps_db.update_ai_step_text(UUID(step_id), mission_id, text):
            applied += 1

    if plan.deletions:
        applied += steps_db.delete_ai_steps(mission_id, [UUID(s) for s in plan.deletions])

    logger.info(
        f"Applied {applied} step adaptations for mission {mission_id}, "
        f"discarded {len(plan.discarded)}"
    )
    return MergeResult(
        applied_count=applied,
        suggestions=suggestions,
        discarded_count=len(plan.discarded),
    )
