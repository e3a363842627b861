"""Provenance of timeline events and mission steps.

Two stored flags collapse into three effective states. Only AI_GENERATED
items may be read as adaptation candidates, rewritten, or removed by
automated flows.
"""

from enum import Enum
from typing import Any, Mapping


class Provenance(str, Enum):
    """Effective origin state of a content item."""

    USER_AUTHORED = "user_authored"
    AI_GENERATED = "ai_generated"
    AI_GENERATED_EDITED = "ai_generated_edited"


def event_provenance(event: Mapping[str, Any]) -> Provenance:
    """Effective state of an event row (is_prediction / is_user_edited)."""
    if not event.get("is_prediction"):
        return Provenance.USER_AUTHORED
    if event.get("is_user_edited"):
        return Provenance.AI_GENERATED_EDITED
    return Provenance.AI_GENERATED


def step_provenance(step: Mapping[str, Any]) -> Provenance:
    """Effective state of a mission step row (is_ai_generated / is_user_edited)."""
    if not step.get("is_ai_generated"):
        return Provenance.USER_AUTHORED
    if step.get("is_user_edited"):
        return Provenance.AI_GENERATED_EDITED
    return Provenance.AI_GENERATED


def is_adaptable(state: Provenance) -> bool:
    return state is Provenance.AI_GENERATED


def mark_event_edited(event: Mapping[str, Any], text: str) -> dict[str, Any]:
    """
    Apply a direct user edit to an event row.

    A user entry stays user-authored; an AI prediction becomes
    AI_GENERATED_EDITED. The transition never reverts.

    Returns:
        New row dict; the input is not mutated
    """
    updated = dict(event)
    updated["event_text"] = text
    updated["is_user_edited"] = True
    updated.setdefault("is_prediction", False)
    return updated


def mark_step_edited(step: Mapping[str, Any], text: str) -> dict[str, Any]:
    """Apply a direct user edit to a step row, returning a new row dict."""
    updated = dict(step)
    updated["step_text"] = text
    updated["is_user_edited"] = True
    updated.setdefault("is_ai_generated", False)
    return updated
