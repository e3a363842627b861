"""CRUD operations for timeline events (history, user plans and predictions).

Writes that belong to automated flows are guarded at the query level with
is_prediction=true AND is_user_edited=false, so a user-owned row can never
match them.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from lifemap.core.logging import get_logger
from lifemap.db.supabase_client import get_supabase

logger = get_logger(__name__)


def _branch_filter(query: Any, branch_index: int | None) -> Any:
    if branch_index is None:
        return query.is_("branch_index", "null")
    return query.eq("branch_index", branch_index)


def list_timeline_events(timeline_id: UUID) -> list[dict[str, Any]]:
    """List every event of a timeline ordered by year."""
    supabase = get_supabase()

    response = (
        supabase.table("events")
        .select("*")
        .eq("timeline_id", str(timeline_id))
        .order("year")
        .execute()
    )

    return response.data or []


def list_branch_events(timeline_id: UUID, branch_index: int | None) -> list[dict[str, Any]]:
    """
    List events of one branch (user plans and predictions) ordered by year.

    Args:
        timeline_id: Timeline UUID
        branch_index: Branch index, or None for shared past history

    Returns:
        List of event dicts
    """
    supabase = get_supabase()

    query = supabase.table("events").select("*").eq("timeline_id", str(timeline_id))
    response = _branch_filter(query, branch_index).order("year").execute()

    return response.data or []


def list_past_events(timeline_id: UUID, start_year: int, end_year: int) -> list[dict[str, Any]]:
    """List shared history events with start_year <= year <= end_year."""
    supabase = get_supabase()

    response = (
        supabase.table("events")
        .select("year, event_text")
        .eq("timeline_id", str(timeline_id))
        .is_("branch_index", "null")
        .gte("year", start_year)
        .lte("year", end_year)
        .order("year")
        .execute()
    )

    return response.data or []


def get_event(event_id: UUID) -> dict[str, Any] | None:
    """Get an event by ID."""
    supabase = get_supabase()

    response = (
        supabase.table("events")
        .select("*")
        .eq("id", str(event_id))
        .maybe_single()
        .execute()
    )

    return response.data if response else None


def insert_events(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Insert a batch of events, returning the stored rows."""
    if not rows:
        return []

    supabase = get_supabase()
    response = supabase.table("events").insert(rows).execute()
    return response.data or []


def update_prediction_text(event_id: UUID, text: str) -> bool:
    """
    Rewrite an untouched AI prediction.

    Returns:
        True if a row matched (it was still AI-generated and not user-edited)
    """
    supabase = get_supabase()

    response = (
        supabase.table("events")
        .update({"event_text": text, "updated_at": datetime.now(timezone.utc).isoformat()})
        .eq("id", str(event_id))
        .eq("is_prediction", True)
        .eq("is_user_edited", False)
        .execute()
    )

    return bool(response.data)


def mark_event_user_edited(event_id: UUID, text: str) -> dict[str, Any] | None:
    """Store a direct user edit; the row is user-owned from now on."""
    supabase = get_supabase()

    response = (
        supabase.table("events")
        .update(
            {
                "event_text": text,
                "is_user_edited": True,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        .eq("id", str(event_id))
        .execute()
    )

    return response.data[0] if response.data else None


def delete_ai_predictions(
    timeline_id: UUID,
    branch_index: int,
    years: list[int] | None = None,
    exclude_ids: list[UUID] | None = None,
) -> int:
    """
    Delete untouched AI predictions of a branch.

    Args:
        timeline_id: Timeline UUID
        branch_index: Branch index
        years: Restrict to these years (all years when None)
        exclude_ids: Rows to keep even if they match

    Returns:
        Number of deleted rows
    """
    supabase = get_supabase()

    query = (
        supabase.table("events")
        .delete()
        .eq("timeline_id", str(timeline_id))
        .eq("branch_index", branch_index)
        .eq("is_prediction", True)
        .eq("is_user_edited", False)
    )
    if years is not None:
        if not years:
            return 0
        query = query.in_("year", years)
    for event_id in exclude_ids or []:
        query = query.neq("id", str(event_id))

    response = query.execute()
    return len(response.data or [])


def delete_event(timeline_id: UUID, event_id: UUID) -> bool:
    """Delete a single event of a timeline."""
    supabase = get_supabase()

    response = (
        supabase.table("events")
        .delete()
        .eq("id", str(event_id))
        .eq("timeline_id", str(timeline_id))
        .execute()
    )

    return bool(response.data)


def save_user_event(
    timeline_id: UUID,
    branch_index: int | None,
    year: int,
    text: str,
) -> dict[str, Any] | None:
    """
    Write the user entry at (branch, year).

    An existing user-owned entry in the slot is overwritten in place, so its id
    survives the save. Untouched AI predictions in the slot are removed. Empty
    text removes the user entry.

    Returns:
        Stored event dict, or None when the entry was removed
    """
    supabase = get_supabase()

    query = (
        supabase.table("events")
        .select("id, is_prediction, is_user_edited")
        .eq("timeline_id", str(timeline_id))
        .eq("year", year)
    )
    slot = _branch_filter(query, branch_index).execute().data or []
    owned = [row for row in slot if not row.get("is_prediction") or row.get("is_user_edited")]

    if not text.strip():
        for row in owned:
            delete_event(timeline_id, row["id"])
        return None

    if branch_index is not None:
        delete_ai_predictions(timeline_id, branch_index, years=[year])

    if owned:
        keep, *duplicates = owned
        for row in duplicates:
            delete_event(timeline_id, row["id"])

        response = (
            supabase.table("events")
            .update({"event_text": text, "updated_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", str(keep["id"]))
            .execute()
        )
        return response.data[0] if response.data else None

    response = (
        supabase.table("events")
        .insert(
            {
                "timeline_id": str(timeline_id),
                "branch_index": branch_index,
                "year": year,
                "event_text": text,
                "is_prediction": False,
                "is_user_edited": False,
            }
        )
        .execute()
    )

    return response.data[0] if response.data else None
