"""CRUD operations for mission steps.

Steps nest one level deep: a substep's parent_step_id points at a top-level
step, and deleting a step deletes its substeps. Automated writes only match
rows with is_ai_generated=true AND is_user_edited=false.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from lifemap.core.logging import get_logger
from lifemap.db.supabase_client import get_supabase

logger = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def list_mission_steps(mission_id: UUID) -> list[dict[str, Any]]:
    """List all steps and substeps of a mission ordered by display_order."""
    supabase = get_supabase()

    response = (
        supabase.table("mission_steps")
        .select("*")
        .eq("mission_id", str(mission_id))
        .order("display_order")
        .execute()
    )

    return response.data or []


def get_step(step_id: UUID) -> dict[str, Any] | None:
    """Get a step by ID."""
    supabase = get_supabase()

    response = (
        supabase.table("mission_steps")
        .select("*")
        .eq("id", str(step_id))
        .maybe_single()
        .execute()
    )

    return response.data if response else None


def insert_steps(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Insert a batch of steps, returning the stored rows."""
    if not rows:
        return []

    supabase = get_supabase()
    response = supabase.table("mission_steps").insert(rows).execute()
    return response.data or []


def update_ai_step_text(step_id: UUID, mission_id: UUID, text: str) -> bool:
    """
    Rewrite an untouched AI step.

    Returns:
        True if the row matched (still AI-generated and not user-edited)
    """
    supabase = get_supabase()

    response = (
        supabase.table("mission_steps")
        .update({"step_text": text, "updated_at": _now()})
        .eq("id", str(step_id))
        .eq("mission_id", str(mission_id))
        .eq("is_ai_generated", True)
        .eq("is_user_edited", False)
        .execute()
    )

    return bool(response.data)


def delete_ai_steps(mission_id: UUID, step_ids: list[UUID]) -> int:
    """Delete the given untouched AI steps of a mission, returning the count removed."""
    if not step_ids:
        return 0

    supabase = get_supabase()

    response = (
        supabase.table("mission_steps")
        .delete()
        .eq("mission_id", str(mission_id))
        .eq("is_ai_generated", True)
        .eq("is_user_edited", False)
        .in_("id", [str(s) for s in step_ids])
        .execute()
    )

    return len(response.data or [])


def mark_step_user_edited(step_id: UUID, text: str) -> dict[str, Any] | None:
    """Store a direct user edit; the step is user-owned from now on."""
    supabase = get_supabase()

    now = _now()
    response = (
        supabase.table("mission_steps")
        .update(
            {
                "step_text": text,
                "is_user_edited": True,
                "last_edited_at": now,
                "updated_at": now,
            }
        )
        .eq("id", str(step_id))
        .execute()
    )

    return response.data[0] if response.data else None


def insert_user_step(
    mission_id: UUID,
    step_text: str,
    display_order: int,
    parent_step_id: UUID | None = None,
) -> dict[str, Any]:
    """Add a user-authored step or substep."""
    supabase = get_supabase()

    response = (
        supabase.table("mission_steps")
        .insert(
            {
                "mission_id": str(mission_id),
                "parent_step_id": str(parent_step_id) if parent_step_id else None,
                "step_text": step_text,
                "display_order": display_order,
                "is_ai_generated": False,
                "is_user_edited": False,
            }
        )
        .execute()
    )

    return response.data[0] if response.data else {}


def delete_step(mission_id: UUID, step_id: UUID) -> int:
    """Delete a step and its substeps (explicit user action)."""
    supabase = get_supabase()

    supabase.table("mission_steps").delete().eq("mission_id", str(mission_id)).eq(
        "parent_step_id", str(step_id)
    ).execute()
    response = (
        supabase.table("mission_steps")
        .delete()
        .eq("mission_id", str(mission_id))
        .eq("id", str(step_id))
        .execute()
    )

    return len(response.data or [])
