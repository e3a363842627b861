"""CRUD operations for timelines and their possibility branches."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from lifemap.core.logging import get_logger
from lifemap.core.schemas_timeline import BRANCH_COUNT, DEFAULT_BRANCH_NAMES
from lifemap.db.supabase_client import get_supabase

logger = get_logger(__name__)


def get_timeline(timeline_id: UUID) -> dict[str, Any] | None:
    """
    Get a timeline by ID.

    Args:
        timeline_id: Timeline UUID

    Returns:
        Timeline dict or None
    """
    supabase = get_supabase()

    response = (
        supabase.table("timelines")
        .select("*")
        .eq("id", str(timeline_id))
        .maybe_single()
        .execute()
    )

    return response.data if response else None


def get_latest_timeline_for_user(user_id: UUID) -> dict[str, Any] | None:
    """Get the most recently created timeline of a user."""
    supabase = get_supabase()

    response = (
        supabase.table("timelines")
        .select("*")
        .eq("user_id", str(user_id))
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )

    return response.data[0] if response.data else None


def create_timeline(user_id: UUID, current_age: int) -> dict[str, Any]:
    """
    Create a timeline together with its five default branches.

    Args:
        user_id: Owner user UUID
        current_age: Age at submission (0-100)

    Returns:
        Created timeline dict
    """
    supabase = get_supabase()

    response = (
        supabase.table("timelines")
        .insert({"user_id": str(user_id), "current_age": current_age})
        .execute()
    )
    if not response.data:
        raise RuntimeError("Failed to create timeline")
    timeline = response.data[0]

    supabase.table("possibility_branches").insert(
        [
            {
                "timeline_id": timeline["id"],
                "branch_index": index,
                "branch_name": DEFAULT_BRANCH_NAMES[index],
            }
            for index in range(BRANCH_COUNT)
        ]
    ).execute()

    logger.info(f"Created timeline {timeline['id']} for user {user_id}")
    return timeline


def update_current_age(timeline_id: UUID, current_age: int) -> dict[str, Any] | None:
    """Update the current age of a timeline."""
    supabase = get_supabase()

    response = (
        supabase.table("timelines")
        .update(
            {
                "current_age": current_age,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        .eq("id", str(timeline_id))
        .execute()
    )

    return response.data[0] if response.data else None


def list_branches(timeline_id: UUID) -> list[dict[str, Any]]:
    """List branches of a timeline ordered by index."""
    supabase = get_supabase()

    response = (
        supabase.table("possibility_branches")
        .select("*")
        .eq("timeline_id", str(timeline_id))
        .order("branch_index")
        .execute()
    )

    return response.data or []


def get_branch(timeline_id: UUID, branch_index: int) -> dict[str, Any] | None:
    """Get one branch by its fixed index."""
    supabase = get_supabase()

    response = (
        supabase.table("possibility_branches")
        .select("*")
        .eq("timeline_id", str(timeline_id))
        .eq("branch_index", branch_index)
        .maybe_single()
        .execute()
    )

    return response.data if response else None


def upsert_branch_name(timeline_id: UUID, branch_index: int, branch_name: str) -> dict[str, Any]:
    """Rename a branch (upsert on the (timeline_id, branch_index) key)."""
    supabase = get_supabase()

    response = (
        supabase.table("possibility_branches")
        .upsert(
            {
                "timeline_id": str(timeline_id),
                "branch_index": branch_index,
                "branch_name": branch_name,
            },
            on_conflict="timeline_id,branch_index",
        )
        .execute()
    )

    return response.data[0] if response.data else {}
