"""CRUD operations for life missions and their success metrics."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from lifemap.core.logging import get_logger
from lifemap.core.schemas_timeline import BRANCH_COUNT
from lifemap.db.supabase_client import get_supabase

logger = get_logger(__name__)


def create_empty_missions(timeline_id: UUID) -> list[dict[str, Any]]:
    """Create one empty mission per branch of a new timeline."""
    supabase = get_supabase()

    response = (
        supabase.table("life_missions")
        .insert(
            [
                {"timeline_id": str(timeline_id), "branch_index": index, "mission_text": None}
                for index in range(BRANCH_COUNT)
            ]
        )
        .execute()
    )

    return response.data or []


def get_mission(mission_id: UUID) -> dict[str, Any] | None:
    """Get a mission by ID."""
    supabase = get_supabase()

    response = (
        supabase.table("life_missions")
        .select("*")
        .eq("id", str(mission_id))
        .maybe_single()
        .execute()
    )

    return response.data if response else None


def get_mission_for_branch(timeline_id: UUID, branch_index: int) -> dict[str, Any] | None:
    """Get the mission of a (timeline, branch) pair."""
    supabase = get_supabase()

    response = (
        supabase.table("life_missions")
        .select("*")
        .eq("timeline_id", str(timeline_id))
        .eq("branch_index", branch_index)
        .maybe_single()
        .execute()
    )

    return response.data if response else None


def list_missions(timeline_id: UUID) -> list[dict[str, Any]]:
    """List missions of a timeline."""
    supabase = get_supabase()

    response = (
        supabase.table("life_missions")
        .select("*")
        .eq("timeline_id", str(timeline_id))
        .order("branch_index")
        .execute()
    )

    return response.data or []


def update_mission_text(mission_id: UUID, mission_text: str) -> dict[str, Any] | None:
    """Set the mission text. Metrics and steps are left alone."""
    supabase = get_supabase()

    response = (
        supabase.table("life_missions")
        .update(
            {
                "mission_text": mission_text,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        .eq("id", str(mission_id))
        .execute()
    )

    return response.data[0] if response.data else None


def list_metrics(mission_id: UUID) -> list[dict[str, Any]]:
    """List success metrics of a mission in display order."""
    supabase = get_supabase()

    response = (
        supabase.table("success_metrics")
        .select("*")
        .eq("mission_id", str(mission_id))
        .order("display_order")
        .execute()
    )

    return response.data or []


def add_metric(mission_id: UUID, metric_text: str, display_order: int) -> dict[str, Any]:
    """Append a metric. The id is generated here so it is known before the write."""
    supabase = get_supabase()

    response = (
        supabase.table("success_metrics")
        .insert(
            {
                "id": str(uuid4()),
                "mission_id": str(mission_id),
                "metric_text": metric_text,
                "display_order": display_order,
            }
        )
        .execute()
    )

    return response.data[0] if response.data else {}


def update_metric(mission_id: UUID, metric_id: UUID, metric_text: str) -> dict[str, Any] | None:
    """Edit a metric's text."""
    supabase = get_supabase()

    response = (
        supabase.table("success_metrics")
        .update({"metric_text": metric_text})
        .eq("id", str(metric_id))
        .eq("mission_id", str(mission_id))
        .execute()
    )

    return response.data[0] if response.data else None


def delete_metric(mission_id: UUID, metric_id: UUID) -> bool:
    """Delete one metric; the mission text and steps are not touched."""
    supabase = get_supabase()

    response = (
        supabase.table("success_metrics")
        .delete()
        .eq("id", str(metric_id))
        .eq("mission_id", str(mission_id))
        .execute()
    )

    return bool(response.data)
