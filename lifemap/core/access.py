"""Ownership checks shared by the API and the generation flows."""

from typing import Any
from uuid import UUID

from lifemap.core.errors import NotFoundError
from lifemap.db import missions as missions_db
from lifemap.db import timelines as timelines_db


def require_owned_timeline(timeline_id: UUID, user_id: UUID) -> dict[str, Any]:
    """
    Load a timeline owned by the caller.

    Raises:
        NotFoundError: If the timeline is missing or belongs to someone else
    """
    timeline = timelines_db.get_timeline(timeline_id)
    if not timeline or str(timeline.get("user_id")) != str(user_id):
        raise NotFoundError("Timeline", timeline_id)
    return timeline


def require_owned_mission(mission_id: UUID, user_id: UUID) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load a mission and its timeline, both owned by the caller.

    Raises:
        NotFoundError: If the mission is missing or its timeline is not the caller's
    """
    mission = missions_db.get_mission(mission_id)
    if not mission:
        raise NotFoundError("Mission", mission_id)

    timeline = timelines_db.get_timeline(UUID(str(mission["timeline_id"])))
    if not timeline or str(timeline.get("user_id")) != str(user_id):
        raise NotFoundError("Mission", mission_id)
    return mission, timeline
