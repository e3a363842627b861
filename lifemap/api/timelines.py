"""API endpoints for timelines, branches and user events."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import BaseModel

from lifemap.core.access import require_owned_timeline
from lifemap.core.auth_middleware import AuthContext, require_auth
from lifemap.core.errors import LifemapError, NotFoundError
from lifemap.core.logging import get_logger
from lifemap.core.schemas_timeline import (
    BranchIndex,
    BranchRename,
    Event,
    EventSave,
    Mission,
    TimelineCreate,
    TimelineUpdate,
)
from lifemap.core.timeline_state import TimelineState, build_timeline_state
from lifemap.db import events as events_db
from lifemap.db import mission_steps as steps_db
from lifemap.db import missions as missions_db
from lifemap.db import timelines as timelines_db

logger = get_logger(__name__)

router = APIRouter(prefix="/timelines")


# ============================================================================
# Pydantic Models
# ============================================================================


class BranchOut(BaseModel):
    """One possibility branch with its events and mission."""

    branch_index: int
    branch_name: str
    user_events: list[Event]
    predictions: list[Event]
    mission: Mission | None


class TimelineOut(BaseModel):
    """Response model for a full timeline."""

    id: UUID
    current_age: int
    past_events: list[Event]
    branches: list[BranchOut]

    @classmethod
    def from_state(cls, state: TimelineState) -> "TimelineOut":
        return cls(
            id=state.timeline_id,
            current_age=state.current_age,
            past_events=list(state.past_events),
            branches=[
                BranchOut(
                    branch_index=slot.index,
                    branch_name=slot.name,
                    user_events=list(slot.user_events),
                    predictions=list(slot.predictions),
                    mission=slot.mission,
                )
                for slot in state.branches
            ],
        )


class EventSaveResponse(BaseModel):
    """Stored user event, or None when the entry was cleared."""

    event: Event | None


# ============================================================================
# Helpers
# ============================================================================


def load_timeline_state(timeline: dict[str, Any]) -> TimelineState:
    """Read every row that belongs to a timeline and assemble its state."""
    timeline_id = UUID(str(timeline["id"]))
    missions = missions_db.list_missions(timeline_id)

    return build_timeline_state(
        timeline,
        timelines_db.list_branches(timeline_id),
        events_db.list_timeline_events(timeline_id),
        missions,
        metrics_by_mission={str(m["id"]): missions_db.list_metrics(UUID(str(m["id"]))) for m in missions},
        steps_by_mission={str(m["id"]): steps_db.list_mission_steps(UUID(str(m["id"]))) for m in missions},
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post("", response_model=TimelineOut, status_code=201)
async def create_timeline(
    body: TimelineCreate,
    auth: AuthContext = Depends(require_auth),
) -> TimelineOut:
    """
    Create a timeline on first age submission.

    Creates the five default branches and one empty mission per branch.
    """
    try:
        timeline = timelines_db.create_timeline(auth.user_id, body.current_age)
        missions_db.create_empty_missions(UUID(str(timeline["id"])))
        return TimelineOut.from_state(load_timeline_state(timeline))

    except LifemapError:
        raise
    except Exception as e:
        logger.error(f"Error creating timeline: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create timeline") from e


@router.get("/me", response_model=TimelineOut)
async def get_my_timeline(
    auth: AuthContext = Depends(require_auth),
) -> TimelineOut:
    """Load the caller's most recent timeline."""
    timeline = timelines_db.get_latest_timeline_for_user(auth.user_id)
    if not timeline:
        raise NotFoundError("Timeline")

    return TimelineOut.from_state(load_timeline_state(timeline))


@router.patch("/{timeline_id}", response_model=TimelineOut)
async def update_timeline(
    body: TimelineUpdate,
    timeline_id: UUID = Path(..., description="Timeline UUID"),
    auth: AuthContext = Depends(require_auth),
) -> TimelineOut:
    """Change the current age of a timeline."""
    require_owned_timeline(timeline_id, auth.user_id)

    timeline = timelines_db.update_current_age(timeline_id, body.current_age)
    if not timeline:
        raise NotFoundError("Timeline", timeline_id)

    logger.info(f"Updated current age of timeline {timeline_id} to {body.current_age}")
    return TimelineOut.from_state(load_timeline_state(timeline))


@router.put("/{timeline_id}/branches/{branch_index}")
async def rename_branch(
    body: BranchRename,
    timeline_id: UUID = Path(..., description="Timeline UUID"),
    branch_index: BranchIndex = Path(..., description="Branch index (0-4)"),
    auth: AuthContext = Depends(require_auth),
) -> dict[str, Any]:
    """Rename a possibility branch."""
    require_owned_timeline(timeline_id, auth.user_id)
    return timelines_db.upsert_branch_name(timeline_id, branch_index, body.branch_name.strip())


@router.put("/{timeline_id}/events", response_model=EventSaveResponse)
async def save_event(
    body: EventSave,
    timeline_id: UUID = Path(..., description="Timeline UUID"),
    auth: AuthContext = Depends(require_auth),
) -> EventSaveResponse:
    """
    Save a user-authored event.

    branch_index=None writes shared past history. An existing user entry at
    the same (branch, year) is replaced; empty text clears it. Predictions are
    not adapted here; use the branch adapt endpoint for that.
    """
    require_owned_timeline(timeline_id, auth.user_id)

    try:
        stored = events_db.save_user_event(timeline_id, body.branch_index, body.year, body.text)
        return EventSaveResponse(event=Event.model_validate(stored) if stored else None)

    except LifemapError:
        raise
    except Exception as e:
        logger.error(f"Error saving event for timeline {timeline_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to save event") from e


@router.delete("/{timeline_id}/predictions/{event_id}", status_code=204)
async def delete_prediction(
    timeline_id: UUID = Path(..., description="Timeline UUID"),
    event_id: UUID = Path(..., description="Prediction event UUID"),
    auth: AuthContext = Depends(require_auth),
) -> None:
    """Delete a single prediction (explicit user action)."""
    require_owned_timeline(timeline_id, auth.user_id)

    event = events_db.get_event(event_id)
    if not event or str(event.get("timeline_id")) != str(timeline_id) or not event.get("is_prediction"):
        raise NotFoundError("Prediction", event_id)

    events_db.delete_event(timeline_id, event_id)
    logger.info(f"Deleted prediction {event_id} from timeline {timeline_id}")
