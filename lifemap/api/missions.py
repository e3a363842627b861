"""API endpoints for life missions, success metrics and user steps."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Path

from lifemap.core.access import require_owned_mission
from lifemap.core.auth_middleware import AuthContext, require_auth
from lifemap.core.errors import InvalidInputError, NotFoundError
from lifemap.core.logging import get_logger
from lifemap.core.schemas_timeline import (
    Metric,
    MetricCreate,
    MetricUpdate,
    MissionStep,
    MissionTextUpdate,
    StepCreate,
)
from lifemap.db import mission_steps as steps_db
from lifemap.db import missions as missions_db

logger = get_logger(__name__)

router = APIRouter(prefix="/missions")


def _parent_of(step: dict[str, Any]) -> str | None:
    return str(step["parent_step_id"]) if step.get("parent_step_id") else None


@router.put("/{mission_id}")
async def update_mission(
    body: MissionTextUpdate,
    mission_id: UUID = Path(..., description="Mission UUID"),
    auth: AuthContext = Depends(require_auth),
) -> dict[str, Any]:
    """Set the mission text. Metrics and steps are not touched."""
    require_owned_mission(mission_id, auth.user_id)

    mission = missions_db.update_mission_text(mission_id, body.mission_text)
    if not mission:
        raise NotFoundError("Mission", mission_id)
    return mission


# ============================================================================
# Metrics
# ============================================================================


@router.post("/{mission_id}/metrics", response_model=Metric, status_code=201)
async def add_metric(
    body: MetricCreate,
    mission_id: UUID = Path(..., description="Mission UUID"),
    auth: AuthContext = Depends(require_auth),
) -> Metric:
    """Append a success metric at the end of the list."""
    require_owned_mission(mission_id, auth.user_id)

    display_order = len(missions_db.list_metrics(mission_id))
    metric = missions_db.add_metric(mission_id, body.metric_text, display_order)
    return Metric.model_validate(metric)


@router.patch("/{mission_id}/metrics/{metric_id}", response_model=Metric)
async def update_metric(
    body: MetricUpdate,
    mission_id: UUID = Path(..., description="Mission UUID"),
    metric_id: UUID = Path(..., description="Metric UUID"),
    auth: AuthContext = Depends(require_auth),
) -> Metric:
    require_owned_mission(mission_id, auth.user_id)

    metric = missions_db.update_metric(mission_id, metric_id, body.metric_text)
    if not metric:
        raise NotFoundError("Metric", metric_id)
    return Metric.model_validate(metric)


@router.delete("/{mission_id}/metrics/{metric_id}", status_code=204)
async def delete_metric(
    mission_id: UUID = Path(..., description="Mission UUID"),
    metric_id: UUID = Path(..., description="Metric UUID"),
    auth: AuthContext = Depends(require_auth),
) -> None:
    """Delete a metric; the mission text and steps stay as they are."""
    require_owned_mission(mission_id, auth.user_id)

    if not missions_db.delete_metric(mission_id, metric_id):
        raise NotFoundError("Metric", metric_id)


# ============================================================================
# Steps
# ============================================================================


@router.post("/{mission_id}/steps", response_model=MissionStep, status_code=201)
async def add_step(
    body: StepCreate,
    mission_id: UUID = Path(..., description="Mission UUID"),
    auth: AuthContext = Depends(require_auth),
) -> MissionStep:
    """
    Add a user-authored step, or a substep under a top-level step.

    Raises:
        InvalidInputError: Parent is unknown or is itself a substep
    """
    require_owned_mission(mission_id, auth.user_id)

    steps = steps_db.list_mission_steps(mission_id)
    parent_id = str(body.parent_step_id) if body.parent_step_id else None
    if parent_id is not None:
        parent = next((s for s in steps if str(s["id"]) == parent_id), None)
        if parent is None:
            raise InvalidInputError("Parent step not found in this mission")
        if parent.get("parent_step_id"):
            raise InvalidInputError("Steps can only be nested one level deep")

    display_order = body.display_order
    if display_order is None:
        display_order = sum(1 for s in steps if _parent_of(s) == parent_id)

    step = steps_db.insert_user_step(mission_id, body.step_text.strip(), display_order, body.parent_step_id)
    return MissionStep.model_validate(step)


@router.delete("/{mission_id}/steps/{step_id}", status_code=204)
async def delete_step(
    mission_id: UUID = Path(..., description="Mission UUID"),
    step_id: UUID = Path(..., description="Step UUID"),
    auth: AuthContext = Depends(require_auth),
) -> None:
    """Delete a step and its substeps (explicit user action)."""
    require_owned_mission(mission_id, auth.user_id)

    if not steps_db.delete_step(mission_id, step_id):
        raise NotFoundError("Step", step_id)
    logger.info(f"Deleted step {step_id} from mission {mission_id}")
