"""API endpoints for AI generation and adaptation flows."""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path

from lifemap.chains.adapt_mission_steps import adapt_mission_step
from lifemap.chains.adapt_timeline import adapt_timeline_event
from lifemap.chains.generate_mission_steps import generate_mission_steps
from lifemap.chains.generate_predictions import generate_branch_predictions
from lifemap.core.auth_middleware import AuthContext, require_auth
from lifemap.core.llm import DeferredOracle, GenerationOracle
from lifemap.core.logging import get_logger
from lifemap.core.schemas_generation import (
    AdaptationResponse,
    AdaptEventRequest,
    AdaptStepRequest,
    GeneratePredictionsRequest,
    GenerateStepsRequest,
    PredictionsResponse,
    StepsResponse,
)
from lifemap.core.schemas_timeline import BranchIndex

logger = get_logger(__name__)

router = APIRouter()


def oracle_dependency() -> GenerationOracle:
    """Configured generation oracle, resolved when a flow first calls it."""
    return DeferredOracle()


@router.post(
    "/timelines/{timeline_id}/branches/{branch_index}/predictions/generate",
    response_model=PredictionsResponse,
)
async def generate_predictions(
    timeline_id: UUID = Path(..., description="Timeline UUID"),
    branch_index: BranchIndex = Path(..., description="Branch index (0-4)"),
    body: GeneratePredictionsRequest | None = Body(default=None),
    auth: AuthContext = Depends(require_auth),
    oracle: GenerationOracle = Depends(oracle_dependency),
) -> PredictionsResponse:
    """
    Replace a branch's AI predictions with a freshly generated set.

    User entries and user-edited predictions are kept.
    """
    return await generate_branch_predictions(
        timeline_id,
        branch_index,
        auth.user_id,
        oracle,
        language=body.language if body else None,
    )


@router.post(
    "/timelines/{timeline_id}/branches/{branch_index}/adapt",
    response_model=AdaptationResponse,
)
async def adapt_branch_event(
    body: AdaptEventRequest,
    timeline_id: UUID = Path(..., description="Timeline UUID"),
    branch_index: BranchIndex = Path(..., description="Branch index (0-4)"),
    auth: AuthContext = Depends(require_auth),
    oracle: GenerationOracle = Depends(oracle_dependency),
) -> AdaptationResponse:
    """Save an edited branch event and adapt the AI predictions around it."""
    return await adapt_timeline_event(
        timeline_id,
        branch_index,
        body.year,
        body.text.strip(),
        auth.user_id,
        oracle,
        event_id=body.event_id,
        language=body.language,
    )


@router.post("/missions/{mission_id}/steps/generate", response_model=StepsResponse)
async def generate_steps(
    mission_id: UUID = Path(..., description="Mission UUID"),
    body: GenerateStepsRequest | None = Body(default=None),
    auth: AuthContext = Depends(require_auth),
    oracle: GenerationOracle = Depends(oracle_dependency),
) -> StepsResponse:
    """Replace a mission's AI steps with a freshly generated plan."""
    return await generate_mission_steps(
        mission_id,
        auth.user_id,
        oracle,
        language=body.language if body else None,
    )


@router.post("/missions/{mission_id}/steps/{step_id}/adapt", response_model=AdaptationResponse)
async def adapt_step(
    body: AdaptStepRequest,
    mission_id: UUID = Path(..., description="Mission UUID"),
    step_id: UUID = Path(..., description="Step UUID"),
    auth: AuthContext = Depends(require_auth),
    oracle: GenerationOracle = Depends(oracle_dependency),
) -> AdaptationResponse:
    """
    Save an edited step and adapt the AI steps around it.

    With apply=false the suggestions are returned without writing anything.
    """
    return await adapt_mission_step(
        mission_id,
        step_id,
        body.text.strip(),
        auth.user_id,
        oracle,
        apply=body.apply,
        language=body.language,
    )
