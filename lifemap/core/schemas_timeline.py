"""Pydantic schemas for timelines, branches, events, missions and steps."""

from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

BRANCH_COUNT = 5
MAX_AGE = 100
MAX_MISSION_CHARS = 5000

BranchIndex = Annotated[int, Field(ge=0, le=BRANCH_COUNT - 1)]
Age = Annotated[int, Field(ge=0, le=MAX_AGE)]

DEFAULT_BRANCH_NAMES = (
    "Possibility A",
    "Possibility B",
    "Possibility C",
    "Possibility D",
    "Possibility E",
)

PromptType = Literal[
    "timeline_prediction",
    "mission_steps",
    "timeline_adaptation",
    "steps_adaptation",
]


# ============================================================================
# Stored entities
# ============================================================================


class Timeline(BaseModel):
    """A user's lifetime timeline."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    user_id: UUID
    current_age: Age


class Branch(BaseModel):
    """One of the five possibility branches of a timeline."""

    model_config = ConfigDict(extra="ignore")

    branch_index: BranchIndex
    branch_name: str


class Event(BaseModel):
    """A timeline event. branch_index=None means shared past history."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    timeline_id: UUID
    branch_index: BranchIndex | None = None
    year: int
    event_text: str
    is_prediction: bool = False
    is_user_edited: bool = False


class Metric(BaseModel):
    """A success metric of a mission."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    metric_text: str = ""
    display_order: int = 0


class MissionStep(BaseModel):
    """A mission step; parent_step_id set means it is a substep."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    mission_id: UUID
    parent_step_id: UUID | None = None
    step_text: str
    display_order: int = 0
    is_ai_generated: bool = False
    is_user_edited: bool = False


class Mission(BaseModel):
    """Life mission of a (timeline, branch) pair."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    timeline_id: UUID
    branch_index: BranchIndex
    mission_text: str | None = Field(default=None, max_length=MAX_MISSION_CHARS)
    metrics: list[Metric] = Field(default_factory=list)
    steps: list[MissionStep] = Field(default_factory=list)


class CustomPrompt(BaseModel):
    """A per-user prompt override."""

    model_config = ConfigDict(extra="ignore")

    prompt_type: PromptType
    custom_prompt: str
    is_active: bool = True


# ============================================================================
# Request bodies
# ============================================================================


class TimelineCreate(BaseModel):
    """Request body for the first age submission."""

    current_age: Age


class TimelineUpdate(BaseModel):
    """Request body for an age change."""

    current_age: Age


class BranchRename(BaseModel):
    """Request body for renaming a branch."""

    branch_name: str = Field(..., min_length=1, max_length=200)


class EventSave(BaseModel):
    """Request body for saving a user event. Empty text removes the entry."""

    branch_index: BranchIndex | None = None
    year: Age
    text: str = ""


class MissionTextUpdate(BaseModel):
    """Request body for setting mission text."""

    mission_text: str = Field(..., max_length=MAX_MISSION_CHARS)


class MetricCreate(BaseModel):
    """Request body for adding a metric."""

    metric_text: str = ""


class MetricUpdate(BaseModel):
    """Request body for editing a metric."""

    metric_text: str


class StepCreate(BaseModel):
    """Request body for adding a user-authored step."""

    step_text: str = Field(..., min_length=1)
    parent_step_id: UUID | None = None
    display_order: int | None = None


class CustomPromptSave(BaseModel):
    """Request body for saving a prompt override."""

    custom_prompt: str = Field(..., min_length=1)
