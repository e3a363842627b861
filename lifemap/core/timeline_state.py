"""Immutable in-memory view of a whole timeline.

A timeline always has exactly five branch slots addressed by index 0-4.
Updates are pure functions that return a new state and leave the input as is.
"""

from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping
from uuid import UUID

from lifemap.core.context_window import order_steps
from lifemap.core.schemas_timeline import (
    BRANCH_COUNT,
    DEFAULT_BRANCH_NAMES,
    Event,
    Metric,
    Mission,
    MissionStep,
)


@dataclass(frozen=True)
class BranchSlot:
    """Everything that hangs off one possibility branch."""

    index: int
    name: str
    user_events: tuple[Event, ...] = ()
    predictions: tuple[Event, ...] = ()
    mission: Mission | None = None


@dataclass(frozen=True)
class TimelineState:
    timeline_id: UUID
    current_age: int
    branches: tuple[BranchSlot, ...]
    past_events: tuple[Event, ...] = ()

    def __post_init__(self) -> None:
        if len(self.branches) != BRANCH_COUNT:
            raise ValueError(f"A timeline has exactly {BRANCH_COUNT} branches, got {len(self.branches)}")
        for position, slot in enumerate(self.branches):
            if slot.index != position:
                raise ValueError(f"Branch slot {position} carries index {slot.index}")

    def branch(self, index: int) -> BranchSlot:
        _check_index(index)
        return self.branches[index]


def _check_index(index: int) -> None:
    if not 0 <= index < BRANCH_COUNT:
        raise IndexError(f"Branch index must be between 0 and {BRANCH_COUNT - 1}, got {index}")


def _by_year(events: Iterable[Event]) -> tuple[Event, ...]:
    return tuple(sorted(events, key=lambda e: e.year))


def build_timeline_state(
    timeline: Mapping[str, Any],
    branches: Iterable[Mapping[str, Any]],
    events: Iterable[Mapping[str, Any]],
    missions: Iterable[Mapping[str, Any]],
    metrics_by_mission: Mapping[str, list[Mapping[str, Any]]] | None = None,
    steps_by_mission: Mapping[str, list[Mapping[str, Any]]] | None = None,
) -> TimelineState:
    """
    Assemble a TimelineState from stored rows.

    Missing branch rows fall back to the default names, so the state always
    has five slots even for partially written timelines.
    """
    metrics_by_mission = metrics_by_mission or {}
    steps_by_mission = steps_by_mission or {}

    names = list(DEFAULT_BRANCH_NAMES)
    for row in branches:
        index = int(row["branch_index"])
        if 0 <= index < BRANCH_COUNT and row.get("branch_name"):
            names[index] = row["branch_name"]

    past: list[Event] = []
    user_events: list[list[Event]] = [[] for _ in range(BRANCH_COUNT)]
    predictions: list[list[Event]] = [[] for _ in range(BRANCH_COUNT)]
    for row in events:
        event = Event.model_validate(row)
        if event.branch_index is None:
            past.append(event)
        elif event.is_prediction:
            predictions[event.branch_index].append(event)
        else:
            user_events[event.branch_index].append(event)

    mission_slots: list[Mission | None] = [None] * BRANCH_COUNT
    for row in missions:
        mission_id = str(row["id"])
        metrics = sorted(metrics_by_mission.get(mission_id, []), key=lambda m: m.get("display_order") or 0)
        step_rows = {str(s["id"]): s for s in steps_by_mission.get(mission_id, [])}
        steps = [step_rows[item.id] for item in order_steps(step_rows.values())]
        mission = Mission.model_validate(
            {
                **row,
                "metrics": [Metric.model_validate(m) for m in metrics],
                "steps": [MissionStep.model_validate(s) for s in steps],
            }
        )
        mission_slots[mission.branch_index] = mission

    return TimelineState(
        timeline_id=UUID(str(timeline["id"])),
        current_age=int(timeline["current_age"]),
        past_events=_by_year(past),
        branches=tuple(
            BranchSlot(
                index=index,
                name=names[index],
                user_events=_by_year(user_events[index]),
                predictions=_by_year(predictions[index]),
                mission=mission_slots[index],
            )
            for index in range(BRANCH_COUNT)
        ),
    )


def _with_slot(state: TimelineState, index: int, slot: BranchSlot) -> TimelineState:
    _check_index(index)
    branches = list(state.branches)
    branches[index] = slot
    return replace(state, branches=tuple(branches))


def with_current_age(state: TimelineState, current_age: int) -> TimelineState:
    return replace(state, current_age=current_age)


def with_branch_name(state: TimelineState, index: int, name: str) -> TimelineState:
    return _with_slot(state, index, replace(state.branch(index), name=name))


def with_mission_text(state: TimelineState, index: int, mission_text: str) -> TimelineState:
    """Set a branch's mission text; metrics and steps are carried over untouched."""
    slot = state.branch(index)
    if slot.mission is None:
        raise ValueError(f"Branch {index} has no mission")
    mission = slot.mission.model_copy(update={"mission_text": mission_text})
    return _with_slot(state, index, replace(slot, mission=mission))


def without_metric(state: TimelineState, index: int, metric_id: UUID) -> TimelineState:
    """Remove one metric; the mission text and steps are carried over untouched."""
    slot = state.branch(index)
    if slot.mission is None:
        return state
    metrics = [m for m in slot.mission.metrics if m.id != metric_id]
    mission = slot.mission.model_copy(update={"metrics": metrics})
    return _with_slot(state, index, replace(slot, mission=mission))


def with_user_event(state: TimelineState, event: Event) -> TimelineState:
    """Put a user event in its (branch, year) slot, replacing an earlier user entry."""
    if event.branch_index is None:
        past = [e for e in state.past_events if e.year != event.year]
        return replace(state, past_events=_by_year([*past, event]))

    slot = state.branch(event.branch_index)
    user_events = [e for e in slot.user_events if e.year != event.year]
    return _with_slot(
        state,
        event.branch_index,
        replace(slot, user_events=_by_year([*user_events, event])),
    )


def with_predictions(state: TimelineState, index: int, predictions: Iterable[Event]) -> TimelineState:
    slot = state.branch(index)
    return _with_slot(state, index, replace(slot, predictions=_by_year(predictions)))
