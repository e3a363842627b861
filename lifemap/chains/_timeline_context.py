"""Context shared by the prediction and adaptation prompts of a branch."""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from lifemap.core.config import get_settings
from lifemap.core.schemas_timeline import DEFAULT_BRANCH_NAMES
from lifemap.db import events as events_db
from lifemap.db import missions as missions_db
from lifemap.db import timelines as timelines_db


@dataclass
class BranchContext:
    """Branch name, mission, metrics and recent shared history."""

    branch_name: str
    current_age: int
    past_start: int
    mission_text: str | None = None
    metrics: list[str] = field(default_factory=list)
    past_events: list[dict[str, Any]] = field(default_factory=list)

    @property
    def mission_block(self) -> str:
        return self.mission_text.strip() if self.mission_text and self.mission_text.strip() else "No mission defined"

    @property
    def metrics_block(self) -> str:
        return ", ".join(self.metrics) if self.metrics else "No metrics defined"

    @property
    def past_block(self) -> str:
        if not self.past_events:
            return "No past events recorded"
        return "\n".join(f"Year {e['year']}: {e['event_text']}" for e in self.past_events)


def branch_name_for(timeline_id: UUID, branch_index: int) -> str:
    branch = timelines_db.get_branch(timeline_id, branch_index)
    if branch and branch.get("branch_name"):
        return branch["branch_name"]
    return DEFAULT_BRANCH_NAMES[branch_index]


def mission_metrics(mission_id: UUID) -> list[str]:
    """Non-blank metric texts of a mission in display order."""
    return [
        m["metric_text"].strip()
        for m in missions_db.list_metrics(mission_id)
        if (m.get("metric_text") or "").strip()
    ]


def load_branch_context(timeline: dict[str, Any], branch_index: int) -> BranchContext:
    """Gather the prompt context of one branch of a timeline."""
    settings = get_settings()
    timeline_id = UUID(str(timeline["id"]))
    current_age = int(timeline["current_age"])
    past_start = max(0, current_age - settings.PAST_HISTORY_YEARS)

    context = BranchContext(
        branch_name=branch_name_for(timeline_id, branch_index),
        current_age=current_age,
        past_start=past_start,
        past_events=events_db.list_past_events(timeline_id, past_start, current_age),
    )

    mission = missions_db.get_mission_for_branch(timeline_id, branch_index)
    if mission:
        context.mission_text = mission.get("mission_text")
        context.metrics = mission_metrics(UUID(str(mission["id"])))

    return context
