"""Bounded neighbourhood selection around an edited event or step.

The full ordered sequence is always serialized for continuity; only the
AI_GENERATED items inside the window are offered as revision candidates.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from lifemap.core.errors import NotFoundError
from lifemap.core.provenance import Provenance, event_provenance, is_adaptable, step_provenance

EDITED_MARKER = "[EDITED]"
USER_MARKER = "[USER]"
AI_MARKER = "[AI]"


@dataclass(frozen=True)
class SequenceItem:
    """One serialized item of an ordered sibling sequence."""

    id: str
    text: str
    provenance: Provenance
    ordinal: int
    year: int | None = None
    parent_id: str | None = None

    @property
    def is_substep(self) -> bool:
        return self.parent_id is not None


@dataclass(frozen=True)
class ContextWindow:
    """Edited item, its full sequence, and the eligible items inside the window."""

    items: list[SequenceItem]
    edited: SequenceItem
    before: list[SequenceItem] = field(default_factory=list)
    after: list[SequenceItem] = field(default_factory=list)
    lower: int = 0
    upper: int = 0

    @property
    def candidates(self) -> list[SequenceItem]:
        return [*self.before, *self.after]

    @property
    def eligible_ids(self) -> frozenset[str]:
        return frozenset(item.id for item in self.candidates)

    @property
    def has_eligible_items(self) -> bool:
        """True if any item other than the edited one may still be revised."""
        return any(
            is_adaptable(item.provenance) and item.id != self.edited.id for item in self.items
        )

    def marker_for(self, item: SequenceItem) -> str:
        if item.id == self.edited.id:
            return EDITED_MARKER
        if is_adaptable(item.provenance):
            return AI_MARKER
        return USER_MARKER


def order_events(events: Iterable[Mapping[str, Any]]) -> list[SequenceItem]:
    """Order branch events by year; a user-owned row sorts before an AI row of the same year."""
    rows = sorted(
        events,
        key=lambda e: (int(e["year"]), is_adaptable(event_provenance(e))),
    )
    return [
        SequenceItem(
            id=str(row["id"]),
            text=row.get("event_text") or "",
            provenance=event_provenance(row),
            ordinal=ordinal,
            year=int(row["year"]),
        )
        for ordinal, row in enumerate(rows)
    ]


def order_steps(steps: Iterable[Mapping[str, Any]]) -> list[SequenceItem]:
    """
    Flatten mission steps into display order.

    Top-level steps sort by display_order, each followed by its own substeps
    (also by display_order). Substeps whose parent is missing go last.
    """
    rows = list(steps)
    top_level = sorted(
        (s for s in rows if not s.get("parent_step_id")),
        key=lambda s: s.get("display_order", 0),
    )
    top_ids = {str(s["id"]) for s in top_level}

    children: dict[str, list[Mapping[str, Any]]] = {}
    orphans: list[Mapping[str, Any]] = []
    for step in rows:
        parent = step.get("parent_step_id")
        if not parent:
            continue
        if str(parent) in top_ids:
            children.setdefault(str(parent), []).append(step)
        else:
            orphans.append(step)

    flattened: list[Mapping[str, Any]] = []
    for parent in top_level:
        flattened.append(parent)
        flattened.extend(
            sorted(children.get(str(parent["id"]), []), key=lambda s: s.get("display_order", 0))
        )
    flattened.extend(sorted(orphans, key=lambda s: s.get("display_order", 0)))

    return [
        SequenceItem(
            id=str(row["id"]),
            text=row.get("step_text") or "",
            provenance=step_provenance(row),
            ordinal=ordinal,
            parent_id=str(row["parent_step_id"]) if row.get("parent_step_id") else None,
        )
        for ordinal, row in enumerate(flattened)
    ]


def _locate(items: list[SequenceItem], edited_id: str, entity: str) -> SequenceItem:
    for item in items:
        if item.id == edited_id:
            return item
    raise NotFoundError(entity, edited_id)


def build_event_window(
    events: Iterable[Mapping[str, Any]],
    edited_id: str,
    before: int,
    after: int,
) -> ContextWindow:
    """
    Select eligible predictions within a year radius of an edited event.

    The window covers years [edited_year - before, edited_year + after],
    both ends inclusive, excluding the edited year itself.

    Raises:
        NotFoundError: If edited_id is not in the sequence
    """
    items = order_events(events)
    edited = _locate(items, str(edited_id), "Edited event")
    year = edited.year or 0
    lower, upper = year - before, year + after

    eligible = [
        item
        for item in items
        if item.id != edited.id and is_adaptable(item.provenance) and item.year != year
    ]
    return ContextWindow(
        items=items,
        edited=edited,
        before=[i for i in eligible if lower <= (i.year or 0) < year],
        after=[i for i in eligible if year < (i.year or 0) <= upper],
        lower=lower,
        upper=upper,
    )


def build_step_window(
    steps: Iterable[Mapping[str, Any]],
    edited_id: str,
    before: int,
    after: int,
) -> ContextWindow:
    """
    Select eligible steps around an edited step in flattened display order.

    For an edited step at ordinal p the window is the same span as the
    slice ``sequence[p - before:p + after]``.

    Raises:
        NotFoundError: If edited_id is not in the sequence
    """
    items = order_steps(steps)
    edited = _locate(items, str(edited_id), "Edited step")
    p = edited.ordinal
    lower, upper = max(0, p - before), p + after - 1

    eligible = [i for i in items if i.id != edited.id and is_adaptable(i.provenance)]
    return ContextWindow(
        items=items,
        edited=edited,
        before=[i for i in eligible if lower <= i.ordinal < p],
        after=[i for i in eligible if p < i.ordinal <= upper],
        lower=lower,
        upper=upper,
    )


def render_event_sequence(window: ContextWindow) -> str:
    """Serialize every branch event with its id and provenance marker."""
    if not window.items:
        return "None"
    return "\n".join(
        f"- [id={item.id}] Year {item.year}: {item.text} {window.marker_for(item)}"
        for item in window.items
    )


def render_step_sequence(window: ContextWindow) -> str:
    """Serialize every step, numbering top-level steps and indenting substeps."""
    lines = []
    number = 0
    for item in window.items:
        if item.is_substep:
            prefix = "   -"
        else:
            number += 1
            prefix = f"{number}."
        lines.append(f"{prefix} [id={item.id}] {item.text} {window.marker_for(item)}")
    return "\n".join(lines) if lines else "None"
