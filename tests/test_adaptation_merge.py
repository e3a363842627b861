"""Tests for suggestion normalization, eligibility filtering and merge writes."""

from uuid import uuid4

import pytest

from lifemap.core.adaptation_merge import (
    AdaptationSuggestion,
    EventMergePlan,
    StepMergePlan,
    apply_event_merge,
    apply_step_merge,
    normalize_suggestion,
    persist_event_edit,
    persist_step_edit,
    plan_event_merge,
    plan_step_merge,
)
from lifemap.core.context_window import build_event_window, build_step_window
from lifemap.core.provenance import mark_event_edited, mark_step_edited
from tests.fixtures_lifemap import (
    EVENT_AI_35,
    EVENT_AI_45,
    EVENT_AI_50,
    EVENT_USER_40,
    EVENTS,
    MISSION_ID,
    STEP_S1,
    STEP_S1A,
    STEP_S1B,
    STEP_S2,
    STEP_S3,
    STEP_S3A,
    STEPS,
    TIMELINE_ID,
)


def _branch_zero(events):
    return [e for e in events if e["branch_index"] == 0]


class TestNormalizeSuggestion:
    def test_reads_step_keys(self):
        s = normalize_suggestion({"stepId": "abc", "newText": " Call studios ", "reason": "r"})
        assert s == AdaptationSuggestion(id="abc", new_text="Call studios", reason="r")

    def test_reads_event_keys(self):
        s = normalize_suggestion({"year": "41", "event": "Learn the language"})
        assert s.id is None
        assert s.year == 41
        assert s.new_text == "Learn the language"

    def test_bad_year_is_dropped(self):
        assert normalize_suggestion({"year": "soon", "newText": "x"}).year is None


class TestPlanEventMerge:
    """Eligibility filtering for event suggestions."""

    def _window(self):
        edited = mark_event_edited(
            next(e for e in EVENTS if e["id"] == str(EVENT_USER_40)), "Move abroad permanently"
        )
        rows = [e for e in _branch_zero(EVENTS) if e["id"] != edited["id"]] + [edited]
        return build_event_window(rows, str(EVENT_USER_40), before=3, after=5)

    def test_ineligible_ids_are_discarded(self):
        window = self._window()
        suggestions = [
            AdaptationSuggestion(id=str(EVENT_AI_45), new_text="Studio expands to Lisbon"),
            AdaptationSuggestion(id=str(EVENT_AI_35), new_text="outside window"),
            AdaptationSuggestion(id=str(EVENT_AI_50), new_text="outside window"),
            AdaptationSuggestion(id=str(EVENT_USER_40), new_text="rewrite the edit"),
            AdaptationSuggestion(id="unknown", new_text="made up"),
        ]

        plan = plan_event_merge(suggestions, window)

        assert plan.updates == {str(EVENT_AI_45): "Studio expands to Lisbon"}
        assert len(plan.discarded) == 4

    def test_new_year_inserts_only_in_free_window_years(self):
        window = self._window()
        suggestions = [
            AdaptationSuggestion(year=38, new_text="Learn Portuguese"),
            AdaptationSuggestion(year=40, new_text="edited year"),
            AdaptationSuggestion(year=45, new_text="occupied year"),
            AdaptationSuggestion(year=47, new_text="outside window"),
        ]

        plan = plan_event_merge(suggestions, window)

        assert plan.inserts == {38: "Learn Portuguese"}
        assert len(plan.discarded) == 3

    def test_empty_text_means_no_change(self):
        plan = plan_event_merge([AdaptationSuggestion(id=str(EVENT_AI_45), new_text="")], self._window())

        assert plan.change_count == 0
        assert plan.discarded == []


class TestPlanStepMerge:
    """Eligibility and deletion sentinel for step suggestions."""

    def test_empty_text_deletes_step_and_substeps(self):
        plan = plan_step_merge(
            [AdaptationSuggestion(id=str(STEP_S3), new_text="")],
            {str(STEP_S3), str(STEP_S3A)},
            STEPS,
        )

        assert plan.deletions == {str(STEP_S3), str(STEP_S3A)}
        assert plan.updates == {}

    def test_deletion_refused_when_substep_is_user_owned(self):
        plan = plan_step_merge(
            [AdaptationSuggestion(id=str(STEP_S1), new_text="")],
            {str(STEP_S1), str(STEP_S1A)},
            STEPS,
        )

        assert plan.deletions == set()
        assert len(plan.discarded) == 1

    def test_ineligible_step_is_discarded(self):
        plan = plan_step_merge(
            [AdaptationSuggestion(id=str(STEP_S2), new_text="Register an LLC")],
            {str(STEP_S3)},
            STEPS,
        )

        assert plan.updates == {}
        assert len(plan.discarded) == 1


class TestApplyMerge:
    """Writes go through the guarded db functions."""

    def test_edited_event_is_stored_as_user_edited(self, fake_store):
        edited = mark_event_edited(fake_store.get_event(EVENT_USER_40), "Move abroad permanently")

        persist_event_edit(TIMELINE_ID, 0, edited, is_new_event=False)

        stored = fake_store.get_event(EVENT_USER_40)
        assert stored["is_user_edited"] is True
        assert stored["event_text"] == "Move abroad permanently"

    def test_new_edit_takes_over_prediction_slot(self, fake_store):
        edited = mark_event_edited({"id": str(uuid4()), "year": 45}, "Return home")

        persist_event_edit(TIMELINE_ID, 0, edited, is_new_event=True)

        assert [e["event_text"] for e in fake_store.event_at(0, 45)] == ["Return home"]

    def test_empty_event_plan_writes_nothing(self, fake_store):
        before = [dict(e) for e in fake_store.events]

        result = apply_event_merge(EventMergePlan(), [], TIMELINE_ID, 0)

        assert result.applied_count == 0
        assert fake_store.events == before

    def test_user_edited_step_survives_forged_plan(self, fake_store):
        """A plan naming a user-owned step cannot change it: the write is guarded."""
        plan = StepMergePlan(updates={str(STEP_S1B): "overwritten"}, deletions={str(STEP_S2)})

        result = apply_step_merge(plan, [], MISSION_ID)

        assert result.applied_count == 0
        assert fake_store.step(STEP_S1B)["step_text"] == "Shoot photos of my physical work"
        assert fake_store.step(STEP_S2) is not None

    @pytest.mark.parametrize("new_text", ["", "rewritten", "   "])
    def test_provenance_invariant_for_any_suggestion(self, fake_store, new_text):
        steps = fake_store.list_mission_steps(MISSION_ID)
        edited = mark_step_edited(fake_store.get_step(STEP_S2), "Register the company this year")
        persist_step_edit(edited)
        rows = [edited if s["id"] == str(STEP_S2) else s for s in steps]
        window = build_step_window(rows, str(STEP_S2), before=2, after=3)
        suggestions = [
            AdaptationSuggestion(id=s["id"], new_text=new_text.strip()) for s in steps
        ]

        plan = plan_step_merge(suggestions, window.eligible_ids, rows)
        apply_step_merge(plan, suggestions, MISSION_ID)

        s1b = fake_store.step(STEP_S1B)
        assert s1b is not None
        assert s1b["step_text"] == "Shoot photos of my physical work"
        assert fake_store.step(STEP_S2)["step_text"] == "Register the company this year"
