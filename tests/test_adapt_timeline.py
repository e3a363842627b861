"""Behavioral tests for adapting branch predictions after a user edit."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from lifemap.chains.adapt_timeline import adapt_timeline_event
from lifemap.core.errors import NotFoundError, ParseError, TransportError
from tests.fixtures_lifemap import (
    EVENT_AI_35,
    EVENT_AI_45,
    EVENT_AI_50,
    EVENT_USER_40,
    OTHER_USER_ID,
    TIMELINE_ID,
    USER_ID,
)


def _oracle(response=None, side_effect=None):
    oracle = MagicMock()
    oracle.generate = AsyncMock(return_value=response, side_effect=side_effect)
    return oracle


def _sent_prompt(oracle):
    return oracle.generate.call_args.args[0]


class TestAdaptTimelineEvent:
    """Edit-triggered adaptation of nearby AI predictions."""

    @pytest.mark.asyncio
    async def test_end_to_end_edit_of_year_forty(self, fake_store):
        oracle = _oracle(
            json.dumps(
                [
                    {"id": str(EVENT_AI_45), "newText": "Studio opens a Lisbon branch", "reason": "moved abroad"},
                    {"id": str(EVENT_USER_40), "newText": "Stay home", "reason": "forged"},
                    {"id": str(EVENT_AI_35), "newText": "Outside the window", "reason": "forged"},
                    {"year": 38, "newText": "Start learning Portuguese", "reason": "prepare"},
                ]
            )
        )

        result = await adapt_timeline_event(
            TIMELINE_ID, 0, 40, "Move abroad permanently", USER_ID, oracle
        )

        prompt = _sent_prompt(oracle)
        assert "Years 37-39 (before) and Years 41-45 (after)" in prompt
        assert f"- id={EVENT_AI_45} |" in prompt
        assert f"- id={EVENT_AI_35} |" not in prompt
        assert f"- id={EVENT_AI_50} |" not in prompt
        assert f"- id={EVENT_USER_40} |" not in prompt

        edited = fake_store.get_event(EVENT_USER_40)
        assert edited["event_text"] == "Move abroad permanently"
        assert edited["is_user_edited"] is True

        assert fake_store.get_event(EVENT_AI_45)["event_text"] == "Studio opens a Lisbon branch"
        assert fake_store.get_event(EVENT_AI_35)["event_text"] == "Open a small studio downtown"
        assert fake_store.get_event(EVENT_AI_50)["event_text"] == "Launch a scholarship for young artists"

        inserted = fake_store.event_at(0, 38)
        assert len(inserted) == 1
        assert inserted[0]["is_prediction"] is True

        assert result.oracle_called is True
        assert result.applied_count == 2
        assert result.discarded_count == 2
        assert (result.window_start, result.window_end) == (37, 45)

    @pytest.mark.asyncio
    async def test_edit_is_marked_when_oracle_suggests_nothing(self, fake_store):
        oracle = _oracle("No changes needed: []")

        result = await adapt_timeline_event(TIMELINE_ID, 0, 40, "Move abroad permanently", USER_ID, oracle)

        assert result.applied_count == 0
        assert fake_store.get_event(EVENT_USER_40)["is_user_edited"] is True

    @pytest.mark.asyncio
    async def test_oracle_skipped_without_ai_predictions(self, fake_store):
        for event_id in (EVENT_AI_35, EVENT_AI_45, EVENT_AI_50):
            fake_store.delete_event(TIMELINE_ID, event_id)
        oracle = _oracle("[]")

        result = await adapt_timeline_event(TIMELINE_ID, 0, 40, "Move abroad permanently", USER_ID, oracle)

        oracle.generate.assert_not_called()
        assert result.oracle_called is False
        assert fake_store.get_event(EVENT_USER_40)["event_text"] == "Move abroad permanently"

    @pytest.mark.asyncio
    async def test_new_entry_replaces_prediction_in_same_year(self, fake_store):
        oracle = _oracle("[]")

        result = await adapt_timeline_event(TIMELINE_ID, 0, 45, "Return home", USER_ID, oracle)

        rows = fake_store.event_at(0, 45)
        assert len(rows) == 1
        assert rows[0]["id"] == result.edited_id
        assert rows[0]["is_prediction"] is False
        assert rows[0]["is_user_edited"] is True
        assert fake_store.get_event(EVENT_AI_45) is None

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_edit_and_predictions(self, fake_store):
        oracle = _oracle(side_effect=TransportError(503, "unavailable"))

        with pytest.raises(TransportError):
            await adapt_timeline_event(TIMELINE_ID, 0, 40, "Move abroad permanently", USER_ID, oracle)

        edited = fake_store.get_event(EVENT_USER_40)
        assert edited["event_text"] == "Move abroad permanently"
        assert edited["is_user_edited"] is True
        assert fake_store.get_event(EVENT_AI_45)["event_text"] == "Studio wins a national design award"

    @pytest.mark.asyncio
    async def test_edit_of_prediction_survives_oracle_failure(self, fake_store):
        oracle = _oracle(side_effect=TransportError(503, "unavailable"))

        with pytest.raises(TransportError):
            await adapt_timeline_event(
                TIMELINE_ID, 0, 45, "Studio goes international", USER_ID, oracle, event_id=EVENT_AI_45
            )

        edited = fake_store.get_event(EVENT_AI_45)
        assert edited["event_text"] == "Studio goes international"
        assert edited["is_prediction"] is True
        assert edited["is_user_edited"] is True

    @pytest.mark.asyncio
    async def test_unparseable_answer_changes_no_prediction(self, fake_store):
        oracle = _oracle("[invalid json")

        with pytest.raises(ParseError):
            await adapt_timeline_event(TIMELINE_ID, 0, 40, "Move abroad permanently", USER_ID, oracle)

        assert fake_store.get_event(EVENT_USER_40)["event_text"] == "Move abroad permanently"
        assert fake_store.event_at(0, 38) == []
        assert fake_store.get_event(EVENT_AI_45)["event_text"] == "Studio wins a national design award"

    @pytest.mark.asyncio
    async def test_other_users_timeline_is_not_found(self, fake_store):
        with pytest.raises(NotFoundError):
            await adapt_timeline_event(TIMELINE_ID, 0, 40, "x", OTHER_USER_ID, _oracle("[]"))

    @pytest.mark.asyncio
    async def test_custom_prompt_header_is_used(self, fake_store):
        fake_store.upsert_prompt(USER_ID, "timeline_adaptation", "Coach for {{branch_name}} at {{current_age}}.")
        oracle = _oracle("[]")

        await adapt_timeline_event(TIMELINE_ID, 0, 40, "Move abroad permanently", USER_ID, oracle)

        prompt = _sent_prompt(oracle)
        assert prompt.startswith("Coach for Creative Entrepreneur at 30.")
        assert "Return ONLY a JSON array" in prompt
