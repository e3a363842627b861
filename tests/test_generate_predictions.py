"""Behavioral tests for bulk prediction generation."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from lifemap.chains.generate_predictions import generate_branch_predictions
from lifemap.core.errors import TransportError
from tests.fixtures_lifemap import EVENT_AI_45, EVENT_USER_40, TIMELINE_ID, USER_ID

PREDICTIONS = json.dumps(
    [
        {"year": 33, "event": "Rent a shared studio"},
        {"year": 40, "event": "Collides with the user's plan"},
        {"year": 52, "event": "Open a second location"},
        {"year": 52, "event": "Duplicate year"},
        {"year": 120, "event": "Too old"},
        {"year": 29, "event": "In the past"},
    ]
)


def _oracle(response=None, side_effect=None):
    oracle = MagicMock()
    oracle.generate = AsyncMock(return_value=response, side_effect=side_effect)
    return oracle


def _predictions(fake_store, branch_index=0):
    return [e for e in fake_store.events if e["branch_index"] == branch_index and e["is_prediction"]]


class TestGenerateBranchPredictions:

    @pytest.mark.asyncio
    async def test_replaces_untouched_predictions(self, fake_store):
        result = await generate_branch_predictions(TIMELINE_ID, 0, USER_ID, _oracle(PREDICTIONS))

        assert sorted(p["year"] for p in result.predictions) == [33, 52]
        assert sorted(e["year"] for e in _predictions(fake_store)) == [33, 52]
        assert fake_store.get_event(EVENT_USER_40)["event_text"] == "Move abroad"
        assert result.language == "en"

    @pytest.mark.asyncio
    async def test_running_twice_leaves_one_prediction_per_year(self, fake_store):
        await generate_branch_predictions(TIMELINE_ID, 0, USER_ID, _oracle(PREDICTIONS))
        await generate_branch_predictions(TIMELINE_ID, 0, USER_ID, _oracle(PREDICTIONS))

        years = [e["year"] for e in _predictions(fake_store)]
        assert sorted(years) == [33, 52]

    @pytest.mark.asyncio
    async def test_user_edited_prediction_is_kept(self, fake_store):
        fake_store.mark_event_user_edited(EVENT_AI_45, "Studio wins an international award")
        oracle = _oracle(json.dumps([{"year": 45, "event": "Overwrite attempt"}, {"year": 60, "event": "Retire"}]))

        await generate_branch_predictions(TIMELINE_ID, 0, USER_ID, oracle)

        kept = fake_store.get_event(EVENT_AI_45)
        assert kept["event_text"] == "Studio wins an international award"
        assert [e["event_text"] for e in fake_store.event_at(0, 45)] == ["Studio wins an international award"]
        assert len(fake_store.event_at(0, 60)) == 1

    @pytest.mark.asyncio
    async def test_prompt_carries_context(self, fake_store):
        oracle = _oracle("[]")

        await generate_branch_predictions(TIMELINE_ID, 0, USER_ID, oracle)

        prompt = oracle.generate.call_args.args[0]
        assert "Creative Entrepreneur" in prompt
        assert "Year 28: Started freelancing as a designer" in prompt
        assert "Year 40: Move abroad" in prompt
        assert "Ten paying clients" in prompt

    @pytest.mark.asyncio
    async def test_empty_answer_keeps_existing_predictions(self, fake_store):
        result = await generate_branch_predictions(TIMELINE_ID, 0, USER_ID, _oracle("I cannot help with that."))

        assert result.predictions == []
        assert len(_predictions(fake_store)) == 3

    @pytest.mark.asyncio
    async def test_transport_failure_deletes_nothing(self, fake_store):
        with pytest.raises(TransportError):
            await generate_branch_predictions(
                TIMELINE_ID, 0, USER_ID, _oracle(side_effect=TransportError(500, "boom"))
            )

        assert len(_predictions(fake_store)) == 3
