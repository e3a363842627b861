"""Behavioral tests for adapting mission steps after a user edit."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from lifemap.chains.adapt_mission_steps import adapt_mission_step
from lifemap.core.errors import MalformedResponseError, NotFoundError, TransportError
from tests.fixtures_lifemap import (
    MISSION_ID,
    OTHER_USER_ID,
    STEP_S1,
    STEP_S1A,
    STEP_S1B,
    STEP_S2,
    STEP_S3,
    STEP_S3A,
    STEP_S4,
    USER_ID,
)


def _oracle(response=None, side_effect=None):
    oracle = MagicMock()
    oracle.generate = AsyncMock(return_value=response, side_effect=side_effect)
    return oracle


class TestAdaptMissionStep:
    """Edit of S2 (position 3) offers S1a, S3 and S3a; S1b is user-edited, S4 is out of range."""

    @pytest.mark.asyncio
    async def test_only_window_candidates_are_offered(self, fake_store):
        oracle = _oracle("[]")

        await adapt_mission_step(MISSION_ID, STEP_S2, "Register an LLC", USER_ID, oracle)

        prompt = oracle.generate.call_args.args[0]
        revisable = prompt.split("**Revisable Steps**")[1].split("IMPORTANT RULES")[0]
        for step_id in (STEP_S1A, STEP_S3, STEP_S3A):
            assert f"id={step_id}" in revisable
        for step_id in (STEP_S1, STEP_S1B, STEP_S2, STEP_S4):
            assert f"id={step_id}" not in revisable
        assert "[id=" + str(STEP_S1B) + "] Shoot photos of my physical work [USER]" in prompt

    @pytest.mark.asyncio
    async def test_updates_and_deletion_sentinel(self, fake_store):
        oracle = _oracle(
            json.dumps(
                [
                    {"stepId": str(STEP_S1A), "newText": "Pick five best projects", "reason": "focus"},
                    {"stepId": str(STEP_S3), "newText": "", "reason": "covered by the LLC"},
                    {"stepId": str(STEP_S1B), "newText": "forged", "reason": "user-owned"},
                    {"stepId": str(STEP_S4), "newText": "", "reason": "out of range"},
                ]
            )
        )

        result = await adapt_mission_step(MISSION_ID, STEP_S2, "Register an LLC", USER_ID, oracle)

        assert fake_store.step(STEP_S1A)["step_text"] == "Pick five best projects"
        assert fake_store.step(STEP_S3) is None
        assert fake_store.step(STEP_S3A) is None
        assert fake_store.step(STEP_S1B)["step_text"] == "Shoot photos of my physical work"
        assert fake_store.step(STEP_S4) is not None

        edited = fake_store.step(STEP_S2)
        assert edited["step_text"] == "Register an LLC"
        assert edited["is_user_edited"] is True

        assert result.applied_count == 3
        assert result.discarded_count == 2

    @pytest.mark.asyncio
    async def test_preview_writes_nothing(self, fake_store):
        oracle = _oracle(
            json.dumps(
                [
                    {"stepId": str(STEP_S3), "newText": "Find clients abroad", "reason": "r"},
                    {"stepId": str(STEP_S1B), "newText": "forged", "reason": "r"},
                ]
            )
        )

        result = await adapt_mission_step(
            MISSION_ID, STEP_S2, "Register an LLC", USER_ID, oracle, apply=False
        )

        assert [s.id for s in result.suggestions] == [str(STEP_S3)]
        assert result.applied_count == 0
        assert fake_store.step(STEP_S3)["step_text"] == "Find first clients"
        assert fake_store.step(STEP_S2)["step_text"] == "Register the company"
        assert fake_store.step(STEP_S2)["is_user_edited"] is False

    @pytest.mark.asyncio
    async def test_oracle_skipped_when_window_has_no_candidates(self, fake_store):
        for step in fake_store.steps:
            if step["is_ai_generated"]:
                step["is_user_edited"] = True
        oracle = _oracle("[]")

        result = await adapt_mission_step(MISSION_ID, STEP_S2, "Register an LLC", USER_ID, oracle)

        oracle.generate.assert_not_called()
        assert result.oracle_called is False
        assert fake_store.step(STEP_S2)["is_user_edited"] is True

    @pytest.mark.asyncio
    async def test_malformed_oracle_response_keeps_edit(self, fake_store):
        oracle = _oracle(side_effect=MalformedResponseError({"candidates": []}))
        neighbours_before = [fake_store.step(s) for s in (STEP_S1A, STEP_S3, STEP_S3A)]

        with pytest.raises(MalformedResponseError):
            await adapt_mission_step(MISSION_ID, STEP_S2, "Register an LLC", USER_ID, oracle)

        edited = fake_store.step(STEP_S2)
        assert edited["step_text"] == "Register an LLC"
        assert edited["is_user_edited"] is True
        assert [fake_store.step(s) for s in (STEP_S1A, STEP_S3, STEP_S3A)] == neighbours_before

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_edit_of_ai_step(self, fake_store):
        oracle = _oracle(side_effect=TransportError(503, "unavailable"))

        with pytest.raises(TransportError):
            await adapt_mission_step(MISSION_ID, STEP_S3, "Find clients abroad", USER_ID, oracle)

        edited = fake_store.step(STEP_S3)
        assert edited["step_text"] == "Find clients abroad"
        assert edited["is_ai_generated"] is True
        assert edited["is_user_edited"] is True
        assert fake_store.step(STEP_S3A)["step_text"] == "Reach out to local cafes"

    @pytest.mark.asyncio
    async def test_unknown_step_is_not_found(self, fake_store):
        with pytest.raises(NotFoundError):
            await adapt_mission_step(MISSION_ID, MISSION_ID, "x", USER_ID, _oracle("[]"))

    @pytest.mark.asyncio
    async def test_other_users_mission_is_not_found(self, fake_store):
        with pytest.raises(NotFoundError):
            await adapt_mission_step(MISSION_ID, STEP_S2, "x", OTHER_USER_ID, _oracle("[]"))
