"""Tests for mission, metric and step db functions against a mocked Supabase client."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

from lifemap.db.mission_steps import delete_ai_steps, update_ai_step_text
from lifemap.db.missions import add_metric, delete_metric


def test_delete_metric_only_touches_metrics_table():
    mission_id = uuid4()
    metric_id = uuid4()

    with patch("lifemap.db.missions.get_supabase") as mock_supabase:
        table = mock_supabase.return_value.table
        table.return_value.delete.return_value.eq.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[{"id": str(metric_id)}]
        )

        assert delete_metric(mission_id, metric_id) is True

        table.assert_called_once_with("success_metrics")


def test_add_metric_generates_id():
    mission_id = uuid4()

    with patch("lifemap.db.missions.get_supabase") as mock_supabase:
        insert = mock_supabase.return_value.table.return_value.insert
        insert.return_value.execute.return_value = MagicMock(data=[{"id": "m1"}])

        add_metric(mission_id, "Ten paying clients", 2)

        row = insert.call_args.args[0]
        assert row["id"]
        assert row["mission_id"] == str(mission_id)
        assert row["display_order"] == 2


def test_ai_step_update_is_guarded():
    with patch("lifemap.db.mission_steps.get_supabase") as mock_supabase:
        query = mock_supabase.return_value.table.return_value.update.return_value
        query.eq.return_value = query
        query.execute.return_value = MagicMock(data=[])

        assert update_ai_step_text(uuid4(), uuid4(), "New text") is False

        filters = [c.args for c in query.eq.call_args_list]
        assert ("is_ai_generated", True) in filters
        assert ("is_user_edited", False) in filters


def test_delete_ai_steps_skips_empty_id_list():
    with patch("lifemap.db.mission_steps.get_supabase") as mock_supabase:
        assert delete_ai_steps(uuid4(), []) == 0
        mock_supabase.assert_not_called()
