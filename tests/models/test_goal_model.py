"""Tests for the goal domain model."""

from __future__ import annotations

from ambitions.models.goal import (
    MUTABLE_FIELDS,
    SUMMARY_FIELDS,
    Goal,
    GoalItem,
    GoalStatus,
    LadderSummary,
    new_goal_id,
)


class TestGoal:
    def test_summary_copies_mirrored_fields(self, make_goal):
        goal = make_goal("G", progress=35)
        summary = goal.summary()
        assert summary.id == "G"
        assert summary.created_at == goal.created_at
        assert summary.matches(goal)

    def test_mirror_overwrites_every_field(self, make_goal):
        summary = make_goal("G").summary()
        changed = make_goal("G", title="Changed", status=GoalStatus.APPROVED, progress=90)

        summary.mirror(changed)

        for name in SUMMARY_FIELDS:
            assert getattr(summary, name) == getattr(changed, name)

    def test_dict_round_trip(self, make_goal):
        goal = make_goal("G", parent_id="P")
        goal.achievements = [GoalItem(id="ach-G-0", title="Launch", progress="50%")]
        goal.children = [make_goal("C", parent_id="G").summary()]

        data = goal.to_dict()

        assert data["status"] == "draft"
        assert data["created_at"].endswith("+00:00")
        assert Goal.from_dict(data) == goal

    def test_summary_from_dict_defaults(self, make_goal):
        data = make_goal("G").summary().to_dict()
        del data["user_name"]
        assert LadderSummary.from_dict(data).user_name == "Unassigned"

    def test_mutable_fields(self):
        assert "id" not in MUTABLE_FIELDS
        assert "created_at" not in MUTABLE_FIELDS
        assert {"status", "children", "updated_at"} <= MUTABLE_FIELDS

    def test_new_goal_id(self):
        first, second = new_goal_id(), new_goal_id()
        assert first.startswith("goal_")
        assert first != second
