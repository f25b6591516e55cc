"""Tests for the goal status transition policy table."""

from __future__ import annotations

import itertools

import pytest

from ambitions.core.policy import (
    Actor,
    DenyReason,
    evaluate_transition,
    legal_transitions,
    next_statuses,
)
from ambitions.models.goal import GoalStatus

LEGAL = legal_transitions()

ILLEGAL_PAIRS = [
    pair for pair in itertools.product(GoalStatus, GoalStatus) if pair not in LEGAL
]
MANAGER_ONLY = [pair for pair, actors in LEGAL.items() if actors == {Actor.MANAGER}]
OWNER_ONLY = [pair for pair, actors in LEGAL.items() if actors == {Actor.OWNER}]


class TestTable:
    def test_table_has_eight_edges(self):
        assert len(LEGAL) == 8

    def test_no_self_loops(self):
        assert all(frm != to for frm, to in LEGAL)

    def test_manager_only_edges(self):
        assert set(MANAGER_ONLY) == {
            (GoalStatus.AWAITING_APPROVAL, GoalStatus.APPROVED),
            (GoalStatus.AWAITING_APPROVAL, GoalStatus.DRAFT),
        }

    def test_archive_while_awaiting_allows_either_role(self):
        actors = LEGAL[(GoalStatus.AWAITING_APPROVAL, GoalStatus.ARCHIVED)]
        assert actors == {Actor.OWNER, Actor.MANAGER}

    def test_completed_is_terminal(self):
        assert next_statuses(GoalStatus.COMPLETED) == {}

    def test_next_statuses_from_draft(self):
        assert set(next_statuses(GoalStatus.DRAFT)) == {
            GoalStatus.AWAITING_APPROVAL,
            GoalStatus.ARCHIVED,
        }


class TestEvaluate:
    @pytest.mark.parametrize(("current", "requested"), ILLEGAL_PAIRS)
    def test_illegal_pairs_are_invalid_for_every_role(self, current, requested):
        decision = evaluate_transition(current, requested, is_owner=True, is_manager=True)
        assert not decision.allowed
        assert decision.reason is DenyReason.INVALID_TRANSITION

    @pytest.mark.parametrize("status", list(GoalStatus))
    def test_same_status_is_invalid(self, status):
        decision = evaluate_transition(status, status, is_owner=True, is_manager=False)
        assert decision.reason is DenyReason.INVALID_TRANSITION

    @pytest.mark.parametrize(("current", "requested"), MANAGER_ONLY)
    def test_manager_only_pairs_forbid_owner(self, current, requested):
        decision = evaluate_transition(current, requested, is_owner=True, is_manager=False)
        assert not decision.allowed
        assert decision.reason is DenyReason.FORBIDDEN_ROLE
        assert decision.required_role == "manager"

    @pytest.mark.parametrize(("current", "requested"), MANAGER_ONLY)
    def test_manager_only_pairs_allow_manager(self, current, requested):
        decision = evaluate_transition(current, requested, is_owner=False, is_manager=True)
        assert decision.allowed
        assert decision.reason is None

    @pytest.mark.parametrize(("current", "requested"), OWNER_ONLY)
    def test_owner_only_pairs_forbid_outsider(self, current, requested):
        decision = evaluate_transition(current, requested, is_owner=False, is_manager=False)
        assert decision.reason is DenyReason.FORBIDDEN_ROLE
        assert decision.required_role == "owner"

    @pytest.mark.parametrize(("current", "requested"), OWNER_ONLY)
    def test_owner_only_pairs_forbid_manager(self, current, requested):
        decision = evaluate_transition(current, requested, is_owner=False, is_manager=True)
        assert decision.reason is DenyReason.FORBIDDEN_ROLE

    @pytest.mark.parametrize(("current", "requested"), OWNER_ONLY)
    def test_owner_only_pairs_allow_owner(self, current, requested):
        assert evaluate_transition(current, requested, is_owner=True, is_manager=False).allowed

    def test_either_role_edge_reports_both_roles(self):
        decision = evaluate_transition(
            GoalStatus.AWAITING_APPROVAL,
            GoalStatus.ARCHIVED,
            is_owner=False,
            is_manager=False,
        )
        assert decision.reason is DenyReason.FORBIDDEN_ROLE
        assert decision.required_role == "owner or manager"

    def test_decision_carries_pair(self):
        decision = evaluate_transition(
            GoalStatus.DRAFT, GoalStatus.AWAITING_APPROVAL, is_owner=True, is_manager=False
        )
        assert decision.from_status is GoalStatus.DRAFT
        assert decision.to_status is GoalStatus.AWAITING_APPROVAL

    def test_legal_transitions_returns_copy(self):
        table = legal_transitions()
        table.clear()
        assert len(legal_transitions()) == 8
