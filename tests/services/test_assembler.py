"""Tests for GoalAggregateAssembler."""

from __future__ import annotations

from ambitions.services.assembler import GoalAggregateAssembler


class TestAssemble:
    async def test_no_parent(self, store, make_goal):
        goal = await store.insert(make_goal("G"))

        aggregate = await GoalAggregateAssembler(store).assemble(goal)

        assert aggregate.parent is None
        assert aggregate.to_dict()["parent"] is None

    async def test_parent_backlink(self, store, make_goal):
        await store.insert(make_goal("P", title="North star"))
        goal = await store.insert(make_goal("G", parent_id="P"))

        aggregate = await GoalAggregateAssembler(store).assemble(goal)

        assert aggregate.to_dict()["parent"] == {"id": "P", "title": "North star"}

    async def test_dangling_parent_omits_backlink(self, store, make_goal):
        goal = await store.insert(make_goal("G", parent_id="deleted"))

        aggregate = await GoalAggregateAssembler(store).assemble(goal)

        assert aggregate.parent is None
        assert aggregate.goal.parent_id == "deleted"

    async def test_children_returned_as_stored(self, store, make_goal):
        parent = make_goal("P")
        parent.children = [make_goal("C", parent_id="P").summary()]
        parent = await store.insert(parent)

        aggregate = await GoalAggregateAssembler(store).assemble(parent)

        assert aggregate.goal.children == parent.children

    async def test_never_writes(self, store, make_goal):
        await store.insert(make_goal("P"))
        goal = await store.insert(make_goal("G", parent_id="P"))
        before = await store.list_all()

        await GoalAggregateAssembler(store).assemble(goal)

        assert await store.list_all() == before


class TestAssembleMany:
    async def test_shared_parent(self, store, make_goal):
        await store.insert(make_goal("P", title="Shared"))
        children = [
            await store.insert(make_goal("C1", parent_id="P")),
            await store.insert(make_goal("C2", parent_id="P")),
        ]

        aggregates = await GoalAggregateAssembler(store).assemble_many(children)

        assert [a.parent.title for a in aggregates] == ["Shared", "Shared"]
