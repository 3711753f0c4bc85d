"""Tests for optimistic reordering."""

import asyncio

import pytest

from gallerysync.errors import AssetNotFoundError, RemoteRejectionError
from gallerysync.ordering import (
    OptimisticOrderSynchronizer,
    OrderedList,
    SyncState,
    move_item,
)


def items(*ids):
    return [{"id": i, "name": i.upper()} for i in ids]


def ids(sequence):
    return [item["id"] for item in sequence]


class RecordingPersist:
    """Persist callable that records orders and can block or fail on demand."""

    def __init__(self, fail_on: set[int] | None = None):
        self.calls: list[list[tuple[str, int]]] = []
        self.fail_on = fail_on or set()
        self.gate = asyncio.Event()
        self.gate.set()

    async def __call__(self, assignments):
        call_number = len(self.calls)
        self.calls.append([(a.item_id, a.new_order) for a in assignments])
        await self.gate.wait()
        if call_number in self.fail_on:
            raise RemoteRejectionError("Failed to reorder", status_code=500)


class TestMoveItem:
    """Tests for the move helper."""

    def test_moves_forward_and_back(self):
        """Test both move directions."""
        assert move_item(["a", "b", "c"], 0, 2) == ["b", "c", "a"]
        assert move_item(["a", "b", "c"], 2, 0) == ["c", "a", "b"]

    def test_out_of_range(self):
        """Test that indices outside the list raise IndexError."""
        with pytest.raises(IndexError):
            move_item(["a"], 0, 1)
        with pytest.raises(IndexError):
            move_item([], 0, 0)

    def test_does_not_mutate(self):
        """Test that the input sequence is left alone."""
        source = ["a", "b"]
        move_item(source, 0, 1)
        assert source == ["a", "b"]


class TestOrderedList:
    """Tests for the two-order list."""

    def test_apply_move_and_rollback(self):
        """Test that a move only touches the displayed order until promoted."""
        ordered = OrderedList(items("a", "b", "c"))

        ordered.apply_move(0, 2)
        assert ids(ordered.displayed) == ["b", "c", "a"]
        assert ids(ordered.confirmed) == ["a", "b", "c"]
        assert ordered.is_diverged

        ordered.rollback()
        assert ids(ordered.displayed) == ["a", "b", "c"]
        assert not ordered.is_diverged

    def test_promote(self):
        """Test that promote confirms the displayed order."""
        ordered = OrderedList(items("a", "b"))
        ordered.apply_move(1, 0)
        ordered.promote()
        assert ids(ordered.confirmed) == ["b", "a"]

    def test_index_of_unknown(self):
        """Test that looking up a missing key raises."""
        with pytest.raises(AssetNotFoundError):
            OrderedList(items("a")).index_of("z")

    def test_custom_key(self):
        """Test lists of plain values with a key function."""
        ordered = OrderedList(["x", "y"], key=str)
        assert ordered.keys() == ["x", "y"]


class TestOptimisticOrderSynchronizer:
    """Tests for the reorder state machine."""

    def test_successful_reorder(self):
        """Test that a confirmed reorder keeps the new order and returns to stable."""

        async def run():
            persist = RecordingPersist()
            sync = OptimisticOrderSynchronizer(OrderedList(items("a", "b", "c")), persist)

            task = sync.reorder(0, 2)
            # Displayed order changes before any await
            assert ids(sync.list.displayed) == ["b", "c", "a"]
            assert sync.state == SyncState.REORDERING

            outcome = await task
            return sync, persist, outcome

        sync, persist, outcome = asyncio.run(run())

        assert outcome.success is True
        assert ids(outcome.order) == ["b", "c", "a"]
        assert ids(sync.list.confirmed) == ["b", "c", "a"]
        assert sync.state == SyncState.STABLE
        assert persist.calls == [[("b", 0), ("c", 1), ("a", 2)]]

    def test_failed_reorder_rolls_back(self):
        """Test that a rejected reorder restores the prior order and reports once."""
        errors = []

        async def run():
            persist = RecordingPersist(fail_on={0})
            sync = OptimisticOrderSynchronizer(
                OrderedList(items("a", "b", "c")), persist, on_error=errors.append
            )
            task = sync.reorder(0, 2)
            assert ids(sync.list.displayed) == ["b", "c", "a"]
            return sync, await task

        sync, outcome = asyncio.run(run())

        assert outcome.success is False
        assert isinstance(outcome.error, RemoteRejectionError)
        assert ids(sync.list.displayed) == ["a", "b", "c"]
        assert not sync.list.is_diverged
        assert sync.state == SyncState.STABLE
        assert len(errors) == 1

    def test_overlapping_reorders_are_coalesced(self):
        """Test that reorders during an in-flight call produce one follow-up call."""

        async def run():
            persist = RecordingPersist()
            persist.gate.clear()
            sync = OptimisticOrderSynchronizer(OrderedList(items("a", "b", "c")), persist)

            first = sync.reorder(0, 2)  # b c a
            await asyncio.sleep(0)
            assert sync.state == SyncState.RECONCILING

            second = sync.reorder(0, 1)  # c b a
            third = sync.reorder(1, 2)  # c a b
            assert second is first and third is first
            assert sync.has_pending_reorder
            assert ids(sync.list.displayed) == ["c", "a", "b"]

            persist.gate.set()
            return sync, persist, await first

        sync, persist, outcome = asyncio.run(run())

        assert outcome.success is True
        assert [[item_id for item_id, _ in call] for call in persist.calls] == [
            ["b", "c", "a"],
            ["c", "a", "b"],
        ]
        assert ids(sync.list.confirmed) == ["c", "a", "b"]
        assert sync.state == SyncState.STABLE

    def test_failure_discards_queued_reorders(self):
        """Test that a failed call rolls back past reorders queued behind it."""

        async def run():
            persist = RecordingPersist(fail_on={0})
            persist.gate.clear()
            sync = OptimisticOrderSynchronizer(OrderedList(items("a", "b", "c")), persist)

            task = sync.reorder(0, 2)
            await asyncio.sleep(0)
            sync.reorder(0, 1)

            persist.gate.set()
            return sync, persist, await task

        sync, persist, outcome = asyncio.run(run())

        assert outcome.success is False
        assert len(persist.calls) == 1
        assert ids(sync.list.displayed) == ["a", "b", "c"]
        assert not sync.has_pending_reorder

    def test_confirmed_order_survives_later_failure(self):
        """Test that a failure rolls back only to the last confirmed order."""

        async def run():
            persist = RecordingPersist(fail_on={1})
            sync = OptimisticOrderSynchronizer(OrderedList(items("a", "b", "c")), persist)

            await sync.reorder(2, 0)  # c a b, confirmed
            outcome = await sync.reorder(0, 2)  # a b c, rejected
            return sync, outcome

        sync, outcome = asyncio.run(run())

        assert outcome.success is False
        assert ids(sync.list.displayed) == ["c", "a", "b"]
        assert ids(sync.list.confirmed) == ["c", "a", "b"]

    def test_refetch_after_failure_resets_list(self):
        """Test that authoritative items replace both orders after a rollback."""

        async def refetch():
            return items("b", "a", "c", "d")

        async def run():
            persist = RecordingPersist(fail_on={0})
            sync = OptimisticOrderSynchronizer(
                OrderedList(items("a", "b", "c")), persist, refetch=refetch
            )
            return sync, await sync.reorder(0, 1)

        sync, outcome = asyncio.run(run())

        assert ids(outcome.order) == ["b", "a", "c", "d"]
        assert ids(sync.list.confirmed) == ["b", "a", "c", "d"]
        assert sync.state == SyncState.STABLE

    def test_start_offset(self):
        """Test one-based order values for APIs that count from 1."""

        async def run():
            persist = RecordingPersist()
            sync = OptimisticOrderSynchronizer(OrderedList(items("a", "b")), persist, start=1)
            await sync.reorder(1, 0)
            return persist

        persist = asyncio.run(run())

        assert persist.calls == [[("b", 1), ("a", 2)]]

    def test_noop_move(self):
        """Test that moving an item onto itself does nothing."""
        persist = RecordingPersist()
        sync = OptimisticOrderSynchronizer(OrderedList(items("a", "b")), persist)

        assert sync.reorder(1, 1) is None
        assert persist.calls == []
        assert sync.state == SyncState.STABLE

    def test_invalid_index_leaves_list_untouched(self):
        """Test that an out-of-range move raises before anything changes."""
        sync = OptimisticOrderSynchronizer(OrderedList(items("a", "b")), RecordingPersist())

        with pytest.raises(IndexError):
            sync.reorder(0, 5)
        assert ids(sync.list.displayed) == ["a", "b"]
        assert sync.state == SyncState.STABLE

    def test_move_by_key(self):
        """Test the drag-and-drop adapter."""

        async def run():
            sync = OptimisticOrderSynchronizer(OrderedList(items("a", "b", "c")), RecordingPersist())
            await sync.move_by_key("c", "a")
            return sync

        assert ids(asyncio.run(run()).list.confirmed) == ["c", "a", "b"]

    def test_close_ignores_late_results(self):
        """Test that results arriving after close leave the list alone."""
        errors = []

        async def run():
            persist = RecordingPersist(fail_on={0})
            persist.gate.clear()
            sync = OptimisticOrderSynchronizer(
                OrderedList(items("a", "b")), persist, on_error=errors.append
            )
            task = sync.reorder(0, 1)
            await asyncio.sleep(0)

            sync.close()
            with pytest.raises(RuntimeError):
                sync.reorder(0, 1)

            persist.gate.set()
            await sync.wait_idle()
            return sync, task.result()

        sync, outcome = asyncio.run(run())

        assert outcome.success is False
        assert errors == []
        assert ids(sync.list.displayed) == ["b", "a"]
        assert sync.closed
