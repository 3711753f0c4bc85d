"""Optimistic ordering for draggable lists.

``OrderedList`` keeps two orders: the displayed one the user sees and the
confirmed one the server last acknowledged. ``OptimisticOrderSynchronizer``
drives it through Stable -> Reordering -> Reconciling -> Stable.

Overlapping reorders are serialized and superseded: at most one persistence
call is in flight per list. Reorders made while a call is outstanding update
the displayed order at once and are coalesced into a single follow-up call
carrying only the latest order. A failed call rolls the displayed order back
to the confirmed one, discarding any reorders queued behind it.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from .errors import AssetNotFoundError
from .logging_config import log_event
from .models import OrderAssignment

logger = logging.getLogger(__name__)

T = TypeVar("T")

PersistOrder = Callable[[list[OrderAssignment]], Awaitable[Any]]


def move_item(items: Sequence[T], from_index: int, to_index: int) -> list[T]:
    """Return a copy with the element at ``from_index`` moved to ``to_index``."""
    size = len(items)
    for name, index in (("from_index", from_index), ("to_index", to_index)):
        if not 0 <= index < size:
            raise IndexError(f"{name} {index} out of range for list of {size}")

    result = list(items)
    result.insert(to_index, result.pop(from_index))
    return result


def default_key(item: Any) -> str:
    """Item id from an ``id`` attribute or mapping key."""
    if isinstance(item, dict):
        return str(item["id"])
    return str(item.id)


class SyncState(str, Enum):
    STABLE = "stable"
    REORDERING = "reordering"
    RECONCILING = "reconciling"


@dataclass
class ReorderOutcome:
    """Result of a reorder once its persistence settled."""

    success: bool
    order: tuple
    error: Exception | None = None


class OrderedList(Generic[T]):
    """A list with a displayed (optimistic) and a confirmed (last-known-good) order."""

    def __init__(self, items: Iterable[T] = (), key: Callable[[T], str] = default_key):
        self.key = key
        self._confirmed: tuple[T, ...] = tuple(items)
        self._displayed: tuple[T, ...] = self._confirmed

    def __len__(self) -> int:
        return len(self._displayed)

    def __iter__(self) -> Iterator[T]:
        return iter(self._displayed)

    @property
    def displayed(self) -> tuple[T, ...]:
        return self._displayed

    @property
    def confirmed(self) -> tuple[T, ...]:
        return self._confirmed

    @property
    def is_diverged(self) -> bool:
        return self.keys(self._displayed) != self.keys(self._confirmed)

    def keys(self, items: Iterable[T] | None = None) -> list[str]:
        return [self.key(item) for item in (self._displayed if items is None else items)]

    def index_of(self, item_key: str) -> int:
        """Position of an item in the displayed order."""
        for i, item in enumerate(self._displayed):
            if self.key(item) == item_key:
                return i
        raise AssetNotFoundError(item_key)

    def apply_move(self, from_index: int, to_index: int) -> tuple[T, ...]:
        """Move an item in the displayed order only."""
        self._displayed = tuple(move_item(self._displayed, from_index, to_index))
        return self._displayed

    def promote(self, snapshot: Sequence[T] | None = None) -> None:
        """Mark an order as confirmed by the server."""
        self._confirmed = tuple(self._displayed if snapshot is None else snapshot)

    def rollback(self) -> None:
        """Discard unconfirmed changes."""
        self._displayed = self._confirmed

    def reset(self, items: Iterable[T]) -> None:
        """Replace both orders with authoritative state."""
        self._confirmed = tuple(items)
        self._displayed = self._confirmed


class OptimisticOrderSynchronizer(Generic[T]):
    """Applies reorders locally at once and persists them in the background.

    Args:
        ordered_list: The list to drive
        persist: Coroutine function receiving ``[OrderAssignment]``; raising
            means the server rejected the order
        start: Order value of the first position (0, or 1 for lists whose
            API counts from 1)
        on_error: Called with the exception after a rollback
        refetch: Optional coroutine function returning authoritative items,
            awaited after a rollback
    """

    def __init__(
        self,
        ordered_list: OrderedList[T],
        persist: PersistOrder,
        start: int = 0,
        on_error: Callable[[Exception], None] | None = None,
        refetch: Callable[[], Awaitable[Iterable[T]]] | None = None,
    ):
        self.list = ordered_list
        self._persist = persist
        self.start = start
        self.on_error = on_error
        self.refetch = refetch

        self._state = SyncState.STABLE
        self._task: asyncio.Task | None = None
        self._pending = False
        self._closed = False

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def has_pending_reorder(self) -> bool:
        """True when a reorder is waiting behind the in-flight call."""
        return self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    def assignments_for(self, items: Sequence[T]) -> list[OrderAssignment]:
        """Sequential order assignments derived from positions."""
        return [
            OrderAssignment(item_id=self.list.key(item), new_order=self.start + i)
            for i, item in enumerate(items)
        ]

    def reorder(self, from_index: int, to_index: int) -> asyncio.Task | None:
        """Move an item in the displayed order and schedule persistence.

        The displayed order is updated before this returns. The returned task
        resolves to a ReorderOutcome once the list is stable again; ``None``
        is returned for a no-op move. Must be called from a running event loop.
        """
        if self._closed:
            raise RuntimeError("Synchronizer is closed")

        if from_index == to_index:
            move_item(self.list.displayed, from_index, to_index)  # validates indices
            return None

        self.list.apply_move(from_index, to_index)

        if self._state == SyncState.STABLE:
            self._state = SyncState.REORDERING
            self._task = asyncio.get_running_loop().create_task(self._reconcile())
        else:
            self._pending = True
        return self._task

    def move_by_key(self, item_key: str, target_key: str) -> asyncio.Task | None:
        """Drag-and-drop adapter: move ``item_key`` to where ``target_key`` is."""
        return self.reorder(self.list.index_of(item_key), self.list.index_of(target_key))

    async def wait_idle(self) -> None:
        """Wait until no persistence call is outstanding."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    def close(self) -> None:
        """Detach from the consumer. Late results no longer touch the list."""
        self._closed = True
        self.on_error = None
        self.refetch = None

    async def _reconcile(self) -> ReorderOutcome:
        while True:
            snapshot = self.list.displayed
            assignments = self.assignments_for(snapshot)
            self._pending = False
            self._state = SyncState.RECONCILING

            start = time.perf_counter()
            try:
                await self._persist(assignments)
            except Exception as e:
                duration_ms = (time.perf_counter() - start) * 1000
                log_event(
                    "reorder",
                    "persist_order",
                    "failure",
                    duration_ms=duration_ms,
                    reorder={"items": len(assignments), "error": str(e)},
                )
                return await self._handle_failure(e, snapshot)

            duration_ms = (time.perf_counter() - start) * 1000
            log_event(
                "reorder",
                "persist_order",
                "success",
                duration_ms=duration_ms,
                reorder={"items": len(assignments)},
            )

            if self._closed:
                return ReorderOutcome(success=True, order=snapshot)

            self.list.promote(snapshot)
            if not self._pending:
                self._state = SyncState.STABLE
                return ReorderOutcome(success=True, order=self.list.displayed)
            logger.debug("Persisting superseding order after in-flight call")

    async def _handle_failure(self, error: Exception, snapshot: tuple) -> ReorderOutcome:
        if self._closed:
            return ReorderOutcome(success=False, order=snapshot, error=error)

        logger.warning("Reorder failed, rolling back: %s", error)
        self.list.rollback()
        self._pending = False
        self._state = SyncState.STABLE

        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception:
                logger.exception("Reorder error callback raised")

        if self.refetch is not None:
            try:
                items = await self.refetch()
            except Exception:
                logger.exception("Refetch after failed reorder raised")
            else:
                # A newer reorder started during the refetch; it owns the list now
                if not self._closed and self._state == SyncState.STABLE:
                    self.list.reset(items)

        return ReorderOutcome(success=False, order=self.list.displayed, error=error)
