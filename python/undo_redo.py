"""
Debounced undo/redo history around a single document-update entry point.

A burst of tracked updates (typing, a drag fill, a paste) separated by less
than the debounce window becomes one history entry, so one undo reverts one
logical action. step() groups updates explicitly when timing alone would split
them.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Updater = Callable[[T], T]


@dataclass(frozen=True)
class GridConfig:
    """Tuning knobs for history coalescing."""

    debounce_ms: int = 300
    max_history: int = 50


class UndoRedoController(Generic[T]):
    """
    Bounded past/future stacks of full document snapshots.

    Usage:
        history = UndoRedoController(lambda: doc.state, doc.apply)
        history.tracked_update(lambda s: replace(s, ...))
        history.undo()
    """

    def __init__(
        self,
        get_state: Callable[[], T | None],
        apply_update: Callable[[Updater[T]], None],
        config: GridConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._get_state = get_state
        self._apply_update = apply_update
        self.config = config or GridConfig()
        self._clock = clock
        self._past: list[T] = []
        self._future: list[T] = []
        self._last_update: float | None = None
        self._step_depth = 0
        self._step_pushed = False

    @property
    def past(self) -> tuple[T, ...]:
        return tuple(self._past)

    @property
    def future(self) -> tuple[T, ...]:
        return tuple(self._future)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def _push_past(self, state: T) -> None:
        self._past.append(state)
        overflow = len(self._past) - self.config.max_history
        if overflow > 0:
            del self._past[:overflow]

    def tracked_update(self, updater: Updater[T]) -> None:
        """
        Apply an update, snapshotting the prior state if this starts a new action.

        A snapshot is pushed when more than debounce_ms passed since the last
        tracked update (or inside a step(), for its first update only). Pushing
        clears the redo stack.
        """
        current = self._get_state()
        if current is None:
            return

        now = self._clock()
        if self._step_depth > 0:
            should_push = not self._step_pushed
        else:
            elapsed_ms = None if self._last_update is None else (now - self._last_update) * 1000
            should_push = elapsed_ms is None or elapsed_ms > self.config.debounce_ms

        # History only changes once the update has gone through
        self._apply_update(updater)

        if should_push:
            self._push_past(current)
            self._future.clear()
            logger.debug("tracked_update: pushed snapshot (past=%d)", len(self._past))
        if self._step_depth > 0:
            self._step_pushed = True
        self._last_update = now

    @contextmanager
    def step(self) -> Iterator[None]:
        """Coalesce every tracked update inside the block into one history entry."""
        if self._step_depth == 0:
            self._step_pushed = False
        self._step_depth += 1
        try:
            yield
        finally:
            self._step_depth -= 1

    def undo(self) -> None:
        current = self._get_state()
        if not self._past or current is None:
            return
        previous = self._past.pop()
        self._future.append(current)
        # The next tracked update starts a new action and drops the redo stack
        self._last_update = None
        self._apply_update(lambda _: previous)

    def redo(self) -> None:
        current = self._get_state()
        if not self._future or current is None:
            return
        following = self._future.pop()
        self._push_past(current)
        self._last_update = None
        self._apply_update(lambda _: following)

    def reset(self) -> None:
        """Forget all history (e.g. when a different document is loaded)."""
        self._past.clear()
        self._future.clear()
        self._last_update = None
