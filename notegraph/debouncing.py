"""Coalescing of recompute requests.

Editors fire a recompute on every keystroke or slider move. The
:class:`RecomputeDebouncer` keeps only the latest request per graph id and runs
the pending requests at a fixed cadence, on a ``threading.Timer`` or, when
called from inside a running asyncio loop, via ``loop.call_later``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

__all__ = ["RecomputeDebouncer"]

logger = logging.getLogger(__name__)


@dataclass
class _PendingCall:
    args: tuple[Any, ...]
    kwargs: dict[str, Any]


class RecomputeDebouncer:
    """Run ``callback(graph_id, *args, **kwargs)`` for the latest request per graph.

    Parameters
    ----------
    callback:
        Called once per pending graph id on each tick.
    execute_every_ms:
        Tick cadence in milliseconds.

    A callback that raises is logged with its traceback; the remaining graphs
    of the tick and all later ticks still run.
    """

    def __init__(self, callback: Callable[..., Any], *, execute_every_ms: int = 100) -> None:
        if execute_every_ms <= 0:
            raise ValueError("execute_every_ms must be > 0")
        self._callback = callback
        self._execute_every_s = execute_every_ms / 1000.0
        self._pending: "OrderedDict[Hashable, _PendingCall]" = OrderedDict()
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None

    def __call__(self, graph_id: Hashable, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            self._pending[graph_id] = _PendingCall(args=args, kwargs=dict(kwargs))
            self._pending.move_to_end(graph_id)
            if self._timer is None:
                self._schedule_next_locked()

    @property
    def pending(self) -> tuple[Hashable, ...]:
        with self._lock:
            return tuple(self._pending)

    def cancel(self, graph_id: Optional[Hashable] = None) -> None:
        """Drop the pending request for ``graph_id`` (all requests when ``None``)."""
        with self._lock:
            if graph_id is None:
                self._pending.clear()
            else:
                self._pending.pop(graph_id, None)
            if not self._pending:
                self._cancel_timer_locked()

    def flush(self) -> int:
        """Run every pending request now; returns how many ran."""
        with self._lock:
            self._cancel_timer_locked()
            calls = self._take_locked()
        return self._run(calls)

    def _schedule_next_locked(self) -> None:
        delay_s = self._execute_every_s
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(delay_s, self._on_tick)
            timer.daemon = True
            self._timer = timer
            timer.start()
            return

        self._timer = loop.call_later(delay_s, self._on_tick)

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _take_locked(self) -> list[tuple[Hashable, _PendingCall]]:
        calls = list(self._pending.items())
        self._pending.clear()
        return calls

    def _on_tick(self) -> None:
        with self._lock:
            self._timer = None
            calls = self._take_locked()
        self._run(calls)

    def _run(self, calls: list[tuple[Hashable, _PendingCall]]) -> int:
        for graph_id, call in calls:
            try:
                self._callback(graph_id, *call.args, **call.kwargs)
            except Exception:
                logger.exception("RecomputeDebouncer callback failed for graph %r", graph_id)
        return len(calls)
