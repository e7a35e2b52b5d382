# src/intunerun/core/batch.py
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from intunerun.core.stats import ERROR, SKIPPED_CAP, UPDATED, RunStatistics
from intunerun.http.errors import RunCancelled
from intunerun.http.throttle import Sleeper

log = logging.getLogger(__name__)

# callback(item, stats) -> outcome counter name, or None if it counted itself
ItemCallback = Callable[[Any, RunStatistics], Optional[str]]


@dataclass(frozen=True)
class BatchWindow:
    index: int
    start: int
    end: int  # exclusive
    total_batches: int

    @property
    def size(self) -> int:
        return self.end - self.start

    @property
    def is_last(self) -> bool:
        return self.index == self.total_batches - 1


@dataclass(frozen=True)
class BatchReport:
    batch_count: int
    items_seen: int
    cap_reached: bool


def plan_windows(count: int, batch_size: int) -> list[BatchWindow]:
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    total = math.ceil(count / batch_size) if count else 0
    return [
        BatchWindow(i, i * batch_size, min((i + 1) * batch_size, count), total)
        for i in range(total)
    ]


class BatchIterator:
    """
    Walks items in fixed-size windows, one item at a time, pausing between
    windows.

    Once `max_actions` is reached on `action_counter`, the remaining items are
    counted as SkippedCapReachedCount without calling the callback; iteration
    still runs to the end so every item is accounted for.
    """

    def __init__(
        self,
        batch_size: int,
        inter_batch_delay: float = 0.0,
        *,
        max_actions: Optional[int] = None,
        action_counter: str = UPDATED,
        sleep: Optional[Callable[[float], None]] = None,
        logger: Optional[logging.Logger] = None,
        on_batch: Optional[Callable[[BatchWindow], None]] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if inter_batch_delay < 0:
            raise ValueError("inter_batch_delay must be >= 0")
        if max_actions is not None and max_actions < 0:
            raise ValueError("max_actions must be >= 0")
        self.batch_size = int(batch_size)
        self.inter_batch_delay = float(inter_batch_delay)
        self.max_actions = max_actions
        self.action_counter = action_counter
        self._sleep = sleep or Sleeper()
        self._log = logger or log
        self._on_batch = on_batch

    def _cap_hit(self, stats: RunStatistics) -> bool:
        return self.max_actions is not None and stats.get(self.action_counter) >= self.max_actions

    def run(self, items: Sequence[Any], callback: ItemCallback, stats: RunStatistics) -> BatchReport:
        windows = plan_windows(len(items), self.batch_size)
        cap_logged = False
        seen = 0

        for window in windows:
            self._log.info(
                "Batch %d/%d: items %d-%d of %d",
                window.index + 1, window.total_batches, window.start + 1, window.end, len(items),
            )
            for item in items[window.start:window.end]:
                seen += 1
                if self._cap_hit(stats):
                    if not cap_logged:
                        self._log.warning(
                            "Action cap of %d reached on %s; remaining items are skipped",
                            self.max_actions, self.action_counter,
                        )
                        cap_logged = True
                    stats.increment(SKIPPED_CAP)
                    continue
                self._process_one(item, callback, stats)

            if self._on_batch is not None:
                self._on_batch(window)
            if not window.is_last and self.inter_batch_delay > 0:
                self._log.info("Waiting %.1fs before next batch", self.inter_batch_delay)
                self._sleep(self.inter_batch_delay)

        return BatchReport(batch_count=len(windows), items_seen=seen, cap_reached=cap_logged)

    def _process_one(self, item: Any, callback: ItemCallback, stats: RunStatistics) -> None:
        cp = stats.checkpoint()
        before = sum(cp["counters"].values())
        try:
            outcome = callback(item, stats)
        except RunCancelled:
            raise
        except Exception as ex:
            self._log.error("Item %s failed: %s", _describe(item), ex)
            self._count_error(stats, cp)
            return

        recorded = stats.terminal_total() - before
        if recorded > 1:
            self._log.error(
                "Item %s recorded %d outcomes; counted as a single error", _describe(item), recorded
            )
            self._count_error(stats, cp)
            return
        if outcome is not None:
            if recorded:
                # the outcome the callback counted itself wins
                self._log.warning(
                    "Item %s returned %s after already recording an outcome; ignored",
                    _describe(item), outcome,
                )
                return
            if not stats.is_terminal(outcome):
                stats.add_terminal(outcome)
            stats.increment(outcome)
            self._log.debug("Item %s -> %s", _describe(item), outcome)
            return
        if recorded == 0:
            self._log.error("Item %s recorded no outcome; counted as error", _describe(item))
            stats.increment(ERROR)

    @staticmethod
    def _count_error(stats: RunStatistics, cp: dict) -> None:
        # drop whatever the item counted, top-level and per dimension, keep one error
        touched = stats.rollback(cp)
        stats.increment(ERROR, dimension=touched[0] if len(touched) == 1 else None)


def run_batches(
    items: Sequence[Any],
    batch_size: int,
    callback: ItemCallback,
    inter_batch_delay: float = 0.0,
    *,
    stats: Optional[RunStatistics] = None,
    **kwargs,
) -> RunStatistics:
    stats = stats if stats is not None else RunStatistics()
    BatchIterator(batch_size, inter_batch_delay, **kwargs).run(items, callback, stats)
    return stats


def _describe(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("id", "serialNumber", "deviceName", "displayName"):
            if item.get(key):
                return str(item[key])
    return repr(item)[:80]
