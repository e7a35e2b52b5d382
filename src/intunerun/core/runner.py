# src/intunerun/core/runner.py
from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from intunerun.app import event_bus
from intunerun.core.batch import BatchIterator, BatchWindow, ItemCallback
from intunerun.core.stats import UPDATED, RunStatistics

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunSettings:
    batch_size: int = 50
    inter_batch_delay: float = 10.0
    max_actions: Optional[int] = None
    dry_run: bool = False
    action_counter: str = UPDATED

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], **overrides) -> "RunSettings":
        values = {
            "batch_size": cfg.get("batch_size", 50),
            "inter_batch_delay": cfg.get("inter_batch_delay_seconds", 10.0),
            "max_actions": cfg.get("max_actions"),
            "dry_run": cfg.get("dry_run", False),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass(frozen=True)
class RunSummary:
    name: str
    counters: Dict[str, int]
    dimensions: Dict[str, Dict[str, int]] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    dry_run: bool = False
    batch_count: int = 0
    item_count: int = 0
    cap_reached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"Runbook": self.name}
        out.update(self.counters)
        if self.dimensions:
            out["Breakdown"] = self.dimensions
        out.update({
            "TotalItems": self.item_count,
            "BatchCount": self.batch_count,
            "CapReached": self.cap_reached,
            "DryRun": self.dry_run,
            "ElapsedSeconds": round(self.elapsed_seconds, 3),
        })
        return out


def run_runbook(
    name: str,
    *,
    load: Callable[[], Sequence[Any]],
    process: ItemCallback,
    settings: RunSettings,
    stats: Optional[RunStatistics] = None,
    sleep: Optional[Callable[[float], None]] = None,
    on_cleanup: Iterable[Callable[[], None]] = (),
    logger: Optional[logging.Logger] = None,
    clock: Callable[[], float] = time.monotonic,
) -> RunSummary:
    """
    Load the working set, process it in batches and summarise the counters.

    Errors that escape (failed collection fetch, auth, cancellation) are logged
    and re-raised after cleanup; no summary is produced for an aborted run.
    """
    lg = logger or log
    stats = stats if stats is not None else RunStatistics()
    started = clock()
    lg.info("Starting %s (dry_run=%s, batch_size=%d, delay=%.1fs, max_actions=%s)",
            name, settings.dry_run, settings.batch_size, settings.inter_batch_delay, settings.max_actions)
    event_bus.publish("run.started", {"runbook": name, "dry_run": settings.dry_run})

    def _on_batch(window: BatchWindow) -> None:
        event_bus.publish("run.batch.completed", {
            "runbook": name,
            "batch": window.index + 1,
            "batches": window.total_batches,
            "size": window.size,
        })

    try:
        items = list(load())
        iterator = BatchIterator(
            settings.batch_size,
            settings.inter_batch_delay,
            max_actions=settings.max_actions,
            action_counter=settings.action_counter,
            sleep=sleep,
            logger=lg,
            on_batch=_on_batch,
        )
        report = iterator.run(items, process, stats)
    except Exception as ex:
        lg.error("%s aborted: %s", name, ex)
        event_bus.publish("run.failed", {"runbook": name, "error": str(ex)})
        raise
    finally:
        _cleanup(on_cleanup, lg)

    snap = stats.snapshot()
    summary = RunSummary(
        name=name,
        counters=snap["counters"],
        dimensions=snap["dimensions"],
        elapsed_seconds=clock() - started,
        dry_run=settings.dry_run,
        batch_count=report.batch_count,
        item_count=report.items_seen,
        cap_reached=report.cap_reached,
    )
    if stats.terminal_total() != report.items_seen:
        lg.warning("%s: %d outcome(s) recorded for %d item(s)",
                   name, stats.terminal_total(), report.items_seen)
    lg.info("Finished %s: %s", name, summary.to_dict())
    event_bus.publish("run.completed", summary.to_dict())
    return summary


def _cleanup(callbacks: Iterable[Callable[[], None]], lg: logging.Logger) -> None:
    for cb in callbacks:
        try:
            cb()
        except Exception:
            lg.exception("Cleanup step %s failed", getattr(cb, "__name__", cb))
