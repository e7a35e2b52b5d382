# src/intunerun/core/stats.py
from __future__ import annotations
import copy
import threading
from typing import Any, Dict, Iterable, List, Optional

UPDATED = "UpdatedCount"
NO_CHANGE = "NoChangeCount"
SKIPPED = "SkippedCount"
SKIPPED_CAP = "SkippedCapReachedCount"
NO_MATCH = "NoMatchCount"
ERROR = "ErrorCount"

TERMINAL_OUTCOMES = (UPDATED, NO_CHANGE, SKIPPED, SKIPPED_CAP, NO_MATCH, ERROR)


class RunStatistics:
    """
    Named integer counters for one run, plus an optional breakdown keyed by a
    secondary dimension (e.g. operating system).

    Terminal counters record the single outcome of each processed item; their
    sum must equal the number of items the batch iterator saw.
    """

    def __init__(self, terminal: Iterable[str] = TERMINAL_OUTCOMES, counters: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._terminal = list(dict.fromkeys(terminal))
        self._counters: Dict[str, int] = {name: 0 for name in self._terminal}
        for name in counters:
            self._counters.setdefault(name, 0)
        self._dimensions: Dict[str, Dict[str, int]] = {}

    # ---------- registration ----------
    def add_terminal(self, name: str) -> None:
        with self._lock:
            if name not in self._terminal:
                self._terminal.append(name)
            self._counters.setdefault(name, 0)
            for sub in self._dimensions.values():
                sub.setdefault(name, 0)

    def is_terminal(self, name: str) -> bool:
        return name in self._terminal

    @property
    def terminal_names(self) -> tuple:
        return tuple(self._terminal)

    # ---------- updates ----------
    def increment(self, name: str, by: int = 1, dimension: Optional[Any] = None) -> int:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + by
            if dimension is not None:
                sub = self._dimension_locked(str(dimension))
                sub[name] = sub.get(name, 0) + by
            return self._counters[name]

    def _dimension_locked(self, key: str) -> Dict[str, int]:
        sub = self._dimensions.get(key)
        if sub is None:
            sub = {name: 0 for name in self._counters}
            self._dimensions[key] = sub
        return sub

    # ---------- reads ----------
    def get(self, name: str) -> int:
        return self._counters.get(name, 0)

    def __getitem__(self, name: str) -> int:
        return self.get(name)

    def dimension(self, value: Any) -> Dict[str, int]:
        with self._lock:
            return dict(self._dimension_locked(str(value)))

    def terminal_counts(self) -> Dict[str, int]:
        with self._lock:
            return {name: self._counters.get(name, 0) for name in self._terminal}

    def checkpoint(self) -> Dict[str, Any]:
        """Terminal counters, top-level and per dimension, for a later rollback()."""
        with self._lock:
            return {
                "counters": {name: self._counters.get(name, 0) for name in self._terminal},
                "dimensions": {
                    key: {name: sub.get(name, 0) for name in self._terminal}
                    for key, sub in self._dimensions.items()
                },
            }

    def rollback(self, cp: Dict[str, Any]) -> List[str]:
        """
        Put terminal counters back to a checkpoint. Returns the dimension values
        whose terminal counters had moved since.
        """
        touched: List[str] = []
        with self._lock:
            for name in self._terminal:
                self._counters[name] = cp["counters"].get(name, 0)
            for key, sub in self._dimensions.items():
                old = cp["dimensions"].get(key, {})
                moved = False
                for name in self._terminal:
                    value = old.get(name, 0)
                    if sub.get(name, 0) != value:
                        sub[name] = value
                        moved = True
                if moved:
                    touched.append(key)
        return touched

    def terminal_total(self) -> int:
        with self._lock:
            return sum(self._counters.get(name, 0) for name in self._terminal)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "dimensions": copy.deepcopy(self._dimensions),
            }
