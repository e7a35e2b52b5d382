from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from intunerun.core.logs import log_dry_run

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    action: str
    target: str
    before: Any = None
    after: Any = None
    dry_run: bool = False
    performed: bool = False
    response: Any = None

    @property
    def ok(self) -> bool:
        return self.performed or self.dry_run


class DryRunGate:
    """
    Decides whether a mutating call really happens. Set once per run.

    In dry-run mode the would-be effect is logged at the DRYRUN level and a
    synthetic success is returned; `perform` is never called.
    """

    def __init__(self, enabled: bool, logger: Optional[logging.Logger] = None):
        self._enabled = bool(enabled)
        self._log = logger or log

    @property
    def enabled(self) -> bool:
        return self._enabled

    def is_dry_run(self) -> bool:
        return self._enabled

    def execute(
        self,
        action: str,
        target: str,
        perform: Callable[[], Any],
        *,
        before: Any = None,
        after: Any = None,
    ) -> MutationResult:
        if self._enabled:
            log_dry_run(self._log, "Would %s %s: %r -> %r", action, target, before, after)
            return MutationResult(action, target, before, after, dry_run=True, performed=False)

        response = perform()
        self._log.info("%s %s: %r -> %r", action, target, before, after)
        return MutationResult(action, target, before, after, dry_run=False, performed=True, response=response)
