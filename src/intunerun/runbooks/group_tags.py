# src/intunerun/runbooks/group_tags.py
from __future__ import annotations
import logging
from typing import Any, Dict, Mapping, Optional

from intunerun.core.graph_client import GraphClient
from intunerun.core.runner import RunSettings, RunSummary, run_runbook
from intunerun.core.stats import NO_CHANGE, NO_MATCH, SKIPPED, UPDATED, RunStatistics

NAME = "group-tags"

AUTOPILOT_DEVICES = "/v1.0/deviceManagement/windowsAutopilotDeviceIdentities"

log = logging.getLogger(__name__)


def _norm_serial(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def make_processor(graph: GraphClient, desired_tags: Mapping[str, str]):
    """
    Set each Autopilot device's group tag to the one listed for its serial.
    Serials missing from `desired_tags` are left alone.
    """
    lookup = {_norm_serial(k): (v or "") for k, v in desired_tags.items()}

    def process(device: Dict[str, Any], stats: RunStatistics) -> str:
        serial = _norm_serial(device.get("serialNumber"))
        if not serial or not device.get("id"):
            return SKIPPED
        want = lookup.get(serial)
        if want is None:
            return NO_MATCH
        current = device.get("groupTag") or ""
        if current == want:
            return NO_CHANGE
        graph.post_json(
            f"{AUTOPILOT_DEVICES}/{device['id']}/updateDeviceProperties",
            json={"groupTag": want},
            before={"groupTag": current},
        )
        return UPDATED

    return process


def run(
    graph: GraphClient,
    settings: RunSettings,
    *,
    desired_tags: Mapping[str, str],
    sleep=None,
    on_cleanup=(),
    **_: Any,
) -> RunSummary:
    # writes must go through a gate that agrees with the run settings
    if graph.gate is None or graph.gate.is_dry_run() != settings.dry_run:
        raise ValueError("group-tags needs a GraphClient gate matching dry_run=%s" % settings.dry_run)
    log.info("Loaded %d desired group tag(s)", len(desired_tags))
    return run_runbook(
        NAME,
        load=lambda: graph.fetch_all(AUTOPILOT_DEVICES),
        process=make_processor(graph, desired_tags),
        settings=settings,
        stats=RunStatistics(),
        sleep=sleep,
        on_cleanup=on_cleanup,
    )
