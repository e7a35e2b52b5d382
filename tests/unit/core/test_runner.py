import pytest

from conftest import SleepRecorder
from intunerun.app import event_bus
from intunerun.core.runner import RunSettings, run_runbook
from intunerun.core.stats import ERROR, UPDATED, RunStatistics
from intunerun.http.errors import ForbiddenError


def _clock(*values):
    it = iter(values)
    return lambda: next(it)


def test_summary_contains_counters_and_metadata():
    events = []
    event_bus.subscribe("run.batch.completed", events.append)
    summary = run_runbook(
        "demo",
        load=lambda: list(range(5)),
        process=lambda i, s: ERROR if i == 2 else UPDATED,
        settings=RunSettings(batch_size=2, inter_batch_delay=3, dry_run=True),
        sleep=SleepRecorder(),
        clock=_clock(100.0, 112.5),
    )
    assert summary.counters[UPDATED] == 4
    assert summary.counters[ERROR] == 1
    assert summary.batch_count == 3
    assert summary.item_count == 5
    d = summary.to_dict()
    assert d["UpdatedCount"] == 4
    assert d["DryRun"] is True
    assert d["BatchCount"] == 3
    assert d["ElapsedSeconds"] == 12.5
    assert [e["batch"] for e in events] == [1, 2, 3]


def test_load_failure_aborts_with_cleanup(caplog):
    cleaned = []
    failed = []
    event_bus.subscribe("run.failed", failed.append)

    def load():
        raise ForbiddenError(403, "/v1.0/things", "Forbidden")

    with pytest.raises(ForbiddenError):
        run_runbook("demo", load=load, process=lambda i, s: UPDATED, settings=RunSettings(),
                    on_cleanup=[lambda: cleaned.append(True)])
    assert cleaned == [True]
    assert failed and failed[0]["runbook"] == "demo"
    assert "demo aborted" in caplog.text


def test_cleanup_failure_does_not_mask_result(caplog):
    def bad_cleanup():
        raise OSError("temp file locked")

    summary = run_runbook("demo", load=lambda: [1], process=lambda i, s: UPDATED,
                          settings=RunSettings(), on_cleanup=[bad_cleanup], sleep=SleepRecorder())
    assert summary.counters[UPDATED] == 1
    assert "Cleanup step bad_cleanup failed" in caplog.text


def test_cap_is_taken_from_settings():
    summary = run_runbook("demo", load=lambda: list(range(4)), process=lambda i, s: UPDATED,
                          settings=RunSettings(batch_size=10, max_actions=2), stats=RunStatistics(),
                          sleep=SleepRecorder())
    assert summary.counters[UPDATED] == 2
    assert summary.counters["SkippedCapReachedCount"] == 2
    assert summary.cap_reached is True


def test_settings_from_config_overrides():
    cfg = {"batch_size": 25, "inter_batch_delay_seconds": 2, "max_actions": None, "dry_run": True}
    s = RunSettings.from_config(cfg, dry_run=False, batch_size=None)
    assert s == RunSettings(batch_size=25, inter_batch_delay=2, max_actions=None, dry_run=False)
