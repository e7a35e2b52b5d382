import json

import pytest
import requests

from intunerun.app import event_bus


def make_response(status=200, body=None, headers=None, content=None):
    """Build a real requests.Response without touching the network."""
    resp = requests.Response()
    resp.status_code = status
    hdrs = dict(headers or {})
    if body is not None:
        resp._content = json.dumps(body).encode("utf-8")
        hdrs.setdefault("Content-Type", "application/json; charset=utf-8")
    else:
        resp._content = content if content is not None else b""
    resp.headers.update(hdrs)
    resp.encoding = "utf-8"
    return resp


class FakeSession:
    """Stands in for requests.Session; replays queued responses or raises queued exceptions."""

    def __init__(self, responses=()):
        self.queue = list(responses)
        self.calls = []

    def add(self, *responses):
        self.queue.extend(responses)

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.queue:
            raise AssertionError(f"unexpected request {method} {url}")
        nxt = self.queue.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


class SleepRecorder:
    def __init__(self):
        self.waits = []

    def __call__(self, seconds):
        self.waits.append(seconds)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture(autouse=True)
def clean_event_bus():
    saved = {k: list(v) for k, v in event_bus._subs.items()}
    event_bus._subs.clear()
    yield
    event_bus._subs.clear()
    event_bus._subs.update(saved)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    # never pick up a real config/appsettings.json or credentials
    monkeypatch.setenv("INTUNERUN_SETTINGS", str(tmp_path / "missing-appsettings.json"))
    for name in ("INTUNERUN_DRY_RUN", "INTUNERUN_BATCH_SIZE", "INTUNERUN_INTER_BATCH_DELAY",
                 "INTUNERUN_MAX_ACTIONS", "AZURE_TENANT_ID", "GRAPH_CLIENT_ID",
                 "GRAPH_CLIENT_SECRET", "GRAPH_ACCESS_TOKEN"):
        monkeypatch.delenv(name, raising=False)
