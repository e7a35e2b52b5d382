import pytest
import requests

from conftest import FakeSession, SleepRecorder, make_response
from intunerun.http.client import HttpClient
from intunerun.http.errors import (
    ForbiddenError, HttpError, MalformedResponseError, NetworkError, NotFoundError, ServerError,
    ThrottleError,
)
from intunerun.http.models import CollectionPage, EntityResponse, RawContent, RequestDescriptor


def _client(session, sleeps, **kw):
    kw.setdefault("max_retries", 5)
    kw.setdefault("initial_backoff", 5.0)
    return HttpClient("https://graph.example", session=session, sleep=sleeps, **kw)


def test_success_returns_entity(session, sleeps):
    session.add(make_response(200, {"id": "abc"}))
    resp = _client(session, sleeps).execute(RequestDescriptor("GET", "/v1.0/me"))
    assert resp == EntityResponse({"id": "abc"})
    assert session.calls[0]["url"] == "https://graph.example/v1.0/me"
    assert sleeps.waits == []


def test_collection_page_is_typed(session, sleeps):
    session.add(make_response(200, {"value": [{"id": 1}], "@odata.nextLink": "https://next"}))
    resp = _client(session, sleeps).execute(RequestDescriptor("GET", "/things"))
    assert isinstance(resp, CollectionPage)
    assert resp.items == [{"id": 1}]
    assert resp.next_link == "https://next"


def test_binary_body_is_raw_content(session, sleeps):
    session.add(make_response(201, content=b"\x00\x01", headers={"Content-Type": "application/octet-stream"}))
    resp = _client(session, sleeps).execute(RequestDescriptor("PUT", "/file", data=b"\x00\x01"))
    assert resp == RawContent(b"\x00\x01", "application/octet-stream")


def test_no_content_is_empty_entity(session, sleeps):
    session.add(make_response(204))
    assert _client(session, sleeps).execute(RequestDescriptor("PATCH", "/x", json={"a": 1})) == EntityResponse({})


@pytest.mark.parametrize("body", [b"{not json", b"\xff\xfe not utf-8"])
def test_malformed_json_body_raises_typed_error(session, sleeps, body):
    session.add(make_response(200, content=body, headers={"Content-Type": "application/json"}))
    with pytest.raises(MalformedResponseError) as exc:
        _client(session, sleeps).execute(RequestDescriptor("GET", "/x"))
    assert isinstance(exc.value, HttpError)
    assert exc.value.status == 200
    assert exc.value.url == "https://graph.example/x"
    assert exc.value.attempts == 1
    assert exc.value.body_snippet
    assert isinstance(exc.value.__cause__, ValueError)
    assert sleeps.waits == []


def test_non_finite_retry_after_falls_back_to_backoff(session, sleeps):
    session.add(make_response(429, headers={"Retry-After": "nan"}),
                make_response(503, headers={"Retry-After": "inf"}),
                make_response(200, {}))
    _client(session, sleeps).execute(RequestDescriptor("GET", "/x"))
    assert sleeps.waits == [5.0, 10.0]


@pytest.mark.parametrize("k", [1, 2, 3, 4])
def test_throttled_k_times_then_success_doubles_backoff(session, sleeps, k):
    session.add(*[make_response(429) for _ in range(k)], make_response(200, {"ok": True}))
    resp = _client(session, sleeps).execute(RequestDescriptor("GET", "/x"))
    assert resp.data == {"ok": True}
    assert sleeps.waits == [5.0 * 2 ** i for i in range(k)]
    assert len(session.calls) == k + 1


def test_retry_after_overrides_single_wait(session, sleeps):
    session.add(
        make_response(429),
        make_response(503, headers={"Retry-After": "7"}),
        make_response(429),
        make_response(200, {}),
    )
    _client(session, sleeps).execute(RequestDescriptor("GET", "/x"))
    # backoff still doubles underneath the server hint
    assert sleeps.waits == [5.0, 7.0, 20.0]


def test_retries_resend_same_request(session, sleeps):
    session.add(make_response(500), make_response(200, {}))
    _client(session, sleeps).execute(
        RequestDescriptor("PATCH", "/x", json={"groupTag": "A"}, headers={"Authorization": "Bearer t"})
    )
    first, second = session.calls
    assert first == second
    assert first["json"] == {"groupTag": "A"}
    assert first["headers"]["Content-Type"] == "application/json"


def test_always_throttled_exhausts_budget(session, sleeps):
    session.add(*[make_response(429) for _ in range(6)])
    with pytest.raises(ThrottleError) as exc:
        _client(session, sleeps).execute(RequestDescriptor("GET", "/x"))
    assert exc.value.status_code == 429
    assert exc.value.attempts == 6
    assert len(session.calls) == 6
    assert sleeps.waits == [5.0, 10.0, 20.0, 40.0, 80.0]


def test_server_error_exhaustion_carries_last_status(session, sleeps):
    session.add(make_response(429), make_response(502))
    with pytest.raises(ServerError) as exc:
        _client(session, sleeps, max_retries=1).execute(RequestDescriptor("GET", "/x"))
    assert exc.value.status == 502


def test_descriptor_overrides_retry_budget(session, sleeps):
    session.add(make_response(429), make_response(429))
    with pytest.raises(ThrottleError):
        _client(session, sleeps).execute(
            RequestDescriptor("GET", "/x", max_retries=1, initial_backoff=0.5)
        )
    assert sleeps.waits == [0.5]


@pytest.mark.parametrize("status,exc_type", [(403, ForbiddenError), (404, NotFoundError), (400, HttpError)])
def test_permanent_errors_are_not_retried(session, sleeps, status, exc_type):
    session.add(make_response(status, {"error": {"message": "nope"}}))
    with pytest.raises(exc_type) as exc:
        _client(session, sleeps).execute(RequestDescriptor("GET", "/x"))
    assert exc.value.status == status
    assert "nope" in exc.value.body_snippet
    assert len(session.calls) == 1
    assert sleeps.waits == []


def test_network_errors_retry_then_raise(session, sleeps):
    session.add(requests.exceptions.ConnectionError("boom"), requests.exceptions.Timeout("slow"))
    with pytest.raises(NetworkError) as exc:
        _client(session, sleeps, max_retries=1).execute(RequestDescriptor("GET", "/x"))
    assert exc.value.status == -1
    assert sleeps.waits == [5.0]


def test_retry_is_logged_with_attempt_and_wait(session, sleeps, caplog):
    session.add(make_response(429), make_response(200, {}))
    with caplog.at_level("WARNING"):
        _client(session, sleeps).execute(RequestDescriptor("GET", "/x"))
    assert "retry 1/5 in 5.0s" in caplog.text


def test_absolute_urls_are_used_verbatim(session, sleeps):
    session.add(make_response(200, {}))
    _client(session, sleeps).get_json("https://other.example/page?$skiptoken=abc")
    assert session.calls[0]["url"] == "https://other.example/page?$skiptoken=abc"
