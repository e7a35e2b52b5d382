import pytest

from intunerun.http.models import (
    CollectionPage, EntityResponse, RawContent, RequestDescriptor, as_json, parse_response
)


def test_follow_keeps_auth_and_drops_body():
    desc = RequestDescriptor("POST", "/x", json={"a": 1}, params={"$top": 5},
                             headers={"Authorization": "Bearer t"}, max_retries=2)
    nxt = desc.follow("https://graph/next?skiptoken=1")
    assert nxt.method == "GET"
    assert nxt.url == "https://graph/next?skiptoken=1"
    assert nxt.json is None and nxt.params is None
    assert nxt.headers == {"Authorization": "Bearer t"}
    assert nxt.max_retries == 2


def test_descriptor_is_immutable():
    desc = RequestDescriptor("GET", "/x")
    with pytest.raises(AttributeError):
        desc.url = "/y"


def test_content_type_only_for_bodies():
    assert "Content-Type" not in RequestDescriptor("GET", "/x").all_headers()
    assert RequestDescriptor("PUT", "/x", data=b"1", content_type="text/csv").all_headers() == {
        "Content-Type": "text/csv"
    }


def test_parse_response_variants():
    page = parse_response("application/json", b'{"value": [1, 2]}')
    assert page == CollectionPage(items=[1, 2], next_link=None, raw={"value": [1, 2]})
    assert parse_response("application/json", b'{"id": "x"}') == EntityResponse({"id": "x"})
    assert parse_response("text/plain", b"hi") == RawContent(b"hi", "text/plain")
    assert parse_response(None, b"") == EntityResponse({})


def test_as_json():
    assert as_json(EntityResponse({"a": 1})) == {"a": 1}
    assert as_json(RawContent(b"x")) == {}


@pytest.mark.parametrize("body", [b"{broken", b"\xff\xfe"])
def test_parse_response_rejects_undecodable_json(body):
    with pytest.raises(ValueError):
        parse_response("application/json; charset=utf-8", body)
