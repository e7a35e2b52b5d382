from __future__ import annotations
import json as _json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

NEXT_LINK = "@odata.nextLink"


@dataclass(frozen=True)
class RequestDescriptor:
    """One logical HTTP call. Retry budget/backoff of None means client default."""
    method: str
    url: str
    json: Any = None
    data: Optional[bytes] = None
    content_type: str = "application/json"
    params: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    max_retries: Optional[int] = None
    initial_backoff: Optional[float] = None

    def follow(self, url: str) -> "RequestDescriptor":
        # cursor URIs already carry the query string
        return replace(self, method="GET", url=url, json=None, data=None, params=None)

    def all_headers(self) -> Dict[str, str]:
        h = dict(self.headers)
        if self.json is not None or self.data is not None:
            h.setdefault("Content-Type", self.content_type)
        return h


@dataclass(frozen=True)
class CollectionPage:
    items: List[Dict[str, Any]]
    next_link: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EntityResponse:
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RawContent:
    content: bytes = b""
    content_type: str = ""


GraphResponse = Union[CollectionPage, EntityResponse, RawContent]


def parse_response(content_type: Optional[str], body: bytes) -> GraphResponse:
    """Raises ValueError when a JSON content type carries a body that is not UTF-8 JSON."""
    ctype = (content_type or "").lower()
    if not body:
        return EntityResponse({})
    if "json" not in ctype:
        return RawContent(body, content_type or "")
    data = _json.loads(body.decode("utf-8"))
    if isinstance(data, dict) and isinstance(data.get("value"), list):
        return CollectionPage(items=list(data["value"]), next_link=data.get(NEXT_LINK), raw=data)
    if isinstance(data, dict):
        return EntityResponse(data)
    # bare JSON arrays/scalars are wrapped so callers always see a mapping
    return EntityResponse({"value": data})


def as_json(resp: GraphResponse) -> Dict[str, Any]:
    if isinstance(resp, CollectionPage):
        return resp.raw or {"value": resp.items}
    if isinstance(resp, EntityResponse):
        return resp.data
    return {}
