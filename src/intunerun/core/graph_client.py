# src/intunerun/core/graph_client.py
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from intunerun.config.loader import get_http_config
from intunerun.core.dry_run import DryRunGate, MutationResult
from intunerun.http.client import HttpClient
from intunerun.http.models import (
    CollectionPage, EntityResponse, GraphResponse, RequestDescriptor, as_json
)

GRAPH_BASE = "https://graph.microsoft.com"

log = logging.getLogger(__name__)


class GraphClient:
    """
    Graph wrapper over the retrying HttpClient.

    Reads go straight through. Mutations go through the DryRunGate when one is
    given, so a dry run never sends a write to Graph.
    """
    def __init__(
        self,
        token_provider: Callable[[], str],
        *,
        gate: Optional[DryRunGate] = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        initial_backoff: float | None = None,
        session=None,
        sleep: Optional[Callable[[float], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if timeout is None or max_retries is None or initial_backoff is None:
            http_cfg = get_http_config()
            timeout = timeout if timeout is not None else http_cfg["timeout_seconds"]
            max_retries = max_retries if max_retries is not None else http_cfg["max_retries"]
            initial_backoff = initial_backoff if initial_backoff is not None else http_cfg["initial_backoff_seconds"]

        self._token_provider = token_provider
        self._gate = gate
        self._log = logger or log
        self._http = HttpClient(
            base_url=GRAPH_BASE,
            timeout=float(timeout),
            max_retries=int(max_retries),
            initial_backoff=float(initial_backoff),
            session=session,
            sleep=sleep,
            logger=logger,
        )

    @property
    def gate(self) -> Optional[DryRunGate]:
        return self._gate

    def _auth_headers(self, extra: Dict[str, str] | None = None) -> Dict[str, str]:
        h = {"Authorization": f"Bearer {self._token_provider()}"}
        if extra:
            h.update(extra)
        return h

    def descriptor(self, method: str, path_or_url: str, **kwargs) -> RequestDescriptor:
        headers = self._auth_headers(kwargs.pop("headers", None))
        return RequestDescriptor(method=method, url=path_or_url, headers=headers, **kwargs)

    def execute(self, descriptor: RequestDescriptor) -> GraphResponse:
        return self._http.execute(descriptor)

    # ---------- reads ----------
    def get_json(self, path_or_url: str, *, params: Dict[str, Any] | None = None) -> dict:
        return as_json(self.execute(self.descriptor("GET", path_or_url, params=params)))

    def iter_pages(
        self,
        path_or_url: str,
        *,
        params: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
        page_limit: int | None = None,
    ) -> Iterator[CollectionPage]:
        desc = self.descriptor("GET", path_or_url, params=params, headers=headers)
        pages = 0
        while True:
            resp = self.execute(desc)
            if isinstance(resp, EntityResponse):
                # a single entity where a collection was expected
                resp = CollectionPage(items=[], raw=resp.data)
            elif not isinstance(resp, CollectionPage):
                raise TypeError(f"Expected a JSON collection from {desc.url}")
            yield resp
            pages += 1
            if not resp.next_link or (page_limit and pages >= page_limit):
                return
            desc = desc.follow(resp.next_link)

    def fetch_all(
        self,
        path_or_url: str,
        *,
        params: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> List[Dict[str, Any]]:
        """All items of a paged collection, in server order. Any failure aborts the fetch."""
        out: List[Dict[str, Any]] = []
        pages = 0
        for page in self.iter_pages(path_or_url, params=params, headers=headers):
            out.extend(page.items)
            pages += 1
        self._log.info("Fetched %d item(s) in %d page(s) from %s", len(out), pages, path_or_url)
        return out

    # ---------- writes ----------
    def _mutate(self, action: str, desc: RequestDescriptor, before: Any, after: Any) -> MutationResult:
        if self._gate is None:
            return MutationResult(action, desc.url, before, after, performed=True,
                                  response=self.execute(desc))
        return self._gate.execute(action, desc.url, lambda: self.execute(desc), before=before, after=after)

    def post_json(self, path_or_url: str, *, json: Any = None, before: Any = None) -> MutationResult:
        return self._mutate("POST", self.descriptor("POST", path_or_url, json=json), before, json)

    def patch_json(self, path_or_url: str, *, json: Any = None, before: Any = None) -> MutationResult:
        return self._mutate("PATCH", self.descriptor("PATCH", path_or_url, json=json), before, json)

    def put_json(self, path_or_url: str, *, json: Any = None, before: Any = None) -> MutationResult:
        return self._mutate("PUT", self.descriptor("PUT", path_or_url, json=json), before, json)

    def delete(self, path_or_url: str, *, before: Any = None) -> MutationResult:
        return self._mutate("DELETE", self.descriptor("DELETE", path_or_url), before, None)

    def upload_bytes(
        self,
        path_or_url: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
    ) -> MutationResult:
        desc = self.descriptor("PUT", path_or_url, data=data, content_type=content_type)
        return self._mutate("UPLOAD", desc, None, f"{len(data)} bytes")
