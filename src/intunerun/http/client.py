from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Optional
import requests

from intunerun.http.errors import HttpError, MalformedResponseError, NetworkError, error_for_status
from intunerun.http.models import (
    GraphResponse, RequestDescriptor, as_json, parse_response
)
from intunerun.http.throttle import (
    DEFAULT_INITIAL_BACKOFF, DEFAULT_MAX_RETRIES, RetryState, Sleeper,
    is_retryable, parse_retry_after
)

log = logging.getLogger(__name__)


class HttpClient:
    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
        *,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self._session = session or requests.Session()
        self._sleep = sleep or Sleeper()
        self._log = logger or log

    def _full_url(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        if self.base_url:
            return f"{self.base_url}/{url.lstrip('/')}"
        return url

    def execute(self, descriptor: RequestDescriptor) -> GraphResponse:
        """Send one logical request, retrying 429/5xx and transport errors with backoff."""
        full = self._full_url(descriptor.url)
        method = descriptor.method.upper()
        state = RetryState(
            descriptor.max_retries if descriptor.max_retries is not None else self.max_retries,
            descriptor.initial_backoff if descriptor.initial_backoff is not None else self.initial_backoff,
        )

        while True:
            try:
                self._log.debug("HTTP %s %s", method, full)
                resp = self._session.request(
                    method=method,
                    url=full,
                    headers=descriptor.all_headers(),
                    params=descriptor.params,
                    json=descriptor.json,
                    data=descriptor.data,
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as ex:
                if not state.can_retry():
                    raise NetworkError(-1, full, str(ex), attempts=state.attempt + 1) from ex
                wait = state.next_wait()
                self._log.warning(
                    "%s %s failed (%s); retry %d/%d in %.1fs",
                    method, full, ex.__class__.__name__, state.attempt, state.max_retries, wait,
                )
                self._sleep(wait)
                continue

            status = resp.status_code
            if status < 400:
                self._log.debug("HTTP %s %s", status, full)
                try:
                    return parse_response(resp.headers.get("Content-Type"), resp.content or b"")
                except ValueError as ex:
                    # JSONDecodeError and UnicodeDecodeError are both ValueErrors
                    raise MalformedResponseError(
                        status, full, f"Malformed response body from {method} {full}: {ex}",
                        _safe_snip(resp), attempts=state.attempt + 1,
                    ) from ex

            if is_retryable(status) and state.can_retry():
                retry_after = parse_retry_after(resp.headers.get("Retry-After"))
                wait = state.next_wait(retry_after)
                self._log.warning(
                    "HTTP %s from %s %s; retry %d/%d in %.1fs%s",
                    status, method, full, state.attempt, state.max_retries, wait,
                    " (Retry-After)" if retry_after is not None else "",
                )
                self._sleep(wait)
                continue

            raise error_for_status(status, full, _safe_snip(resp), attempts=state.attempt + 1)

    def request(self, method: str, url: str, **kwargs) -> GraphResponse:
        return self.execute(RequestDescriptor(method=method, url=url, **kwargs))

    # ---------- Convenience helpers ----------
    def get_json(self, url: str, *, headers=None, params=None) -> dict:
        return as_json(self.request("GET", url, headers=dict(headers or {}), params=params))

    def post_json(self, url: str, *, headers=None, json=None) -> dict:
        return as_json(self.request("POST", url, headers=dict(headers or {}), json=json))

    def patch_json(self, url: str, *, headers=None, json=None) -> dict:
        return as_json(self.request("PATCH", url, headers=dict(headers or {}), json=json))

    def put_json(self, url: str, *, headers=None, json=None) -> dict:
        return as_json(self.request("PUT", url, headers=dict(headers or {}), json=json))

    def put_bytes(self, url: str, data: bytes, *, headers=None,
                  content_type: str = "application/octet-stream") -> GraphResponse:
        return self.request("PUT", url, headers=dict(headers or {}), data=data, content_type=content_type)

    def delete(self, url: str, *, headers=None) -> None:
        self.request("DELETE", url, headers=dict(headers or {}))


def _safe_snip(resp: requests.Response, max_len: int = 400) -> str:
    try:
        txt = resp.text or ""
        return txt[:max_len]
    except Exception:
        return ""


__all__ = ["HttpClient", "HttpError"]
