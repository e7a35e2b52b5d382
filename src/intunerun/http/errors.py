from __future__ import annotations


class HttpError(Exception):
    def __init__(self, status: int, url: str, message: str = "", body_snippet: str = "", attempts: int = 1):
        super().__init__(message or f"HTTP {status} for {url}")
        self.status = status
        self.url = url
        self.body_snippet = body_snippet
        self.attempts = attempts

    @property
    def status_code(self) -> int:
        return self.status

class UnauthorizedError(HttpError): pass           # 401
class ForbiddenError(HttpError): pass              # 403
class NotFoundError(HttpError): pass               # 404
class ThrottleError(HttpError): pass               # 429
class ServerError(HttpError): pass                 # 5xx
class NetworkError(HttpError): pass                # request/timeout
class MalformedResponseError(HttpError): pass      # 2xx/3xx body that does not parse


class RunCancelled(Exception):
    """Raised when a run's cancel event is set while it is waiting."""


def error_for_status(status: int, url: str, body_snippet: str = "", attempts: int = 1) -> HttpError:
    if status == 401:
        return UnauthorizedError(401, url, "Unauthorized", body_snippet, attempts)
    if status == 403:
        return ForbiddenError(403, url, "Forbidden", body_snippet, attempts)
    if status == 404:
        return NotFoundError(404, url, "Not Found", body_snippet, attempts)
    if status == 429:
        return ThrottleError(429, url, f"Too Many Requests (after {attempts} attempts)", body_snippet, attempts)
    if 500 <= status <= 599:
        return ServerError(status, url, f"Server error {status} (after {attempts} attempts)", body_snippet, attempts)
    return HttpError(status, url, f"HTTP error {status}", body_snippet, attempts)
