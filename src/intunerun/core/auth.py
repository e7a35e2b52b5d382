from __future__ import annotations
import logging
from typing import Callable

log = logging.getLogger(__name__)

class AuthError(Exception):
    code = "auth_error"; hint = "Unknown error."
    def __init__(self, message: str = "", *, hint: str | None = None):
        super().__init__(message or self.__class__.__name__)
        if hint: self.hint = hint

class InvalidTenantId(AuthError):
    code = "invalid_tenant_id"; hint = "Tenant ID invalid or unreachable."
class InvalidClientId(AuthError):
    code = "invalid_client_id"; hint = "Client ID invalid."
class InvalidClientSecret(AuthError):
    code = "invalid_client_secret"; hint = "Client Secret rejected."
class NetworkError(AuthError):
    code = "network_error"; hint = "Network or timeout issue."
class ConsentRequired(AuthError):
    code = "consent_required"; hint = "Admin consent required for Graph permissions."


class StaticTokenProvider:
    """Wraps a bearer token acquired elsewhere (e.g. a managed identity)."""
    def __init__(self, token: str):
        if not token:
            raise AuthError("Empty bearer token.")
        self._token = token

    def __call__(self) -> str:
        return self._token


class ClientSecretTokenProvider:
    """App-only token via MSAL client credentials."""
    def __init__(self, tenant_id: str, client_id: str, client_secret: str):
        tenant_id = (tenant_id or "").strip()
        client_id = (client_id or "").strip()
        client_secret = (client_secret or "").strip()
        if not tenant_id: raise InvalidTenantId("Tenant ID required.")
        if not client_id: raise InvalidClientId("Client ID required.")
        if not client_secret: raise InvalidClientSecret("Client Secret required.")
        self.tenant_id = tenant_id
        self.client_id = client_id
        self._client_secret = client_secret

    def __call__(self) -> str:
        from intunerun.core.auth_helpers import build_authority, msal_acquire_token
        log.info("Acquiring Graph token for tenant=%s client=%s...", self.tenant_id, self.client_id[:6])
        return msal_acquire_token(self.client_id, self._client_secret, build_authority(self.tenant_id))


def acquire_once(provider: Callable[[], str]) -> Callable[[], str]:
    """
    Call the provider now and return a provider that replays that token.
    Auth failures surface here, before any Graph request is made.
    """
    token = provider()
    if not token:
        raise AuthError("Token provider returned an empty token.")
    return StaticTokenProvider(token)
