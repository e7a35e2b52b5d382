from __future__ import annotations
import msal
import requests

from intunerun.core.auth import (
    AuthError, InvalidTenantId, InvalidClientId, InvalidClientSecret,
    NetworkError, ConsentRequired
)

SCOPES = ["https://graph.microsoft.com/.default"]

def build_authority(tenant_id: str) -> str:
    return f"https://login.microsoftonline.com/{tenant_id}"

def map_msal_error(desc: str) -> AuthError:
    d = desc or ""
    if "AADSTS7000215" in d:  # invalid client secret
        return InvalidClientSecret("Invalid client secret.")
    if "AADSTS700016" in d:  # invalid client id
        return InvalidClientId("Invalid client ID or app not found.")
    if "invalid_tenant" in d or "AADSTS90002" in d:
        return InvalidTenantId("Invalid tenant ID or tenant not found.")
    if "AADSTS65001" in d or "consent_required" in d:
        return ConsentRequired("Admin consent required.")
    return AuthError(d)

def msal_acquire_token(client_id: str, client_secret: str, authority: str) -> str:
    try:
        app = msal.ConfidentialClientApplication(
            client_id=client_id,
            client_credential=client_secret,
            authority=authority,
        )
        res = app.acquire_token_for_client(scopes=SCOPES)
    except requests.exceptions.RequestException as ex:
        raise NetworkError(str(ex)) from ex
    except ValueError as ex:
        # msal raises ValueError for unreachable/invalid authorities
        raise InvalidTenantId(str(ex)) from ex
    except Exception as ex:
        raise AuthError(f"Token acquisition failed: {ex}") from ex

    if "access_token" not in res:
        raise map_msal_error(res.get("error_description", "Unknown error"))

    return res["access_token"]
