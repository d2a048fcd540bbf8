from __future__ import annotations

import logging
import secrets
import urllib.parse
from datetime import datetime, timedelta, timezone

import httpx

from auth.errors import ExchangeFailed, RefreshFailed
from auth.models import ClientIdentity, Credential

TWITCH_AUTHORIZE_URL = "https://id.twitch.tv/oauth2/authorize"
TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"

DEFAULT_SCOPES = ["user:read:follows"]

LOGGER = logging.getLogger("twitch_search.auth")


def generate_state() -> str:
    return secrets.token_urlsafe(24)


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: list[str],
    state: str,
) -> str:
    query = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(scopes),
        "state": state,
    }
    return f"{TWITCH_AUTHORIZE_URL}?{urllib.parse.urlencode(query)}"


def credential_from_payload(payload: dict, *, previous: Credential | None = None) -> Credential:
    access_token = payload.get("access_token")
    refresh_token = payload.get("refresh_token")
    token_type = payload.get("token_type") or "bearer"
    expires_in = payload.get("expires_in")

    if not isinstance(access_token, str) or not access_token:
        raise ValueError("Token response missing access_token.")
    if not isinstance(refresh_token, str) or not refresh_token:
        # Providers may omit the refresh token on refresh; keep the old one.
        if previous is None:
            raise ValueError("Token response missing refresh_token.")
        refresh_token = previous.refresh_token
    if expires_in is not None and not isinstance(expires_in, int):
        raise ValueError("Token response expires_in must be an integer.")

    expiry = None
    if expires_in:
        expiry = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

    return Credential(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type=token_type,
        expiry=expiry,
    )


def _error_payload(response: httpx.Response) -> dict | str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    return payload


def _error_message(payload: dict | str) -> str:
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error_description") or payload.get("error")
        if isinstance(message, str) and message:
            return message
    return str(payload)


async def _token_request(
    payload: dict[str, str],
    error_cls: type[ExchangeFailed] | type[RefreshFailed],
    *,
    previous: Credential | None = None,
    client: httpx.AsyncClient | None = None,
) -> Credential:
    own_client = client is None
    http_client = client or httpx.AsyncClient()

    try:
        response = await http_client.post(TWITCH_TOKEN_URL, data=payload)
    except httpx.HTTPError as error:
        raise error_cls(f"Token request failed: {error}") from error
    finally:
        if own_client:
            await http_client.aclose()

    if response.is_error:
        detail = _error_payload(response)
        raise error_cls(
            f"Token request failed with status {response.status_code}: {_error_message(detail)}",
            status_code=response.status_code,
            payload=detail,
        )

    try:
        return credential_from_payload(response.json(), previous=previous)
    except ValueError as error:
        raise error_cls(f"Invalid token response: {error}", status_code=response.status_code) from error


async def exchange_code(
    identity: ClientIdentity,
    code: str,
    redirect_uri: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> Credential:
    LOGGER.info("Exchanging authorization code for token")
    return await _token_request(
        {
            "grant_type": "authorization_code",
            "client_id": identity.id,
            "client_secret": identity.secret,
            "code": code,
            "redirect_uri": redirect_uri,
        },
        ExchangeFailed,
        client=client,
    )


async def refresh_token(
    identity: ClientIdentity,
    credential: Credential,
    *,
    client: httpx.AsyncClient | None = None,
) -> Credential:
    LOGGER.info("Refreshing access token")
    return await _token_request(
        {
            "grant_type": "refresh_token",
            "client_id": identity.id,
            "client_secret": identity.secret,
            "refresh_token": credential.refresh_token,
        },
        RefreshFailed,
        previous=credential,
        client=client,
    )
