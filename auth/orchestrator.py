from __future__ import annotations

import enum
import logging
from typing import Awaitable, Callable

from auth import twitch_oauth2
from auth.callback import CallbackReceiver
from auth.credential_store import CredentialStore
from auth.errors import AuthorizationDenied, UserDeniedConsent
from auth.models import ClientIdentity, Credential, PendingAuthorization

LOGGER = logging.getLogger("twitch_search.auth")

ExchangeCodeFn = Callable[..., Awaitable[Credential]]
RefreshTokenFn = Callable[..., Awaitable[Credential]]


class AuthState(str, enum.Enum):
    NO_CREDENTIAL = "no_credential"
    AWAITING_CONSENT = "awaiting_consent"
    EXCHANGING = "exchanging"
    REFRESHING = "refreshing"
    READY = "ready"


def print_authorization_url(url: str) -> None:
    print(f"Open your browser to {url}", flush=True)


class AuthOrchestrator:
    """Drive the Authorization Code flow until a fresh credential is stored.

    A cached credential is always refreshed once. Without one, the user is
    sent through the consent page and the returned code is exchanged
    exactly once. Every failure propagates; nothing is retried.
    """

    def __init__(
        self,
        *,
        identity: ClientIdentity,
        store: CredentialStore,
        receiver: CallbackReceiver,
        scopes: list[str] | None = None,
        consent_timeout: float | None = None,
        present_url: Callable[[str], None] = print_authorization_url,
        exchange_code_fn: ExchangeCodeFn = twitch_oauth2.exchange_code,
        refresh_token_fn: RefreshTokenFn = twitch_oauth2.refresh_token,
    ) -> None:
        self.identity = identity
        self.store = store
        self.receiver = receiver
        self.scopes = scopes or list(twitch_oauth2.DEFAULT_SCOPES)
        self.consent_timeout = consent_timeout
        self.present_url = present_url
        self.state = AuthState.NO_CREDENTIAL
        self.pending: PendingAuthorization | None = None

        self._exchange_code_fn = exchange_code_fn
        self._refresh_token_fn = refresh_token_fn
        self._credential: Credential | None = None

    @property
    def credential(self) -> Credential | None:
        return self._credential

    def _transition(self, state: AuthState) -> None:
        LOGGER.info("Auth state %s -> %s", self.state.value, state.value)
        self.state = state

    async def run(self) -> Credential:
        cached = await self.store.load_credential()
        if cached is None:
            self._transition(AuthState.AWAITING_CONSENT)
            code, redirect_uri = await self._await_consent()
            self._transition(AuthState.EXCHANGING)
            credential = await self._exchange(code, redirect_uri)
        else:
            self._transition(AuthState.REFRESHING)
            credential = await self._refresh(cached)

        await self.store.save_credential(credential)
        self._credential = credential
        self._transition(AuthState.READY)
        return credential

    async def _await_consent(self) -> tuple[str, str]:
        state = twitch_oauth2.generate_state()
        handle = await self.receiver.start(expected_state=state)
        try:
            authorization_url = twitch_oauth2.build_authorization_url(
                client_id=self.identity.id,
                redirect_uri=handle.redirect_uri,
                scopes=self.scopes,
                state=state,
            )
            self.pending = PendingAuthorization(
                authorization_url=authorization_url,
                state=state,
                callback=handle,
            )
            self.present_url(authorization_url)
            code = await handle.await_code(timeout=self.consent_timeout)
        except AuthorizationDenied as error:
            raise UserDeniedConsent(f"Authorization was not granted ({error}).") from error
        finally:
            await handle.stop()
            self.pending = None

        return code, handle.redirect_uri

    async def _exchange(self, code: str, redirect_uri: str) -> Credential:
        return await self._exchange_code_fn(
            identity=self.identity,
            code=code,
            redirect_uri=redirect_uri,
        )

    async def _refresh(self, credential: Credential) -> Credential:
        if credential.is_expired():
            LOGGER.info("Cached access token has expired")
        return await self._refresh_token_fn(
            identity=self.identity,
            credential=credential,
        )
