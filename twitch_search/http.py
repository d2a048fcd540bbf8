from __future__ import annotations

import asyncio
import logging
import time

import httpx

from auth.models import ClientIdentity, Credential

from .constants import LOGGER


class HelixRequestError(RuntimeError):
    step = "querying the Twitch API"

    def __init__(self, message: str, *, status_code: int | None = None, payload=None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def _seconds_until_reset(reset_header: str | None, *, now: float | None = None) -> int | None:
    if reset_header is None:
        return None
    try:
        reset_epoch = int(reset_header)
    except ValueError:
        return None

    current = time.time() if now is None else now
    return max(0, reset_epoch - int(current))


class RetryTransport(httpx.AsyncBaseTransport):
    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        *,
        max_retries: int = 2,
        sleep=asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._transport = transport
        self._max_retries = max(0, max_retries)
        self._sleep = sleep
        self._logger = logger or LOGGER

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        body = request.content
        retries = 0

        while True:
            next_request = httpx.Request(
                method=request.method,
                url=request.url,
                headers=request.headers,
                content=body,
                extensions=request.extensions,
            )
            response = await self._transport.handle_async_request(next_request)

            if self._max_retries == 0 or request.method != "GET":
                return response

            if response.status_code == 429 and retries < min(self._max_retries, 1):
                wait_seconds = _seconds_until_reset(response.headers.get("ratelimit-reset"))
                if wait_seconds is None:
                    wait_seconds = 1
                self._logger.warning(
                    "Retrying 429 after %ss (%s %s)",
                    wait_seconds,
                    request.method,
                    request.url,
                )
                await response.aclose()
                await self._sleep(wait_seconds)
                retries += 1
                continue

            if 500 <= response.status_code < 600 and retries < self._max_retries:
                backoff_seconds = 2**retries
                self._logger.warning(
                    "Retrying %s after %ss (%s %s)",
                    response.status_code,
                    backoff_seconds,
                    request.method,
                    request.url,
                )
                await response.aclose()
                await self._sleep(backoff_seconds)
                retries += 1
                continue

            return response

    async def aclose(self) -> None:
        await self._transport.aclose()


def _friendly_error_message(status_code: int, wait_seconds: int | None = None) -> str:
    if status_code == 401:
        return "Authentication failed. Your Twitch token may have been revoked."
    if status_code == 403:
        return "The token is missing a scope required for this request."
    if status_code == 404:
        return "The requested resource was not found on Twitch."
    if status_code == 429:
        wait = 0 if wait_seconds is None else wait_seconds
        return f"Rate limit exceeded. Please wait {wait} seconds."
    if status_code >= 500:
        return "Twitch API is experiencing issues. Please try again later."
    return f"Twitch API request failed with status {status_code}."


async def handle_rate_limits(response: httpx.Response) -> None:
    remaining = response.headers.get("ratelimit-remaining")
    reset = response.headers.get("ratelimit-reset")
    wait_seconds = _seconds_until_reset(reset)
    endpoint = str(response.request.url)

    if remaining is not None or reset is not None:
        LOGGER.debug(
            "Rate limit state endpoint=%s remaining=%s reset=%s wait=%s",
            endpoint,
            remaining,
            reset,
            wait_seconds,
        )

    if response.status_code == 429 or remaining == "0":
        if response.status_code == 429:
            response.extensions["twitch_search_wait_seconds"] = wait_seconds
        LOGGER.warning(
            "Rate limit warning endpoint=%s status=%s remaining=%s wait=%s",
            endpoint,
            response.status_code,
            remaining,
            wait_seconds,
        )


async def raise_for_helix_error(response: httpx.Response) -> None:
    if response.status_code < 400:
        return

    wait_seconds = response.extensions.get("twitch_search_wait_seconds")
    await response.aread()
    try:
        payload = response.json()
    except ValueError:
        payload = {"raw": response.text}

    message = _friendly_error_message(response.status_code, wait_seconds)
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        message = f"{message} ({payload['message']})"

    LOGGER.warning(
        "Twitch API error status=%s endpoint=%s payload=%s",
        response.status_code,
        response.request.url,
        payload,
    )
    raise HelixRequestError(message, status_code=response.status_code, payload=payload)


def build_authenticated_client(
    identity: ClientIdentity,
    credential: Credential,
    *,
    base_url: str,
    timeout: float = 30.0,
    max_retries: int = 2,
    transport: httpx.AsyncBaseTransport | None = None,
    debug: bool = False,
) -> httpx.AsyncClient:
    async def sign_request(request: httpx.Request) -> None:
        request.headers["Authorization"] = f"Bearer {credential.access_token}"
        request.headers["Client-Id"] = identity.id

    async def log_request(request: httpx.Request) -> None:
        if not debug:
            return
        LOGGER.info("Twitch API request %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        if not debug:
            return
        LOGGER.info(
            "Twitch API response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )

    retry_transport = RetryTransport(
        transport or httpx.AsyncHTTPTransport(),
        max_retries=max_retries,
        logger=LOGGER,
    )
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        transport=retry_transport,
        event_hooks={
            "request": [sign_request, log_request],
            "response": [handle_rate_limits, log_response, raise_for_helix_error],
        },
    )
