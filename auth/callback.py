from __future__ import annotations

import asyncio
import html
import logging
import socket

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from auth.errors import AuthorizationDenied, ConsentTimeout, PortUnavailable
from auth.models import CallbackOutcome
from auth.urls import DEFAULT_CALLBACK_PATH, build_redirect_uri, normalize_callback_path

LOGGER = logging.getLogger("twitch_search.auth")

DEFAULT_CALLBACK_HOST = "127.0.0.1"
DEFAULT_CALLBACK_PORT = 9001

_PAGE = """<html><body style="font-family: sans-serif; text-align: center; padding: 50px;">
<h1>{title}</h1>
<p>{detail}</p>
</body></html>"""


def _page(title: str, detail: str, status_code: int) -> Response:
    return HTMLResponse(
        _PAGE.format(title=html.escape(title), detail=html.escape(detail)),
        status_code=status_code,
    )


def outcome_from_params(params, expected_state: str | None) -> CallbackOutcome:
    error = params.get("error")
    if error:
        return CallbackOutcome(error=error, error_description=params.get("error_description"))
    if expected_state is not None and params.get("state") != expected_state:
        return CallbackOutcome(
            error="invalid_state",
            error_description="State parameter does not match the authorization request.",
        )
    code = params.get("code")
    if not code:
        return CallbackOutcome(
            error="invalid_request",
            error_description="Callback did not include an authorization code.",
        )
    return CallbackOutcome(code=code)


class CallbackHandle:
    """A running callback listener and the one-shot signal it resolves.

    The first request to the callback path resolves ``outcome``; later
    requests are answered but never acted upon. ``await_code`` stops the
    listener on every exit path.
    """

    def __init__(
        self,
        sock: socket.socket,
        path: str,
        *,
        expected_state: str | None = None,
    ) -> None:
        self._sock = sock
        self._expected_state = expected_state
        self._serve_task: asyncio.Task | None = None
        self.path = path
        self.port: int = sock.getsockname()[1]
        self.outcome: asyncio.Future = asyncio.get_running_loop().create_future()

        app = Starlette(routes=[Route(path, self.handle_callback, methods=["GET"])])
        self._server = uvicorn.Server(
            uvicorn.Config(
                app,
                log_config=None,
                log_level="warning",
                access_log=False,
                lifespan="off",
            )
        )

    @property
    def redirect_uri(self) -> str:
        return build_redirect_uri(self.port, self.path)

    @property
    def running(self) -> bool:
        return self._serve_task is not None and not self._serve_task.done()

    def serve(self) -> None:
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[self._sock]))

    async def handle_callback(self, request: Request) -> Response:
        if self.outcome.done():
            LOGGER.warning("Ignoring repeated authorization callback")
            return _page("Already handled", "This authorization was already processed.", 409)

        outcome = outcome_from_params(request.query_params, self._expected_state)
        self.outcome.set_result(outcome)

        if outcome.error:
            return _page("Authorization failed", outcome.error_description or outcome.error, 400)
        return _page(
            "Authorization successful",
            "You can close this window and return to the terminal.",
            200,
        )

    async def await_code(self, *, timeout: float | None = None) -> str:
        try:
            waiters: set[asyncio.Future] = {self.outcome}
            if self._serve_task is not None:
                waiters.add(self._serve_task)
            done, _ = await asyncio.wait(
                waiters,
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if not done:
                raise ConsentTimeout(
                    f"No authorization callback received within {timeout:g} seconds."
                )
            if not self.outcome.done():
                raise AuthorizationDenied(
                    "Callback listener stopped before an authorization callback was received."
                )
            outcome: CallbackOutcome = self.outcome.result()
        finally:
            await self.stop()

        if outcome.error:
            message = outcome.error
            if outcome.error_description:
                message = f"{outcome.error}: {outcome.error_description}"
            raise AuthorizationDenied(message)
        return outcome.code

    async def stop(self) -> None:
        if not self.outcome.done():
            self.outcome.cancel()
        if self._serve_task is not None:
            if not self._serve_task.done():
                self._server.should_exit = True
            await self._serve_task
            self._serve_task = None
            LOGGER.info("Callback listener on port %s stopped", self.port)
        self._sock.close()


class CallbackReceiver:
    def __init__(
        self,
        port: int = DEFAULT_CALLBACK_PORT,
        path: str = DEFAULT_CALLBACK_PATH,
        *,
        host: str = DEFAULT_CALLBACK_HOST,
    ) -> None:
        self.host = host
        self.port = port
        self.path = normalize_callback_path(path)

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
            sock.listen(8)
        except OSError as error:
            sock.close()
            raise PortUnavailable(
                f"Could not listen on {self.host}:{self.port} for the OAuth2 callback: {error}"
            ) from error
        return sock

    async def start(self, *, expected_state: str | None = None) -> CallbackHandle:
        handle = CallbackHandle(self._bind(), self.path, expected_state=expected_state)
        handle.serve()
        LOGGER.info("Listening for the authorization callback on %s", handle.redirect_uri)
        return handle
