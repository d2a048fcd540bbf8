from __future__ import annotations


class AuthFlowError(RuntimeError):
    step = "authenticating"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigMissing(AuthFlowError):
    step = "reading client credentials"

    def __init__(self, path) -> None:
        super().__init__(f"Client credentials file {str(path)!r} does not exist.")
        self.path = path


class ConfigMalformed(AuthFlowError):
    step = "reading client credentials"


class StorageCorrupt(AuthFlowError):
    step = "reading cached token"


class StorageWriteError(AuthFlowError):
    step = "storing token"


class PortUnavailable(AuthFlowError):
    step = "binding callback port"


class AuthorizationDenied(AuthFlowError):
    step = "waiting for authorization callback"


class UserDeniedConsent(AuthFlowError):
    step = "waiting for authorization callback"


class ConsentTimeout(AuthFlowError):
    step = "waiting for authorization callback"


class _TokenEndpointError(AuthFlowError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: dict | str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class ExchangeFailed(_TokenEndpointError):
    step = "exchanging code for token"


class RefreshFailed(_TokenEndpointError):
    step = "refreshing token"
