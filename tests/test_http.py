import httpx
import pytest

from twitch_search.http import (
    HelixRequestError,
    RetryTransport,
    _seconds_until_reset,
    build_authenticated_client,
    raise_for_helix_error,
)


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[int] = []

    async def __call__(self, seconds: int) -> None:
        self.calls.append(seconds)


def _make_handler(statuses: list[int], headers_by_attempt: list[dict[str, str]] | None = None):
    attempt = {"count": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        index = attempt["count"]
        attempt["count"] += 1
        status = statuses[min(index, len(statuses) - 1)]
        headers = {}
        if headers_by_attempt is not None and index < len(headers_by_attempt):
            headers = headers_by_attempt[index]
        return httpx.Response(status, request=request, headers=headers, json={"status": status})

    return handler, attempt


@pytest.mark.asyncio
async def test_client_attaches_bearer_and_client_id(identity, cached_credential) -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, request=request, json={"data": []})

    async with build_authenticated_client(
        identity,
        cached_credential,
        base_url="https://api.twitch.tv/helix",
        transport=httpx.MockTransport(handler),
    ) as client:
        await client.get("/users")
        await client.get("/videos", params={"user_id": "1"})

    assert [str(request.url) for request in seen] == [
        "https://api.twitch.tv/helix/users",
        "https://api.twitch.tv/helix/videos?user_id=1",
    ]
    for request in seen:
        assert request.headers["Authorization"] == "Bearer cached-access"
        assert request.headers["Client-Id"] == "client-123"


@pytest.mark.asyncio
async def test_client_raises_on_error_status(identity, cached_credential) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401,
            request=request,
            json={"error": "Unauthorized", "status": 401, "message": "Invalid OAuth token"},
        )

    async with build_authenticated_client(
        identity,
        cached_credential,
        base_url="https://api.twitch.tv/helix",
        transport=httpx.MockTransport(handler),
    ) as client:
        with pytest.raises(HelixRequestError, match="Invalid OAuth token") as info:
            await client.get("/users")

    assert info.value.status_code == 401


@pytest.mark.asyncio
async def test_retry_on_429() -> None:
    handler, attempt = _make_handler(
        [429, 200],
        headers_by_attempt=[{"ratelimit-reset": "9999999999"}, {}],
    )
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://api.twitch.tv/helix/users")

    assert response.status_code == 200
    assert attempt["count"] == 2
    assert len(sleep.calls) == 1


@pytest.mark.asyncio
async def test_retry_on_500() -> None:
    handler, attempt = _make_handler([500, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://api.twitch.tv/helix/users")

    assert response.status_code == 200
    assert sleep.calls == [1]


@pytest.mark.asyncio
async def test_no_retry_on_4xx() -> None:
    handler, attempt = _make_handler([400, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://api.twitch.tv/helix/users")

    assert response.status_code == 400
    assert attempt["count"] == 1
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_no_retry_for_post() -> None:
    handler, attempt = _make_handler([500, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.post("https://api.twitch.tv/helix/users", json={})

    assert response.status_code == 500
    assert attempt["count"] == 1


@pytest.mark.asyncio
async def test_max_retries_exceeded() -> None:
    handler, attempt = _make_handler([500, 500, 500, 500])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://api.twitch.tv/helix/users")

    assert response.status_code == 500
    assert attempt["count"] == 3
    assert sleep.calls == [1, 2]


@pytest.mark.asyncio
async def test_429_message_includes_wait() -> None:
    response = httpx.Response(
        429,
        request=httpx.Request("GET", "https://api.twitch.tv/helix/users"),
        json={"message": "Too Many Requests"},
    )
    response.extensions["twitch_search_wait_seconds"] = 45

    with pytest.raises(HelixRequestError, match="Please wait 45 seconds"):
        await raise_for_helix_error(response)


@pytest.mark.asyncio
async def test_500_message_with_plain_body() -> None:
    response = httpx.Response(
        500,
        request=httpx.Request("GET", "https://api.twitch.tv/helix/users"),
        text="upstream unavailable",
    )

    with pytest.raises(HelixRequestError, match="experiencing issues") as info:
        await raise_for_helix_error(response)

    assert info.value.payload == {"raw": "upstream unavailable"}


@pytest.mark.asyncio
async def test_200_passes_through() -> None:
    response = httpx.Response(
        200,
        request=httpx.Request("GET", "https://api.twitch.tv/helix/users"),
        json={"data": []},
    )

    await raise_for_helix_error(response)

    assert response.json() == {"data": []}


def test_seconds_until_reset() -> None:
    assert _seconds_until_reset("110", now=100.0) == 10
    assert _seconds_until_reset("90", now=100.0) == 0
    assert _seconds_until_reset("soon") is None
    assert _seconds_until_reset(None) is None
