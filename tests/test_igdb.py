"""Tests for the IGDB catalog client."""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from statusmark.adapters.igdb import (
    IGDB_GAMES_ENDPOINT,
    IGDB_TOKEN_ENDPOINT,
    IgdbClient,
    build_cover_url,
    is_too_many_requests,
    rank_candidates,
    sanitize_query,
    to_candidates,
)
from statusmark.core.model import Credential

TOKEN = Credential(token="tok", expires_at_ms=10_000_000)


class Recorder:
    """MockTransport handler replaying canned responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class Sleeper:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_client(handler, client_id="cid", clock=lambda: 1_000_000):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    sleeper = Sleeper()
    return IgdbClient(client_id, http=http, sleep=sleeper, clock=clock), sleeper


def games(*entries):
    return httpx.Response(200, json=list(entries))


def test_sanitize_query():
    """Test quote escaping and whitespace collapsing."""
    assert sanitize_query('  The  "Witcher"\t3\n ') == 'The \\"Witcher\\" 3'
    assert sanitize_query("   ") == ""


def test_build_cover_url():
    assert build_cover_url("co1wyy") == (
        "https://images.igdb.com/igdb/image/upload/t_cover_big/co1wyy.jpg"
    )


def test_rank_prefers_higher_count():
    """Test that the larger of the two counters decides."""
    best = rank_candidates(
        to_candidates(
            [
                {"name": "A", "total_rating_count": 5, "rating_count": 10},
                {"name": "B", "total_rating_count": 20, "rating_count": 1},
            ]
        )
    )
    assert best.name == "B"
    assert best.popularity == 20


def test_rank_tie_goes_to_first():
    """Test that equal scores keep response order."""
    best = rank_candidates(
        to_candidates(
            [
                {"name": "A", "total_rating_count": 5},
                {"name": "B", "rating_count": 5},
            ]
        )
    )
    assert best.name == "A"


def test_rank_normalizes_bad_counters():
    """Test that missing, non-finite and non-numeric counters count as zero."""
    candidates = to_candidates(
        [
            {"name": "inf", "total_rating_count": float("inf")},
            {"name": "nan", "rating_count": float("nan")},
            {"name": "str", "rating_count": "900"},
            {"name": "neg", "rating_count": -4},
            {"name": "real", "rating_count": 1},
            "not a game",
        ]
    )
    assert [c.popularity for c in candidates] == [0, 0, 0, 0, 1, 0]
    assert rank_candidates(candidates).name == "real"


def test_rank_empty():
    assert rank_candidates([]) is None


def test_is_too_many_requests():
    assert is_too_many_requests(429)
    assert is_too_many_requests(400, "Too Many Requests")
    assert is_too_many_requests(None, error=RuntimeError("too many requests, slow down"))
    assert not is_too_many_requests(500, "boom")
    assert not is_too_many_requests(None)


@pytest.mark.asyncio
async def test_lookup_game_ranks_and_builds_cover():
    """Test a successful search and the request it sends."""
    handler = Recorder(
        games(
            {"name": "Hades II", "cover": {"image_id": "co2"}, "rating_count": 40},
            {"name": "Hades", "cover": {"image_id": "co1"}, "total_rating_count": 900},
        )
    )
    client, _ = make_client(handler)

    found = await client.lookup_game('  Hades  ', TOKEN)

    assert found.canonical_name == "Hades"
    assert found.thumbnail == build_cover_url("co1")

    request = handler.requests[0]
    assert str(request.url) == IGDB_GAMES_ENDPOINT
    assert request.method == "POST"
    assert request.headers["Client-ID"] == "cid"
    assert request.headers["Authorization"] == "Bearer tok"
    assert request.headers["Content-Type"] == "text/plain"
    assert request.content.decode() == (
        'search "Hades"; fields name,cover.image_id,total_rating_count,rating_count; limit 5;'
    )


@pytest.mark.asyncio
async def test_lookup_game_without_cover():
    handler = Recorder(games({"name": "Obscure"}))
    client, _ = make_client(handler)

    found = await client.lookup_game("Obscure", TOKEN)

    assert found.canonical_name == "Obscure"
    assert found.thumbnail is None


@pytest.mark.asyncio
async def test_lookup_game_no_results():
    handler = Recorder(games())
    client, _ = make_client(handler)

    assert await client.lookup_game("Nothing", TOKEN) is None


@pytest.mark.asyncio
async def test_lookup_game_non_list_response():
    handler = Recorder(httpx.Response(200, json={"message": "odd"}))
    client, _ = make_client(handler)

    assert await client.lookup_game("Nothing", TOKEN) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name,credential,client_id",
    [
        ("   ", TOKEN, "cid"),
        ("Hades", Credential(token="", expires_at_ms=0), "cid"),
        ("Hades", TOKEN, ""),
    ],
)
async def test_lookup_game_preconditions(name, credential, client_id):
    """Test that bad input returns None without touching the network."""
    handler = Recorder()
    client, _ = make_client(handler, client_id=client_id)

    assert await client.lookup_game(name, credential) is None
    assert handler.requests == []


@pytest.mark.asyncio
async def test_lookup_thumbnail_asks_for_one_result():
    handler = Recorder(games({"name": "Celeste", "cover": {"image_id": "co9"}}))
    client, _ = make_client(handler)

    assert await client.lookup_thumbnail("Celeste", TOKEN) == build_cover_url("co9")
    assert handler.requests[0].content.decode().endswith("limit 1;")


@pytest.mark.asyncio
async def test_throttle_then_success():
    """Test two 429s followed by a success, backing off 1s then 2s."""
    handler = Recorder(
        httpx.Response(429, text="Too Many Requests"),
        httpx.Response(429, text="Too Many Requests"),
        games({"name": "Hades", "cover": {"image_id": "co1"}}),
    )
    client, sleeper = make_client(handler)

    found = await client.lookup_game("Hades", TOKEN)

    assert found.canonical_name == "Hades"
    assert sleeper.delays == [1.0, 2.0]
    assert len(handler.requests) == 3


@pytest.mark.asyncio
async def test_throttle_exhausted():
    """Test that three throttled attempts give up."""
    handler = Recorder(*(httpx.Response(429) for _ in range(3)))
    client, sleeper = make_client(handler)

    assert await client.lookup_game("Hades", TOKEN) is None
    assert sleeper.delays == [1.0, 2.0]
    assert len(handler.requests) == 3


@pytest.mark.asyncio
async def test_throttle_detected_from_body():
    """Test that a non-429 status mentioning the phrase is retried."""
    handler = Recorder(
        httpx.Response(400, text="error: TOO MANY REQUESTS"),
        games({"name": "Hades"}),
    )
    client, sleeper = make_client(handler)

    found = await client.lookup_game("Hades", TOKEN)

    assert found.canonical_name == "Hades"
    assert sleeper.delays == [1.0]


@pytest.mark.asyncio
async def test_throttle_detected_from_transport_error():
    handler = Recorder(
        httpx.ConnectError("Too many requests"),
        games({"name": "Hades"}),
    )
    client, sleeper = make_client(handler)

    found = await client.lookup_game("Hades", TOKEN)

    assert found.canonical_name == "Hades"
    assert sleeper.delays == [1.0]


@pytest.mark.asyncio
async def test_hard_failure_is_not_retried():
    handler = Recorder(httpx.Response(500, text="boom"))
    client, sleeper = make_client(handler)

    assert await client.lookup_game("Hades", TOKEN) is None
    assert sleeper.delays == []
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_transport_error_returns_none():
    handler = Recorder(httpx.ConnectError("connection refused"))
    client, sleeper = make_client(handler)

    assert await client.lookup_game("Hades", TOKEN) is None
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_acquire_credential():
    """Test the client-credentials exchange and the computed expiry."""
    handler = Recorder(
        httpx.Response(200, json={"access_token": "abc", "expires_in": 3600, "token_type": "bearer"})
    )
    client, _ = make_client(handler, clock=lambda: 5_000)

    credential = await client.acquire_credential("secret")

    assert credential == Credential(token="abc", expires_at_ms=5_000 + 3_600_000)
    request = handler.requests[0]
    assert str(request.url) == IGDB_TOKEN_ENDPOINT
    assert parse_qs(request.content.decode()) == {
        "client_id": ["cid"],
        "client_secret": ["secret"],
        "grant_type": ["client_credentials"],
    }


@pytest.mark.asyncio
async def test_acquire_credential_numeric_string_expiry():
    handler = Recorder(httpx.Response(200, json={"access_token": "abc", "expires_in": "60"}))
    client, _ = make_client(handler, clock=lambda: 0)

    credential = await client.acquire_credential("secret")

    assert credential.expires_at_ms == 60_000


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, text="invalid client secret"),
        httpx.Response(200, json={"access_token": "abc"}),
        httpx.Response(200, json={"access_token": "abc", "expires_in": "soon"}),
        httpx.Response(200, json={"access_token": "abc", "expires_in": True}),
        httpx.Response(200, json={"access_token": 42, "expires_in": 60}),
        httpx.Response(200, json=["abc"]),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"access_token": "abc", "expires_in": 1e308}),
        httpx.Response(200, json={"access_token": "abc", "expires_in": "1e308"}),
        httpx.Response(200, json={"access_token": "abc", "expires_in": 10**400}),
    ],
)
async def test_acquire_credential_failures(response):
    """Test that bad token responses are reported as None."""
    client, _ = make_client(Recorder(response))

    assert await client.acquire_credential("secret") is None


@pytest.mark.asyncio
async def test_acquire_credential_transport_error():
    client, _ = make_client(Recorder(httpx.ConnectError("offline")))

    assert await client.acquire_credential("secret") is None


@pytest.mark.asyncio
async def test_acquire_credential_response_body_is_json():
    """Test that the parsed token body is what we expect from Twitch."""
    payload = {"access_token": "abc", "expires_in": 5011271, "token_type": "bearer"}
    handler = Recorder(httpx.Response(200, content=json.dumps(payload).encode()))
    client, _ = make_client(handler, clock=lambda: 0)

    credential = await client.acquire_credential("secret")

    assert credential.token == "abc"
    assert credential.expires_at_ms == 5011271 * 1000
