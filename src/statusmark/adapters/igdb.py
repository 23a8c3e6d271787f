"""IGDB catalog client: bearer token exchange and cover lookup."""

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx

from ..core.model import Credential, GameCandidate, GameMetadata
from ..core.ports import GameCatalog
from .credentials import now_ms

logger = logging.getLogger(__name__)

IGDB_GAMES_ENDPOINT = "https://api.igdb.com/v4/games"
IGDB_IMAGE_BASE_URL = "https://images.igdb.com/igdb/image/upload"
IGDB_COVER_SIZE = "t_cover_big"
IGDB_TOKEN_ENDPOINT = "https://id.twitch.tv/oauth2/token"
IGDB_SEARCH_FIELDS = "name,cover.image_id,total_rating_count,rating_count"
IGDB_MAX_ATTEMPTS = 3
IGDB_BASE_BACKOFF_SECONDS = 1.0


def sanitize_query(value: str) -> str:
    """Escape double quotes and collapse whitespace for the search clause."""
    return " ".join(value.replace('"', '\\"').split())


def build_cover_url(image_id: str, size: str = IGDB_COVER_SIZE) -> str:
    return f"{IGDB_IMAGE_BASE_URL}/{size}/{image_id}.jpg"


def _count(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if math.isfinite(value):
            return float(value)
    return 0.0


def to_candidates(games: list[Any]) -> list[GameCandidate]:
    out: list[GameCandidate] = []
    for index, game in enumerate(games):
        if not isinstance(game, dict):
            game = {}
        cover = game.get("cover")
        image_id = cover.get("image_id") if isinstance(cover, dict) else None
        name = game.get("name")
        out.append(
            GameCandidate(
                name=name if isinstance(name, str) else None,
                image_id=image_id if isinstance(image_id, str) and image_id else None,
                popularity=max(
                    _count(game.get("total_rating_count")),
                    _count(game.get("rating_count")),
                    0.0,
                ),
                index=index,
            )
        )
    return out


def rank_candidates(candidates: list[GameCandidate]) -> GameCandidate | None:
    """Most-rated candidate wins; ties go to the earlier response position."""
    if not candidates:
        return None
    return min(candidates, key=lambda c: (-c.popularity, c.index))


def is_too_many_requests(
    status: int | None, text: str | None = None, error: BaseException | None = None
) -> bool:
    if status == 429:
        return True
    sources = [s for s in (text, str(error) if error else None) if s]
    return any("too many requests" in s.lower() for s in sources)


def normalize_games(response: httpx.Response) -> list[Any]:
    try:
        data = response.json()
    except ValueError as e:
        logger.error("Failed to parse IGDB response: %s", e)
        return []
    return data if isinstance(data, list) else []


def _expires_in(value: Any) -> float | None:
    """Lifetime in seconds, or None unless it converts to a finite millisecond count."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    try:
        seconds = float(value)
    except OverflowError:
        return None
    return seconds if math.isfinite(seconds * 1000) else None


class IgdbClient(GameCatalog):
    def __init__(
        self,
        client_id: str,
        http: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], int] = now_ms,
    ):
        self.client_id = client_id
        self.http = http
        self.sleep = sleep
        self.clock = clock

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http is not None:
            yield self.http
        else:
            async with httpx.AsyncClient() as http:
                yield http

    async def acquire_credential(self, client_secret: str) -> Credential | None:
        """Exchange client id/secret for a bearer token (client-credentials flow)."""
        form = {
            "client_id": self.client_id,
            "client_secret": client_secret,
            "grant_type": "client_credentials",
        }
        try:
            async with self._client() as http:
                response = await http.post(
                    IGDB_TOKEN_ENDPOINT,
                    data=form,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error("Failed to request IGDB access token: %s", e)
            return None

        if response.status_code >= 400:
            logger.error(
                "IGDB token request failed (%s): %s", response.status_code, response.text
            )
            return None

        try:
            data = response.json()
        except ValueError as e:
            logger.error("Failed to parse IGDB token response: %s", e)
            return None
        if not isinstance(data, dict):
            logger.error("IGDB token response is not an object")
            return None

        token = data.get("access_token")
        expires_in = _expires_in(data.get("expires_in"))
        if not isinstance(token, str) or expires_in is None:
            logger.error("IGDB token response missing access_token or expires_in")
            return None
        return Credential(
            token=token, expires_at_ms=self.clock() + int(expires_in * 1000)
        )

    async def _search(self, term: str, credential: Credential, limit: int) -> list[Any] | None:
        body = f'search "{term}"; fields {IGDB_SEARCH_FIELDS}; limit {limit};'
        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {credential.token}",
            "Accept": "application/json",
            "Content-Type": "text/plain",
        }

        for attempt in range(1, IGDB_MAX_ATTEMPTS + 1):
            delay = IGDB_BASE_BACKOFF_SECONDS * 2 ** (attempt - 1)
            try:
                async with self._client() as http:
                    response = await http.post(
                        IGDB_GAMES_ENDPOINT, content=body, headers=headers
                    )
            except httpx.HTTPError as e:
                if is_too_many_requests(None, error=e) and attempt < IGDB_MAX_ATTEMPTS:
                    logger.warning(
                        "IGDB rate limited (attempt %d/%d). Retrying in %.0fms.",
                        attempt, IGDB_MAX_ATTEMPTS, delay * 1000,
                    )
                    await self.sleep(delay)
                    continue
                logger.error("Failed to fetch IGDB metadata: %s", e)
                return None

            if response.status_code >= 400:
                if (
                    is_too_many_requests(response.status_code, response.text)
                    and attempt < IGDB_MAX_ATTEMPTS
                ):
                    logger.warning(
                        "IGDB rate limited (attempt %d/%d). Retrying in %.0fms.",
                        attempt, IGDB_MAX_ATTEMPTS, delay * 1000,
                    )
                    await self.sleep(delay)
                    continue
                logger.error(
                    "IGDB request failed (%s): %s", response.status_code, response.text
                )
                return None

            return normalize_games(response)
        return None

    async def lookup_game(
        self, name: str, credential: Credential, limit: int = 5
    ) -> GameMetadata | None:
        """Best-known catalog match for ``name``, or None."""
        trimmed = name.strip()
        if not trimmed or not credential.token or not self.client_id:
            return None
        term = sanitize_query(trimmed)
        if not term:
            return None

        games = await self._search(term, credential, limit)
        if games is None:
            return None
        best = rank_candidates(to_candidates(games))
        if best is None:
            return None
        logger.debug("IGDB match for %r: %r (%s ratings)", trimmed, best.name, best.popularity)
        return GameMetadata(
            canonical_name=best.name,
            thumbnail=build_cover_url(best.image_id) if best.image_id else None,
        )

    async def lookup_thumbnail(self, name: str, credential: Credential) -> str | None:
        """Cover URL of the top search hit only."""
        found = await self.lookup_game(name, credential, limit=1)
        return found.thumbnail if found else None
