"""Process-lifetime cache for the IGDB bearer token."""

import time
from typing import Callable

from ..core.model import Credential

# Refuse tokens this close to their declared expiry.
EXPIRY_MARGIN_MS = 60_000


def now_ms() -> int:
    return int(time.time() * 1000)


class CredentialCache:
    """
    Holds one credential plus the client id/secret pair that issued it.

    A lookup with a different pair misses, so changing the configured secret
    invalidates the token without an explicit ``clear()``.
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        self.clock = clock
        self._credential: Credential | None = None
        self._issuer: tuple[str, str] | None = None

    def get(self, client_id: str, client_secret: str) -> Credential | None:
        if self._credential is None or self._issuer != (client_id, client_secret):
            return None
        if self._credential.expires_at_ms - EXPIRY_MARGIN_MS <= self.clock():
            return None
        return self._credential

    def store(self, client_id: str, client_secret: str, credential: Credential) -> None:
        self._credential = credential
        self._issuer = (client_id, client_secret)

    def clear(self) -> None:
        self._credential = None
        self._issuer = None
