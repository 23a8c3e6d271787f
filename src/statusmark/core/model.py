from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .meta import MetaBag

if TYPE_CHECKING:
    from .ports import MetadataHandle

NotePath = str  # vault-relative, e.g. "games/Hades.md"


@dataclass
class ParsedDocument:
    metadata: MetaBag = field(default_factory=MetaBag)
    body: str = ""
    handle: MetadataHandle | None = None  # absent when no block was parsed


@dataclass(frozen=True)
class ItemType:
    label: str  # shown to the user, e.g. "TV Show"
    folder: str  # vault folder the notes live in


@dataclass(frozen=True)
class Credential:
    token: str
    expires_at_ms: int  # declared expiry, epoch milliseconds


@dataclass(frozen=True)
class GameCandidate:
    name: str | None
    image_id: str | None
    popularity: float
    index: int  # position in the catalog response


@dataclass(frozen=True)
class GameMetadata:
    canonical_name: str | None
    thumbnail: str | None


DEFAULT_ITEM_TYPES: tuple[ItemType, ...] = (
    ItemType("Game", "games"),
    ItemType("TV Show", "tv shows"),
    ItemType("Book", "books"),
)
