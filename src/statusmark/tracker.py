"""Status and cover-art operations on vault notes."""

import datetime
import logging
import re
from pathlib import PurePosixPath
from typing import Callable

from .adapters.credentials import CredentialCache
from .adapters.igdb import IgdbClient
from .config import StatusmarkConfig
from .core.meta import MetaBag
from .core.model import Credential, GameMetadata, ItemType, NotePath, ParsedDocument
from .core.vault import Vault

logger = logging.getLogger(__name__)

GAMES_FOLDER = "games"

_UNSAFE_NAME = re.compile(r'[\\/:<>"|?*]')
_IMAGE_TAG = re.compile(r"!\[[^\]]*\]\(([^)\s]+)\)")


def sanitize_file_name(name: str) -> str:
    return _UNSAFE_NAME.sub("-", name.strip())


def cover_tag(thumbnail: str) -> str:
    return f"![Cover Image]({thumbnail})"


def thumbnail_is_current(doc: ParsedDocument, thumbnail: str) -> bool:
    """True when both the frontmatter and an image tag already use ``thumbnail``."""
    if doc.metadata.get_str("thumbnail") != thumbnail:
        return False
    return any(m.group(1) == thumbnail for m in _IMAGE_TAG.finditer(doc.body))


def point_cover(body: str, old: str | None, new: str) -> str:
    """Re-point the cover image tag at ``new``, inserting one if none exists."""
    if old and old != new and f"]({old})" in body:
        return body.replace(f"]({old})", f"]({new})")
    if any(m.group(1) == new for m in _IMAGE_TAG.finditer(body)):
        return body
    return f"{cover_tag(new)}\n\n{body}" if body else cover_tag(new)


class StatusTracker:
    def __init__(
        self,
        vault: Vault,
        config: StatusmarkConfig,
        catalog: IgdbClient,
        credentials: CredentialCache,
        today: Callable[[], datetime.date] = datetime.date.today,
    ):
        self.vault = vault
        self.config = config
        self.catalog = catalog
        self.credentials = credentials
        self.today = today

    def statuses(self) -> list[str]:
        return list(self.config.status.names)

    def _stamp(self) -> str:
        return self.today().strftime(self.config.status.date_format)

    def update_igdb_credentials(self, client_id: str, client_secret: str) -> None:
        """Swap the IGDB application credentials and drop the cached token."""
        self.config.igdb.client_id = client_id.strip()
        self.config.igdb.client_secret = client_secret.strip()
        self.catalog.client_id = self.config.igdb.client_id
        self.credentials.clear()

    async def ensure_credential(self) -> Credential | None:
        igdb = self.config.igdb
        if not igdb.configured:
            return None
        cached = self.credentials.get(igdb.client_id, igdb.client_secret)
        if cached is not None:
            return cached
        credential = await self.catalog.acquire_credential(igdb.client_secret)
        if credential is None:
            logger.warning("Could not reach IGDB - check your client credentials.")
            return None
        self.credentials.store(igdb.client_id, igdb.client_secret, credential)
        return credential

    async def lookup(self, name: str) -> GameMetadata | None:
        credential = await self.ensure_credential()
        if credential is None:
            return None
        return await self.catalog.lookup_game(name, credential)

    def set_status(self, path: NotePath, status: str) -> ParsedDocument:
        """Stamp ``status`` and today's date into the note's frontmatter."""
        status = status.strip()
        if not status:
            raise ValueError("Please select a status")
        doc = self.vault.get(path)
        if doc is None:
            raise FileNotFoundError(f"Note {path} not found")

        logger.debug("frontmatter of %s: %s", path, dict(doc.metadata))
        doc.metadata["status"] = status
        doc.metadata["status date"] = self._stamp()
        self.vault.put(path, doc)
        return doc

    async def create_item(self, name: str, status: str, item_type: ItemType) -> NotePath:
        """
        Create ``<folder>/<name>.md`` with a status block.

        Games get their cover looked up on IGDB; a missing or unreachable
        catalog just leaves the thumbnail out.
        """
        trimmed = name.strip()
        if not trimmed:
            raise ValueError(f"{item_type.label} name cannot be empty")
        chosen = status.strip()
        if not chosen:
            raise ValueError("Please select a status")

        storage = self.vault.storage
        if not storage.exists(item_type.folder):
            storage.make_dir(item_type.folder)
        elif not storage.is_dir(item_type.folder):
            raise NotADirectoryError(f"'{item_type.folder}' exists but is not a folder")

        file_name = sanitize_file_name(trimmed)
        path = f"{item_type.folder}/{file_name}.md"
        if self.vault.exists(path):
            raise FileExistsError(f"{item_type.label} '{file_name}' already exists")

        thumbnail = None
        if item_type.folder == GAMES_FOLDER:
            credential = await self.ensure_credential()
            if credential is not None:
                thumbnail = await self.catalog.lookup_thumbnail(trimmed, credential)

        meta = MetaBag({"status": chosen, "status date": self._stamp()})
        if thumbnail:
            meta["thumbnail"] = thumbnail
        body = cover_tag(thumbnail) if thumbnail else ""
        self.vault.put(path, ParsedDocument(metadata=meta, body=body))
        logger.info("Created %s", path)
        return path

    async def refresh_covers(self, folder: str = GAMES_FOLDER, force: bool = False) -> dict[str, int]:
        """
        Look every note in ``folder`` up again and rewrite stale covers.

        Notes are handled one at a time so the single cached token and the
        catalog's rate limit are never hit concurrently.
        """
        counts = {"scanned": 0, "updated": 0, "skipped": 0, "failed": 0}
        paths = list(self.vault.list_notes(folder))
        counts["scanned"] = len(paths)
        if not paths:
            return counts

        credential = await self.ensure_credential()
        if credential is None:
            counts["failed"] = len(paths)
            return counts

        for path in paths:
            doc = self.vault.get(path)
            if doc is None:
                counts["failed"] += 1
                continue
            name = doc.metadata.get_str("name") or PurePosixPath(path).stem
            found = await self.catalog.lookup_game(name, credential)
            if found is None:
                logger.info("No IGDB match for %s", path)
                counts["failed"] += 1
                continue
            if not found.thumbnail:
                counts["skipped"] += 1
                continue
            if not force and thumbnail_is_current(doc, found.thumbnail):
                counts["skipped"] += 1
                continue

            old = doc.metadata.get_str("thumbnail")
            doc.metadata["thumbnail"] = found.thumbnail
            doc.body = point_cover(doc.body, old, found.thumbnail)
            self.vault.put(path, doc)
            counts["updated"] += 1
        return counts
