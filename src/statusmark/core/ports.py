from typing import Protocol, Iterable, Any, Sequence
from .model import NotePath, ParsedDocument, Credential, GameMetadata


class StorageStrategy(Protocol):
    """
    Vault directory; notes addressed by vault-relative path.
    """

    def read_raw(self, path: NotePath) -> str | None:
        pass

    def write_raw(self, path: NotePath, contents: str) -> None:
        pass

    def exists(self, path: NotePath) -> bool:
        pass

    def is_dir(self, path: NotePath) -> bool:
        pass

    def make_dir(self, path: NotePath) -> None:
        pass

    def list_notes(self, folder: NotePath) -> Iterable[NotePath]:
        pass


class MetadataHandle(Protocol):
    """
    Editable, formatting-aware view of one parsed frontmatter block.
    """

    def snapshot(self) -> dict[str, Any]:
        pass

    def set_in(self, path: Sequence[str | int], value: Any) -> None:
        pass

    def render(self) -> str:
        pass


class FrontmatterCodec(Protocol):
    """
    Split a note into metadata and body and join them back.
    """

    def parse(self, text: str) -> ParsedDocument:
        pass

    def serialize(self, doc: ParsedDocument) -> str:
        pass


class GameCatalog(Protocol):
    async def acquire_credential(self, client_secret: str) -> Credential | None:
        pass

    async def lookup_game(
        self, name: str, credential: Credential, limit: int = 5
    ) -> GameMetadata | None:
        pass

    async def lookup_thumbnail(self, name: str, credential: Credential) -> str | None:
        pass
