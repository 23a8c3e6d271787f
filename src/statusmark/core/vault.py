from collections.abc import Iterable

from .model import NotePath, ParsedDocument
from .ports import FrontmatterCodec, StorageStrategy


class Vault:
    def __init__(self, storage: StorageStrategy, codec: FrontmatterCodec):
        self.storage = storage
        self.codec = codec

    def get(self, path: NotePath) -> ParsedDocument | None:
        raw = self.storage.read_raw(path)
        if raw is None:
            return None
        return self.codec.parse(raw)

    def put(self, path: NotePath, doc: ParsedDocument) -> None:
        self.storage.write_raw(path, self.codec.serialize(doc))

    def exists(self, path: NotePath) -> bool:
        return self.storage.exists(path)

    def list_notes(self, folder: NotePath) -> Iterable[NotePath]:
        return self.storage.list_notes(folder)
