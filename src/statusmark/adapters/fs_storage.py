from pathlib import Path
from typing import Iterable
from ..core.ports import StorageStrategy


class FsStorage(StorageStrategy):
    def __init__(self, root: Path):
        self.root = root

    def _path(self, path: str) -> Path:
        return self.root / path

    def read_raw(self, path: str) -> str | None:
        p = self._path(path)
        return p.read_text(encoding="utf-8") if p.is_file() else None

    def write_raw(self, path: str, contents: str) -> None:
        p = self._path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(contents, encoding="utf-8")

    def exists(self, path: str) -> bool:
        return self._path(path).exists()

    def is_dir(self, path: str) -> bool:
        return self._path(path).is_dir()

    def make_dir(self, path: str) -> None:
        self._path(path).mkdir(parents=True, exist_ok=True)

    def list_notes(self, folder: str) -> Iterable[str]:
        base = self._path(folder)
        if not base.is_dir():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in base.glob("*.md"))
