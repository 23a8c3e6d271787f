from typing import MutableMapping, Iterator, Any


class MetaBag(MutableMapping[str, Any]):
    """
    Ordered frontmatter keys of one note, e.g.,
    - "status": "in progress"
    - "status date": "2024-05-01"
    - "thumbnail": "https://images.igdb.com/..."
    Values are plain Python data; insertion order is the order written back.
    """

    def __init__(self, initial: dict | None = None):
        self._d = dict(initial or {})

    # MutableMapping interface
    def __getitem__(self, k: str) -> Any:
        return self._d[k]

    def __setitem__(self, k: str, v: Any) -> None:
        self._d[k] = v

    def __delitem__(self, k: str) -> None:
        del self._d[k]

    def __iter__(self) -> Iterator[str]:
        return iter(self._d)

    def __len__(self) -> int:
        return len(self._d)

    def __repr__(self) -> str:
        return f"MetaBag({self._d!r})"

    # Convenience
    def get_str(self, key: str, default: str | None = None) -> str | None:
        v = self._d.get(key, default)
        return v if isinstance(v, str) else default

    def to_dict(self) -> dict[str, Any]:
        return dict(self._d)
