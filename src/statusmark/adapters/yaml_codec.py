"""Round-trip YAML frontmatter for statusmark notes.

The block between the ``---`` delimiters is loaded into a ruamel.yaml
round-trip tree. Edits made to the plain ``metadata`` snapshot are reconciled
back into that tree before it is dumped, so comments, quoting and key order of
untouched keys survive the write.
"""

import datetime
import io
import logging
import math
import re
from collections.abc import Mapping, Sequence
from typing import Any

import yaml
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import YAMLError
from ruamel.yaml.representer import RoundTripRepresenter
from ruamel.yaml.scalarbool import ScalarBoolean
from ruamel.yaml.scalarstring import ScalarString
from ruamel.yaml.util import load_yaml_guess_indent

from ..core.meta import MetaBag
from ..core.model import ParsedDocument
from ..core.ports import FrontmatterCodec

logger = logging.getLogger(__name__)

_OPEN = "---\n"
_CLOSE = re.compile(r"^---$", re.MULTILINE)
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NULL_TOKEN = re.compile(r"[:-][ \t]+(~|null|Null|NULL)[ \t]*(?:#.*)?$", re.MULTILINE)
_LEADING_BLANKS = re.compile(r"(?:[ \t]*\n)*")
_DOC_END = re.compile(r"^\.\.\.[ \t]*(?:#[^\n]*)?\n?\Z", re.MULTILINE)

_null_representers: dict[str, type[RoundTripRepresenter]] = {}


def _null_representer(token: str) -> type[RoundTripRepresenter]:
    """RoundTripRepresenter subclass that writes None as ``token``."""
    cls = _null_representers.get(token)
    if cls is None:

        def represent_none(self: RoundTripRepresenter, data: None) -> Any:
            return self.represent_scalar("tag:yaml.org,2002:null", token)

        cls = type("NullTokenRepresenter", (RoundTripRepresenter,), {})
        cls.add_representer(type(None), represent_none)
        _null_representers[token] = cls
    return cls


def _null_token(text: str) -> str:
    """The explicit null spelling used in ``text``; empty when it has none."""
    m = _NULL_TOKEN.search(text)
    return m.group(1) if m else ""


def _round_trip_yaml(text: str) -> YAML:
    rt = YAML(typ="rt")
    rt.preserve_quotes = True
    rt.width = 4096  # never fold long values such as URLs
    rt.Representer = _null_representer(_null_token(text))
    _, indent, block_seq_indent = load_yaml_guess_indent(text)
    if indent is not None:
        rt.indent(
            mapping=indent,
            sequence=indent,
            offset=block_seq_indent or 0,
        )
    return rt


def to_plain(value: Any) -> Any:
    """Strip ruamel node types down to JSON-comparable Python data."""
    if isinstance(value, Mapping):
        return {_plain_key(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, (bool, ScalarBoolean)):
        return bool(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, str):
        return str(value)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return value


def _plain_key(key: Any) -> Any:
    return str(key) if isinstance(key, str) else key


def _same(a: Any, b: Any) -> bool:
    """Scalar equality that keeps True apart from 1 and 1 apart from 1.0."""
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a):
        return math.isnan(b)
    return type(a) is type(b) and a == b


def _as_date(value: str) -> Any:
    if _ISO_DATE.match(value):
        try:
            return datetime.date.fromisoformat(value)
        except ValueError:
            return value
    return value


def _to_node(value: Any) -> Any:
    """Build a fresh round-trip node (default block style) from plain data."""
    if isinstance(value, Mapping):
        node = CommentedMap()
        for k, v in value.items():
            node[k] = _to_node(v)
        return node
    if isinstance(value, (list, tuple)):
        return CommentedSeq(_to_node(v) for v in value)
    if isinstance(value, str):
        return _as_date(value)
    return value


def _restyle(current: Any, value: Any) -> Any:
    """Replacement node for a changed value, borrowing the old node's style."""
    if isinstance(value, str):
        if isinstance(current, ScalarString):
            return type(current)(value)
        if isinstance(current, datetime.date) and not isinstance(current, datetime.datetime):
            return _as_date(value)
        if isinstance(current, str):
            return value
    return _to_node(value)


def _reconcile(current: Any, value: Any) -> Any:
    if isinstance(current, CommentedMap) and isinstance(value, Mapping):
        _merge_map(current, value)
        return current
    if isinstance(current, CommentedSeq) and isinstance(value, (list, tuple)):
        _merge_seq(current, value)
        return current
    if _same(to_plain(current), value):
        return current
    return _restyle(current, value)


def _equal(a: Any, b: Any) -> bool:
    """Deep ``_same`` over plain data."""
    if isinstance(a, dict) and isinstance(b, Mapping):
        return list(a) == list(b) and all(_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(_equal(x, y) for x, y in zip(a, b))
    return _same(a, b)


def _merge_map(target: CommentedMap, data: Mapping) -> None:
    # Keys pulled in through ``<<: *anchor`` stay inherited unless their value changes.
    own = {_plain_key(k): k for k, _ in target.non_merged_items()}
    for key in [k for plain, k in own.items() if plain not in data]:
        del target[key]
    keys = {_plain_key(k): k for k in target}
    for key, value in data.items():
        if key in own:
            original = own[key]
            target[original] = _reconcile(target[original], value)
        elif key in keys:
            if not _equal(to_plain(target[keys[key]]), value):
                target[keys[key]] = _to_node(value)
        else:
            target[key] = _to_node(value)


def _merge_seq(target: CommentedSeq, data: Sequence) -> None:
    while len(target) > len(data):
        del target[len(target) - 1]
    for i, value in enumerate(data):
        if i < len(target):
            target[i] = _reconcile(target[i], value)
        else:
            target.append(_to_node(value))


class RoundTripHandle:
    """Live ruamel tree of one frontmatter block."""

    def __init__(self, root: CommentedMap, rt: YAML, prefix: str = "", suffix: str = ""):
        self._root = root
        self._yaml = rt
        self._prefix = prefix  # blank lines before the first node
        self._suffix = suffix  # a trailing ``...`` line

    def snapshot(self) -> dict[str, Any]:
        return to_plain(self._root)

    def set_in(self, path: Sequence[str | int], value: Any) -> None:
        """
        Reconcile the node at ``path`` with ``value``; ``[]`` is the root.

        Missing mapping keys along the way are created as empty mappings. A
        sequence index equal to the length appends; a larger one raises
        IndexError.
        """
        if not path:
            if not isinstance(value, Mapping):
                raise TypeError("frontmatter root must be a mapping")
            _merge_map(self._root, value)
            return
        node: Any = self._root
        for step in path[:-1]:
            if _is_missing(node, step):
                _add_child(node, step, CommentedMap())
            node = node[step]
        last = path[-1]
        if _is_missing(node, last):
            _add_child(node, last, _to_node(value))
        else:
            node[last] = _reconcile(node[last], value)

    def render(self) -> str:
        if not self._root:
            return ""
        buf = io.StringIO()
        self._yaml.dump(self._root, buf)
        return f"{self._prefix}{buf.getvalue()}{self._suffix}"


def _is_missing(node: Any, step: str | int) -> bool:
    if isinstance(node, CommentedMap):
        return step not in node
    if isinstance(node, CommentedSeq) and isinstance(step, int):
        return step >= len(node)
    return False


def _add_child(node: Any, step: str | int, child: Any) -> None:
    if isinstance(node, CommentedSeq):
        if step != len(node):
            raise IndexError(
                f"index {step} is past the end of a sequence of length {len(node)}"
            )
        node.append(child)
    else:
        node[step] = child


class YamlFrontmatter(FrontmatterCodec):
    def parse(self, text: str) -> ParsedDocument:
        fallback = ParsedDocument(metadata=MetaBag(), body=text, handle=None)
        if not text.startswith(_OPEN):
            return fallback
        m = _CLOSE.search(text, len(_OPEN))
        if not m:
            return fallback

        block = text[len(_OPEN) : m.start()]
        prefix = _LEADING_BLANKS.match(block).group(0)
        block = block[len(prefix) :]
        end = _DOC_END.search(block)
        suffix = block[end.start() :] if end else ""
        if end:
            block = block[: end.start()]
        try:
            rt = _round_trip_yaml(block)
            root = rt.load(block)
        except YAMLError as e:
            logger.warning("Error parsing frontmatter: %s", e)
            return fallback
        if root is None:
            root = CommentedMap()
        if not isinstance(root, CommentedMap):
            logger.warning(
                "Ignoring frontmatter that is not a mapping (%s)", type(root).__name__
            )
            return fallback

        handle = RoundTripHandle(root, rt, prefix=prefix, suffix=suffix)
        return ParsedDocument(
            metadata=MetaBag(handle.snapshot()),
            body=text[m.end() :].strip(),
            handle=handle,
        )

    def serialize(self, doc: ParsedDocument) -> str:
        if not doc.metadata:
            return doc.body

        data = dict(doc.metadata)
        if doc.handle is not None:
            doc.handle.set_in([], data)
            fm = doc.handle.render()
        else:
            fm = self.encode(data)
        return f"{_OPEN}{fm}---\n\n{doc.body}"

    def encode(self, meta: dict[str, Any]) -> str:
        """Default emitter for blocks with no original formatting to keep."""
        buf = io.StringIO()
        yaml.safe_dump(_to_yaml(meta), buf, sort_keys=False, allow_unicode=True)
        return buf.getvalue()


def _to_yaml(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _to_yaml(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_yaml(v) for v in value]
    if isinstance(value, str):
        return _as_date(value)
    return value
