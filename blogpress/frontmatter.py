"""Front matter: the `---` delimited YAML block at the top of a content file.

Values are normalised into a small closed set of shapes (string, number,
boolean, tuple of strings) so later stages never see nested mappings or
nulls. Anything else is rejected while parsing.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from typing import Iterator, Optional, Tuple, Union

import yaml

from .errors import MalformedFrontMatter
from .utils import parse_bool

MARKER = "---"
CLOSING_MARKERS = {"---", "..."}

FrontMatterValue = Union[str, int, float, bool, Tuple[str, ...]]


def parse_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def _scalar_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dt.datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


def normalize_value(key: str, value: object) -> FrontMatterValue:
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (dt.date, dt.datetime)):
        return _scalar_text(value)
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if item is None:
                continue
            if isinstance(item, (dict, list, tuple)):
                raise MalformedFrontMatter(f"list {key!r} may only hold plain values")
            items.append(_scalar_text(item))
        return tuple(items)
    raise MalformedFrontMatter(f"unsupported value for {key!r}: {type(value).__name__}")


class FrontMatter(Mapping):
    """Immutable, key-ordered front matter mapping."""

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Mapping[str, object]] = None) -> None:
        data: dict[str, FrontMatterValue] = {}
        for key, value in (items or {}).items():
            if value is None:
                continue
            key = str(key)
            data[key] = normalize_value(key, value)
        self._items = data

    def __getitem__(self, key: str) -> FrontMatterValue:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"FrontMatter({self._items!r})"

    def __hash__(self) -> int:
        return hash(tuple(self._items.items()))

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        if key not in self._items:
            return default
        value = self._items[key]
        if isinstance(value, (bool, tuple)):
            raise MalformedFrontMatter(f"{key!r} must be a single value")
        return str(value)

    def get_list(self, key: str) -> list[str]:
        if key not in self._items:
            return []
        value = self._items[key]
        if isinstance(value, tuple):
            return [item for item in value if item.strip()]
        if isinstance(value, str):
            return parse_list(value)
        return [_scalar_text(value)]

    def get_bool(self, key: str, default: bool = False) -> bool:
        if key not in self._items:
            return default
        value = self._items[key]
        if isinstance(value, tuple):
            raise MalformedFrontMatter(f"{key!r} must be true or false")
        return parse_bool(value)

    def to_dict(self) -> dict[str, object]:
        return {key: list(value) if isinstance(value, tuple) else value for key, value in self._items.items()}


def parse_front_matter(raw: bytes | str) -> tuple[FrontMatter, str]:
    """Split a content file into its front matter and Markdown body.

    A file that does not start with the marker line has empty front matter.
    An opening marker with no closing marker is an error.
    """
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFrontMatter(f"file is not valid UTF-8: {exc}") from exc
    else:
        text = raw
    text = text.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != MARKER:
        return FrontMatter(), text

    end = None
    for i in range(1, len(lines)):
        if lines[i].rstrip() in CLOSING_MARKERS:
            end = i
            break
    if end is None:
        raise MalformedFrontMatter("front matter block is never closed")

    block = "".join(lines[1:end])
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise MalformedFrontMatter(f"invalid front matter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrontMatter("front matter must be a mapping")
    return FrontMatter(data), "".join(lines[end + 1 :])


def serialize_front_matter(front_matter: Mapping[str, object], body: str = "") -> str:
    if not front_matter:
        return body
    if not isinstance(front_matter, FrontMatter):
        front_matter = FrontMatter(front_matter)
    block = yaml.safe_dump(
        front_matter.to_dict(),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"{MARKER}\n{block}{MARKER}\n{body}"
