from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable

from .content import Post
from .render import RenderedBody


@dataclass(frozen=True, eq=False)
class RenderedPost:
    """A post after body rendering, with its output location fixed."""

    post: Post
    url: str
    body: RenderedBody
    excerpt: str


@dataclass(frozen=True)
class RenderedPage:
    """One output file: relative POSIX path plus final bytes."""

    path: str
    content: bytes
    sources: tuple[Path, ...] = ()


@dataclass(frozen=True)
class SiteIndex:
    posts: tuple[RenderedPost, ...]
    tags: Mapping[str, tuple[RenderedPost, ...]]
    categories: Mapping[str, tuple[RenderedPost, ...]]
    months: Mapping[str, tuple[RenderedPost, ...]]


def newest_first(entries: Iterable[RenderedPost]) -> list[RenderedPost]:
    ordered = sorted(entries, key=lambda entry: entry.post.source.as_posix())
    return sorted(ordered, key=lambda entry: entry.post.date, reverse=True)


def _group(entries: Iterable[RenderedPost], keys) -> Mapping[str, tuple[RenderedPost, ...]]:
    groups: dict[str, list[RenderedPost]] = {}
    for entry in entries:
        for key in keys(entry):
            groups.setdefault(key, []).append(entry)
    return MappingProxyType({key: tuple(groups[key]) for key in sorted(groups, key=lambda k: (k.lower(), k))})


def build_index(entries: Iterable[RenderedPost]) -> SiteIndex:
    """Tag, category and month groupings, rebuilt from scratch every build."""
    posts = tuple(newest_first(entry for entry in entries if entry.post.is_post))
    return SiteIndex(
        posts=posts,
        tags=_group(posts, lambda entry: entry.post.tags),
        categories=_group(posts, lambda entry: entry.post.categories),
        months=_group(posts, lambda entry: [entry.post.date.strftime("%Y-%m")]),
    )
