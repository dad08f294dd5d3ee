from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import MalformedFrontMatter, SiteError, with_path
from .frontmatter import FrontMatter, parse_front_matter
from .utils import slugify

FILENAME_DATE_RE = re.compile(r"^(?P<date>\d{4}-\d{2}-\d{2})-(?P<rest>.+)$")
HEADING_RE = re.compile(r"^#\s+(?P<title>.+?)\s*#*\s*$")
DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
)

POST = "post"
PAGE = "page"


def parse_date_value(value: str) -> dt.datetime:
    """Parse a front matter date; offsets are dropped, wall-clock kept."""
    value = value.strip()
    parsed = None
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError:
        for fmt in DATE_FORMATS:
            try:
                parsed = dt.datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        raise MalformedFrontMatter(f"invalid date {value!r}")
    return parsed.replace(tzinfo=None)


def split_filename_date(stem: str) -> tuple[Optional[str], str]:
    match = FILENAME_DATE_RE.match(stem)
    if not match:
        return None, stem
    return match.group("date"), match.group("rest")


def extract_title(front_matter: FrontMatter, body: str, fallback: str) -> str:
    title = front_matter.get_str("title")
    if title and title.strip():
        return title.strip()
    for line in body.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        match = HEADING_RE.match(stripped)
        if match:
            return match.group("title")
        break
    return fallback.replace("-", " ").strip().capitalize() or "Untitled"


@dataclass(frozen=True)
class Post:
    """One content file; immutable for the lifetime of a build."""

    source: Path
    front_matter: FrontMatter
    body: str
    kind: str
    title: str
    date: Optional[dt.datetime]
    slug: str
    tags: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    excerpt: Optional[str] = None
    layout: Optional[str] = None
    comments: bool = False
    draft: bool = False

    @property
    def is_post(self) -> bool:
        return self.kind == POST


def make_post(source: Path, raw: bytes | str, kind: str = POST) -> Post:
    """Parse raw file contents into a Post, tagging any error with `source`."""
    try:
        front_matter, body = parse_front_matter(raw)
        return _build_post(Path(source), front_matter, body, kind)
    except SiteError as exc:
        raise with_path(exc, source)


def _build_post(source: Path, front_matter: FrontMatter, body: str, kind: str) -> Post:
    file_date, stem = split_filename_date(source.stem)
    date_text = front_matter.get_str("date") or file_date
    date = parse_date_value(date_text) if date_text else None
    if kind == POST and date is None:
        raise MalformedFrontMatter("post has no date")

    explicit_slug = (front_matter.get_str("slug") or "").strip()
    slug = slugify(explicit_slug or stem)

    tags = front_matter.get_list("tags") or front_matter.get_list("tag")
    categories = front_matter.get_list("categories") or front_matter.get_list("category")
    layout = front_matter.get_str("layout")
    draft = front_matter.get_bool("draft") or not front_matter.get_bool("published", True)
    return Post(
        source=source,
        front_matter=front_matter,
        body=body,
        kind=kind,
        title=extract_title(front_matter, body, stem),
        date=date,
        slug=slug,
        tags=tuple(dict.fromkeys(tags)),
        categories=tuple(dict.fromkeys(categories)),
        excerpt=front_matter.get_str("excerpt"),
        layout=layout.strip() if layout else None,
        comments=front_matter.get_bool("comments"),
        draft=draft,
    )
