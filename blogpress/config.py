from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from .errors import ConfigError
from .utils import parse_bool, parse_int

try:
    import tomllib as toml
except ImportError:
    try:
        import tomli as toml
    except ImportError:  # pragma: no cover - optional dependency
        toml = None

DEFAULT_CONFIG = "_config.yml"
DEFAULT_PERMALINK = "/:year/:month/:day/:title.html"
MAX_WORKERS = 32


def load_config(path: Path) -> dict:
    """Read the site settings file; a missing file means all defaults."""
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"cannot read config file: {exc}", path) from exc
    if suffix == ".toml":
        if toml is None:
            raise ConfigError("TOML config requires tomllib (Python 3.11+) or tomli.", path)
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML: {exc}", path) from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML: {exc}", path) from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid JSON: {exc}", path) from exc
    if not isinstance(data, dict):
        raise ConfigError("config must be a mapping", path)
    return data


@dataclass(frozen=True)
class SiteConfig:
    """Immutable build settings handed to every pipeline stage."""

    source: Path
    output: Path
    posts: Path
    pages: Path
    layouts: Path
    static: Path
    config_path: Optional[Path] = None
    root: Optional[Path] = None
    title: str = "My Blog"
    description: str = ""
    base_url: str = ""
    author: str = ""
    permalink: str = DEFAULT_PERMALINK
    default_layout: str = "post"
    page_layout: str = "page"
    list_layout: str = "default"
    posts_per_page: int = 10
    feed_limit: int = 20
    highlight: bool = True
    highlight_style: str = "default"
    toc_depth: str = "2-4"
    drafts: bool = False
    clean: bool = False
    enable_feed: bool = True
    enable_sitemap: bool = True
    build_workers: int = 1
    site_vars: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_settings(
        cls,
        settings: Mapping[str, Any],
        config_path: Optional[Path] = None,
        root: Optional[Path] = None,
        **overrides: Any,
    ) -> "SiteConfig":
        if root is None:
            root = config_path.parent if config_path is not None else Path.cwd()
        merged = dict(settings)
        merged.update({key: value for key, value in overrides.items() if value is not None})

        def cfg_str(key: str, default: str) -> str:
            value = merged.get(key)
            return default if value is None else str(value)

        def cfg_bool(key: str, default: bool) -> bool:
            value = merged.get(key)
            return default if value is None else parse_bool(value)

        def cfg_int(key: str, default: int) -> int:
            return parse_int(merged.get(key), default)

        source = root / cfg_str("source", ".")
        workers = cfg_int("build_workers", 1)
        if workers <= 0:
            workers = os.cpu_count() or 1
        workers = max(1, min(workers, MAX_WORKERS))

        site_vars = {
            key: str(value).lower() if isinstance(value, bool) else str(value)
            for key, value in merged.items()
            if isinstance(value, (str, int, float, bool))
        }
        config = cls(
            source=source,
            output=root / cfg_str("output", "_site"),
            posts=source / cfg_str("posts", "_posts"),
            pages=source / cfg_str("pages", "_pages"),
            layouts=source / cfg_str("layouts", "_layouts"),
            static=source / cfg_str("static", "static"),
            config_path=config_path,
            root=root,
            title=cfg_str("title", "My Blog"),
            description=cfg_str("description", ""),
            base_url=cfg_str("base_url", "").strip(),
            author=cfg_str("author", ""),
            permalink=cfg_str("permalink", DEFAULT_PERMALINK),
            default_layout=cfg_str("default_layout", "post"),
            page_layout=cfg_str("page_layout", "page"),
            list_layout=cfg_str("list_layout", "default"),
            posts_per_page=max(1, cfg_int("posts_per_page", 10)),
            feed_limit=max(1, cfg_int("feed_limit", 20)),
            highlight=cfg_bool("highlight", True),
            highlight_style=cfg_str("highlight_style", "default"),
            toc_depth=cfg_str("toc_depth", "2-4"),
            drafts=cfg_bool("drafts", False),
            clean=cfg_bool("clean", False),
            enable_feed=cfg_bool("enable_feed", True),
            enable_sitemap=cfg_bool("enable_sitemap", True),
            build_workers=workers,
        )
        site_vars.update(
            {
                "title": config.title,
                "description": config.description,
                "base_url": config.base_url,
                "author": config.author,
            }
        )
        return replace(config, site_vars=MappingProxyType(site_vars))

    @classmethod
    def load(cls, config_path: Path, **overrides: Any) -> "SiteConfig":
        config_path = config_path.resolve()
        return cls.from_settings(load_config(config_path), config_path, **overrides)

    def watched_paths(self) -> list[Path]:
        paths = [self.posts, self.pages, self.layouts, self.static]
        if self.config_path is not None:
            paths.append(self.config_path)
        return paths
