"""Shared pytest fixtures: a small blog laid out on disk."""

from __future__ import annotations

from pathlib import Path

import pytest

from blogpress.config import SiteConfig

POST_LAYOUT = """<html><head><title>{{title}} | {{site.title}}</title></head>
<body><article data-url="{{url}}"><p class="meta">{{date}} {{tags}}</p>
{{content}}
</article><nav>{{previous}} {{next}}</nav></body></html>
"""

PAGE_LAYOUT = "<html><body class=\"page\"><h1>{{title}}</h1>{{content}}</body></html>\n"

DEFAULT_LAYOUT = "<html><head><title>{{title}}</title></head><body>{{content}}</body></html>\n"


def write_file(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """Project root with layouts, an empty posts folder and a config file."""
    root = tmp_path / "blog"
    write_file(root / "_layouts" / "post.html", POST_LAYOUT)
    write_file(root / "_layouts" / "page.html", PAGE_LAYOUT)
    write_file(root / "_layouts" / "default.html", DEFAULT_LAYOUT)
    (root / "_posts").mkdir(parents=True)
    write_file(root / "_config.yml", "title: Test Blog\nbase_url: https://example.org\n")
    return root


@pytest.fixture
def make_config(site_root: Path):
    """Factory for a SiteConfig rooted at `site_root`, with overrides."""

    def factory(**overrides) -> SiteConfig:
        settings = {"title": "Test Blog", "base_url": "https://example.org", "highlight": False}
        settings.update(overrides)
        return SiteConfig.from_settings(settings, config_path=site_root / "_config.yml")

    return factory


@pytest.fixture
def config(make_config) -> SiteConfig:
    return make_config()


@pytest.fixture
def write_post(site_root: Path):
    def factory(name: str, text: str) -> Path:
        return write_file(site_root / "_posts" / name, text)

    return factory
