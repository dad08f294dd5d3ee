from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class SiteError(Exception):
    """Base class for every failure the build can report."""

    def __init__(self, message: str, path: Optional[Path | str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.path.as_posix()}: {self.message}"


class NotFound(SiteError):
    pass


class ConfigError(SiteError):
    pass


class MalformedFrontMatter(SiteError):
    pass


class UnterminatedBlock(SiteError):
    def __init__(self, message: str, line: int, path: Optional[Path | str] = None) -> None:
        super().__init__(message, path)
        self.line = line


class UnknownLayout(SiteError):
    def __init__(self, layout: str, path: Optional[Path | str] = None) -> None:
        super().__init__(f"unknown layout {layout!r}", path)
        self.layout = layout


class WriteFailure(SiteError):
    """Output could not be written; `sources` names every input involved."""

    def __init__(self, message: str, sources: Sequence[Path | str] = (), path: Optional[Path | str] = None) -> None:
        super().__init__(message, path)
        self.sources = tuple(Path(item) for item in sources)


def with_path(error: SiteError, path: Path | str) -> SiteError:
    if error.path is None:
        error.path = Path(path)
    return error
