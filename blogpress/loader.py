from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from .errors import NotFound

CONTENT_EXTENSIONS = (".md", ".markdown")


def list_files(
    root: Path, extensions: Iterable[str] | None = None, include_hidden: bool = False
) -> list[Path]:
    """Sorted files under `root`, optionally filtered by suffix.

    Hidden files and directories are skipped unless `include_hidden` is set.
    """
    if not root.is_dir():
        return []
    suffixes = {ext.lower() for ext in extensions} if extensions is not None else None
    files = []
    for path in root.rglob("*"):
        rel = path.relative_to(root)
        if not include_hidden and any(part.startswith(".") for part in rel.parts):
            continue
        if not path.is_file():
            continue
        if suffixes is not None and path.suffix.lower() not in suffixes:
            continue
        files.append(path)
    return sorted(files, key=lambda p: p.relative_to(root).as_posix())


class ContentSource:
    """Lazily yields `(relative_path, raw_bytes)` for every content file.

    Each iteration rescans the directory, so the source can be walked again
    after the tree changes.
    """

    def __init__(self, root: Path, extensions: Iterable[str] = CONTENT_EXTENSIONS) -> None:
        self.root = Path(root)
        self.extensions = tuple(extensions)
        self._check_root()

    def _check_root(self) -> None:
        if not self.root.exists():
            raise NotFound("content directory not found", self.root)
        if not self.root.is_dir():
            raise NotFound("content path is not a directory", self.root)

    def paths(self) -> list[Path]:
        self._check_root()
        return list_files(self.root, self.extensions)

    def __iter__(self) -> Iterator[tuple[Path, bytes]]:
        for path in self.paths():
            yield path.relative_to(self.root), path.read_bytes()
