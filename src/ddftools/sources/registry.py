"""In-memory source registry shared by every build task of a run."""

from __future__ import annotations

import json
import os
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Literal

from .status import ChangeStatusProvider, StatusLookupError

Category = Literal["ddf", "generic", "misc"]
ChangeStatus = Literal["added", "modified", "unchanged", "missing"]
CATEGORIES: tuple[Category, ...] = ("ddf", "generic", "misc")


def _log(msg: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(msg, file=sys.stderr, flush=True)


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


@dataclass
class SourceEntry:
    path: str
    category: Category
    content: bytes
    status: ChangeStatus
    use_count: int = 0
    last_modified: datetime | None = None

    def text(self) -> str:
        return self.content.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.text())


def canonical_path(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path))


class SourceRegistry:
    """Lazily loads files, caches one entry per canonical path and counts uses.

    Entries live in one map per category. File reads and status lookups happen
    outside the lock; the first entry inserted for a path wins.
    """

    def __init__(
        self,
        generic_path: str,
        provider: ChangeStatusProvider,
        *,
        reader: Callable[[str], bytes] = _read_bytes,
    ):
        self.generic_path = canonical_path(generic_path)
        self.provider = provider
        self._reader = reader
        self._entries: dict[Category, dict[str, SourceEntry]] = {
            category: {} for category in CATEGORIES
        }
        self._lock = threading.Lock()

    def category_of(self, path: str) -> Category:
        if not path.endswith(".json"):
            return "misc"
        if path == self.generic_path or path.startswith(
            os.path.join(self.generic_path, "")
        ):
            return "generic"
        return "ddf"

    def register(self, paths: Iterable[str]) -> None:
        """Load discovered files without counting them as used."""
        for path in paths:
            self.resolve(path, counts_as_use=False)

    def get(self, path: str) -> SourceEntry | None:
        path = canonical_path(path)
        with self._lock:
            return self._entries[self.category_of(path)].get(path)

    def resolve(self, path: str, counts_as_use: bool = True) -> SourceEntry:
        path = canonical_path(path)
        bucket = self._entries[self.category_of(path)]
        with self._lock:
            entry = bucket.get(path)
            if entry is not None:
                if counts_as_use:
                    entry.use_count += 1
                return entry

        fresh = self._load(path)
        with self._lock:
            entry = bucket.setdefault(path, fresh)
            if counts_as_use:
                entry.use_count += 1
            return entry

    def _load(self, path: str) -> SourceEntry:
        category = self.category_of(path)
        try:
            content = self._reader(path)
        except OSError as exc:
            _log(f"Missing source {path}: {exc}")
            return SourceEntry(path, category, b"", "missing")

        try:
            provided = self.provider.status(path)
        except StatusLookupError as exc:
            _log(f"Status lookup failed for {path}, assuming unchanged: {exc}")
            provided = "unchanged"
        status: ChangeStatus = "missing" if provided == "removed" else provided
        return SourceEntry(path, category, content, status)

    def last_modified(self, path: str) -> datetime:
        entry = self.resolve(path, counts_as_use=False)
        with self._lock:
            if entry.last_modified is not None:
                return entry.last_modified

        try:
            when = self.provider.last_modified(entry.path)
        except StatusLookupError as exc:
            _log(f"Timestamp lookup failed for {entry.path}, using now: {exc}")
            when = datetime.now(timezone.utc)

        with self._lock:
            if entry.last_modified is None:
                entry.last_modified = when
            return entry.last_modified

    def override_content(self, path: str, content: bytes | str) -> SourceEntry:
        """Replace an entry's content in memory; the file on disk is untouched."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        entry = self.resolve(path, counts_as_use=False)
        with self._lock:
            entry.content = content
            entry.status = "modified"
            entry.last_modified = datetime.now(timezone.utc)
        return entry

    def all_paths(self, category: Category) -> list[str]:
        with self._lock:
            return sorted(self._entries[category])

    def unused_paths(self, category: Category) -> list[str]:
        with self._lock:
            return sorted(
                path
                for path, entry in self._entries[category].items()
                if entry.use_count == 0
            )

    def unused(self) -> dict[str, list[str]]:
        return {category: self.unused_paths(category) for category in CATEGORIES}
