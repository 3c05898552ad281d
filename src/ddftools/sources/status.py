"""Change-status providers consulted by the source registry."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from datetime import datetime, timezone
from typing import Any, Iterable, Literal, Mapping, Protocol

from . import git

ProviderStatus = Literal["added", "removed", "modified", "unchanged"]
MODIFIED_METHODS = ("gitlog", "mtime", "atime", "diff")

_LISTING_STATUSES: dict[str, ProviderStatus] = {
    "added": "added",
    "removed": "removed",
    "deleted": "removed",
    "modified": "modified",
    "renamed": "modified",
    "copied": "added",
    "changed": "modified",
    "unchanged": "unchanged",
}


class StatusLookupError(RuntimeError):
    """Raised when a path's change status or timestamp cannot be determined."""


class ChangeStatusProvider(Protocol):
    def status(self, path: str) -> ProviderStatus: ...
    def last_modified(self, path: str) -> datetime: ...


def _log(msg: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(msg, file=sys.stderr, flush=True)


class MtimeProvider:
    """Filesystem modification time; files newer than ``since`` count as modified."""

    def __init__(self, since: datetime | None = None):
        self.since = since

    def _stat_time(self, st: os.stat_result) -> float:
        return st.st_mtime

    def last_modified(self, path: str) -> datetime:
        try:
            st = os.stat(path)
        except OSError as exc:
            raise StatusLookupError(f"Cannot stat {path}: {exc}") from exc
        return datetime.fromtimestamp(self._stat_time(st), tz=timezone.utc)

    def status(self, path: str) -> ProviderStatus:
        if self.since is None:
            return "unchanged"
        if self.last_modified(path) > self.since:
            return "modified"
        return "unchanged"


class AtimeProvider(MtimeProvider):
    """Same as :class:`MtimeProvider` but keyed on the access time."""

    def _stat_time(self, st: os.stat_result) -> float:
        return st.st_atime


class GitLogProvider:
    """Version-control backed provider.

    The timestamp is the committer time of the last commit touching the file.
    Without ``base_rev`` the status compares the worktree to HEAD; with it, the
    worktree is compared to that revision.
    """

    def __init__(self, repo_root: str | None = None, base_rev: str | None = None):
        self._repo_root = repo_root
        self.base_rev = base_rev

    def _root_for(self, path: str) -> str:
        if self._repo_root is None:
            root = git.get_repo_root(path)
            if root is None:
                raise StatusLookupError(f"No git repository found for {path}")
            self._repo_root = root
        return self._repo_root

    def last_modified(self, path: str) -> datetime:
        root = self._root_for(path)
        try:
            when = git.last_commit_time(root, git.to_rel(root, path))
        except (subprocess.CalledProcessError, ValueError) as exc:
            raise StatusLookupError(f"git log failed for {path}: {exc}") from exc
        if when is None:
            raise StatusLookupError(f"No commit history for {path}")
        return when

    def status(self, path: str) -> ProviderStatus:
        root = self._root_for(path)
        try:
            rel = git.to_rel(root, path)
            code = git.worktree_status(root, rel)
            if code == "??":
                return "added"
            if self.base_rev is not None:
                letter = git.diff_status(root, self.base_rev, rel)
                return _status_from_letter(letter)
        except (subprocess.CalledProcessError, ValueError) as exc:
            raise StatusLookupError(f"git status failed for {path}: {exc}") from exc
        return _status_from_letter(code.strip()[:1])


def _status_from_letter(letter: str) -> ProviderStatus:
    if not letter:
        return "unchanged"
    if letter in ("A", "C", "?"):
        return "added"
    if letter == "D":
        return "removed"
    return "modified"


class DiffMapProvider:
    """Precomputed ``path -> status`` map; paths absent from the map are unchanged.

    Timestamps are delegated to ``clock`` (filesystem mtime by default).
    """

    def __init__(
        self,
        changes: Mapping[str, str],
        clock: ChangeStatusProvider | None = None,
    ):
        self.changes: dict[str, ProviderStatus] = {}
        for path, status in changes.items():
            normalized = _LISTING_STATUSES.get(str(status).lower())
            if normalized is None:
                raise ValueError(f"Unknown change status {status!r} for {path}")
            self.changes[os.path.abspath(path)] = normalized
        self.clock = clock or MtimeProvider()

    def status(self, path: str) -> ProviderStatus:
        return self.changes.get(os.path.abspath(path), "unchanged")

    def last_modified(self, path: str) -> datetime:
        return self.clock.last_modified(path)


def changes_from_listing(
    items: Iterable[Any], root: str | None = None
) -> dict[str, str]:
    """Turn a hosting-platform "files changed" listing into a change map.

    Items are ``{"filename": ..., "status": ...}`` mappings; filenames are
    resolved against ``root`` (the current directory by default).
    """
    base = os.path.abspath(root or os.getcwd())
    changes: dict[str, str] = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f"Invalid change entry: {item!r}")
        filename = item.get("filename") or item.get("path")
        if not filename or not isinstance(filename, str):
            raise ValueError(f"Change entry without filename: {item!r}")
        status = str(item.get("status") or "modified")
        changes[os.path.normpath(os.path.join(base, filename))] = status
    return changes


def load_changes(path: str, root: str | None = None) -> dict[str, str]:
    """Load a change listing from a JSON or YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()
    if path.endswith((".yml", ".yaml")):
        import yaml

        data = yaml.safe_load(raw)
    else:
        data = json.loads(raw)
    if isinstance(data, dict):
        data = data.get("files", [])
    if not isinstance(data, list):
        raise ValueError(f"Change listing must be a list: {path}")
    return changes_from_listing(data, root=root)


def build_status_provider(
    method: str,
    *,
    changes: Mapping[str, str] | None = None,
    since: datetime | None = None,
    base_rev: str | None = None,
    repo_root: str | None = None,
) -> ChangeStatusProvider:
    if method == "mtime":
        return MtimeProvider(since=since)
    if method == "atime":
        return AtimeProvider(since=since)
    if method == "gitlog":
        return GitLogProvider(repo_root=repo_root, base_rev=base_rev)
    if method == "diff":
        if changes is None:
            raise ValueError("The 'diff' method requires a change map")
        clock: ChangeStatusProvider
        if repo_root is not None and git.get_repo_root(repo_root):
            clock = GitLogProvider(repo_root=repo_root)
        else:
            clock = MtimeProvider()
        _log(f"Using change map with {len(changes)} entries")
        return DiffMapProvider(changes, clock=clock)
    raise ValueError(f"Unknown file modified method: {method}")
