from __future__ import annotations

import json
import os
import subprocess
from datetime import datetime, timezone

import pytest

from ddftools.sources import git
from ddftools.sources.status import (
    AtimeProvider,
    DiffMapProvider,
    GitLogProvider,
    MtimeProvider,
    StatusLookupError,
    build_status_provider,
    changes_from_listing,
    load_changes,
)


class _Completed:
    def __init__(self, stdout: str) -> None:
        self.stdout = stdout


def test_mtime_provider_compares_against_since(write) -> None:
    path = write("a.json", "{}")
    os.utime(path, (1_600_000_000, 1_600_000_000))
    stamp = datetime.fromtimestamp(1_600_000_000, tz=timezone.utc)

    assert MtimeProvider().status(path) == "unchanged"
    assert MtimeProvider(since=datetime(2019, 1, 1, tzinfo=timezone.utc)).status(path) == "modified"
    assert MtimeProvider(since=datetime(2021, 1, 1, tzinfo=timezone.utc)).status(path) == "unchanged"
    assert MtimeProvider().last_modified(path) == stamp


def test_mtime_provider_raises_lookup_error_for_missing_file(tmp_path) -> None:
    with pytest.raises(StatusLookupError):
        MtimeProvider().last_modified(str(tmp_path / "nope.json"))


def test_gitlog_provider_maps_worktree_codes(monkeypatch, tmp_path) -> None:
    codes = {"new.json": "??", "edit.json": " M", "gone.json": " D", "same.json": ""}
    monkeypatch.setattr(git, "worktree_status", lambda root, rel: codes[rel])
    provider = GitLogProvider(repo_root=str(tmp_path))

    def status(name: str) -> str:
        return provider.status(str(tmp_path / name))

    assert status("new.json") == "added"
    assert status("edit.json") == "modified"
    assert status("gone.json") == "removed"
    assert status("same.json") == "unchanged"


def test_gitlog_provider_uses_base_rev_diff(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(git, "worktree_status", lambda root, rel: "")
    letters = {"a.json": "A", "m.json": "M", "r.json": "R", "u.json": ""}
    seen: list[str] = []

    def diff_status(root: str, rev: str, rel: str) -> str:
        seen.append(rev)
        return letters[rel]

    monkeypatch.setattr(git, "diff_status", diff_status)
    provider = GitLogProvider(repo_root=str(tmp_path), base_rev="origin/main")

    assert provider.status(str(tmp_path / "a.json")) == "added"
    assert provider.status(str(tmp_path / "m.json")) == "modified"
    assert provider.status(str(tmp_path / "r.json")) == "modified"
    assert provider.status(str(tmp_path / "u.json")) == "unchanged"
    assert set(seen) == {"origin/main"}


def test_gitlog_provider_wraps_git_failures(monkeypatch, tmp_path) -> None:
    def boom(root: str, rel: str) -> str:
        raise subprocess.CalledProcessError(128, ["git"])

    monkeypatch.setattr(git, "worktree_status", boom)
    monkeypatch.setattr(git, "last_commit_time", lambda root, rel: None)
    provider = GitLogProvider(repo_root=str(tmp_path))

    with pytest.raises(StatusLookupError):
        provider.status(str(tmp_path / "a.json"))
    with pytest.raises(StatusLookupError):
        provider.last_modified(str(tmp_path / "a.json"))


def test_gitlog_provider_without_repository(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(git, "get_repo_root", lambda path: None)

    with pytest.raises(StatusLookupError):
        GitLogProvider().status(str(tmp_path / "a.json"))


def test_last_commit_time_parses_committer_timestamp(monkeypatch) -> None:
    calls: list[list[str]] = []

    def fake_run(root: str, args: list[str]) -> _Completed:
        calls.append(args)
        return _Completed("1700000000\n")

    monkeypatch.setattr(git, "_run_git", fake_run)

    when = git.last_commit_time("/repo", "devices/a.json")

    assert when == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
    assert calls == [["log", "-1", "--format=%ct", "--", "devices/a.json"]]


def test_last_commit_time_is_none_for_untracked(monkeypatch) -> None:
    monkeypatch.setattr(git, "_run_git", lambda root, args: _Completed("\n"))

    assert git.last_commit_time("/repo", "a.json") is None


def test_to_rel_rejects_paths_outside_repository(tmp_path) -> None:
    repo = tmp_path / "repo"
    assert git.to_rel(str(repo), str(repo / "devices" / "a.json")) == "devices/a.json"
    with pytest.raises(ValueError):
        git.to_rel(str(repo), str(tmp_path / "other" / "a.json"))


def test_diff_map_provider_normalizes_statuses(tmp_path, write) -> None:
    path = write("a.json", "{}")
    provider = DiffMapProvider(
        {
            str(tmp_path / "new.json"): "added",
            str(tmp_path / "moved.json"): "renamed",
            str(tmp_path / "old.json"): "deleted",
        }
    )

    assert provider.status(str(tmp_path / "new.json")) == "added"
    assert provider.status(str(tmp_path / "moved.json")) == "modified"
    assert provider.status(str(tmp_path / "old.json")) == "removed"
    assert provider.status(path) == "unchanged"
    assert isinstance(provider.last_modified(path), datetime)


def test_diff_map_provider_rejects_unknown_status(tmp_path) -> None:
    with pytest.raises(ValueError):
        DiffMapProvider({str(tmp_path / "a.json"): "exploded"})


def test_changes_from_listing_resolves_against_root(tmp_path) -> None:
    listing = [
        {"filename": "devices/a.json", "status": "modified"},
        {"filename": "devices/b.json", "status": "added"},
    ]

    changes = changes_from_listing(listing, root=str(tmp_path))

    assert changes == {
        str(tmp_path / "devices" / "a.json"): "modified",
        str(tmp_path / "devices" / "b.json"): "added",
    }
    with pytest.raises(ValueError):
        changes_from_listing([{"status": "added"}], root=str(tmp_path))


def test_load_changes_accepts_json_list_and_yaml_mapping(tmp_path) -> None:
    json_path = tmp_path / "changes.json"
    json_path.write_text(json.dumps([{"filename": "a.json", "status": "added"}]))
    yaml_path = tmp_path / "changes.yml"
    yaml_path.write_text("files:\n  - filename: b.json\n    status: removed\n")

    assert load_changes(str(json_path), root=str(tmp_path)) == {
        str(tmp_path / "a.json"): "added"
    }
    assert load_changes(str(yaml_path), root=str(tmp_path)) == {
        str(tmp_path / "b.json"): "removed"
    }


def test_build_status_provider_selects_method(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(git, "get_repo_root", lambda path: None)

    assert isinstance(build_status_provider("mtime"), MtimeProvider)
    assert isinstance(build_status_provider("atime"), AtimeProvider)
    assert isinstance(build_status_provider("gitlog", repo_root=str(tmp_path)), GitLogProvider)
    diff = build_status_provider("diff", changes={}, repo_root=str(tmp_path))
    assert isinstance(diff, DiffMapProvider)
    assert isinstance(diff.clock, MtimeProvider)

    with pytest.raises(ValueError):
        build_status_provider("diff")
    with pytest.raises(ValueError):
        build_status_provider("sundial")
