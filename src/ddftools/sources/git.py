import os
import subprocess
from datetime import datetime, timezone
from typing import Optional


def _run_git(repo_root: str, args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", "-C", repo_root, *args], check=True, capture_output=True, text=True
    )


def get_repo_root(start_path: str) -> Optional[str]:
    path = start_path if not os.path.isfile(start_path) else os.path.dirname(start_path)
    try:
        return _run_git(path, ["rev-parse", "--show-toplevel"]).stdout.strip()
    except (subprocess.CalledProcessError, OSError):
        return None


def to_rel(repo_root: str, p: str) -> str:
    if not os.path.isabs(p):
        p = os.path.abspath(p)
    repo_root = os.path.abspath(repo_root)
    if os.path.commonpath([repo_root, p]) != repo_root:
        raise ValueError(f"Path is outside the repository: {p}")
    return os.path.relpath(p, repo_root).replace(os.sep, "/")


def last_commit_time(repo_root: str, rel_path: str) -> Optional[datetime]:
    """Committer time of the last commit touching ``rel_path``, if any."""
    out = _run_git(repo_root, ["log", "-1", "--format=%ct", "--", rel_path]).stdout
    out = out.strip()
    if not out:
        return None
    return datetime.fromtimestamp(int(out), tz=timezone.utc)


def worktree_status(repo_root: str, rel_path: str) -> str:
    """Porcelain status code of ``rel_path`` against HEAD ("" when clean)."""
    out = _run_git(
        repo_root, ["status", "--porcelain", "--untracked-files=all", "--", rel_path]
    ).stdout
    for line in out.splitlines():
        if len(line) >= 2:
            return line[:2]
    return ""


def diff_status(repo_root: str, base_rev: str, rel_path: str) -> str:
    """Name-status letter of ``rel_path`` between ``base_rev`` and the worktree."""
    out = _run_git(
        repo_root, ["diff", "--name-status", base_rev, "--", rel_path]
    ).stdout
    for line in out.splitlines():
        line = line.strip()
        if line:
            return line[0]
    return ""
