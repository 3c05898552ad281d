from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ddftools.sources.status import StatusLookupError


class FakeProvider:
    """Status/timestamp provider driven by plain dicts keyed by absolute path."""

    def __init__(
        self,
        statuses: dict[str, str] | None = None,
        times: dict[str, datetime] | None = None,
    ) -> None:
        self.statuses = dict(statuses or {})
        self.times = dict(times or {})
        self.status_calls: list[str] = []
        self.time_calls: list[str] = []

    def status(self, path: str) -> str:
        self.status_calls.append(path)
        value = self.statuses.get(path, "unchanged")
        if value == "error":
            raise StatusLookupError(f"no status for {path}")
        return value

    def last_modified(self, path: str) -> datetime:
        self.time_calls.append(path)
        if path not in self.times:
            raise StatusLookupError(f"no timestamp for {path}")
        return self.times[path]


def utc(year: int, month: int = 1, day: int = 1) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def write(tmp_path):
    def _write(rel: str, text: str) -> str:
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(text.encode("utf-8"))
        return str(path)

    return _write
