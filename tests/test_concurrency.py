from __future__ import annotations

import time

import pytest

from ddftools.concurrency import run_indexed_tasks
from ddftools.runtime import get_build_jobs


def _task(value, delay=0.0):
    def run():
        time.sleep(delay)
        return value

    return run


def _boom():
    raise RuntimeError("boom")


def test_results_come_back_in_index_order() -> None:
    tasks = [(i, _task(i * 10, delay=0.02 * (4 - i))) for i in range(5)]

    assert run_indexed_tasks(tasks, max_workers=5) == [(i, i * 10) for i in range(5)]


def test_on_error_replaces_failed_result() -> None:
    tasks = [(0, _task("a")), (1, _boom), (2, _task("c"))]

    results = run_indexed_tasks(
        tasks, max_workers=3, on_error=lambda index, exc: f"{index}:{exc}"
    )

    assert results == [(0, "a"), (1, "1:boom"), (2, "c")]


def test_without_on_error_first_failure_is_raised() -> None:
    with pytest.raises(RuntimeError, match="boom"):
        run_indexed_tasks([(0, _task("a")), (1, _boom)], max_workers=2)
    with pytest.raises(RuntimeError, match="boom"):
        run_indexed_tasks([(0, _boom)], max_workers=1)


def test_build_jobs_from_environment(monkeypatch) -> None:
    monkeypatch.delenv("DDF_TOOLS_BUILD_JOBS", raising=False)
    assert get_build_jobs() == 4
    monkeypatch.setenv("DDF_TOOLS_BUILD_JOBS", "500")
    assert get_build_jobs() == 64
    monkeypatch.setenv("DDF_TOOLS_BUILD_JOBS", "zero")
    assert get_build_jobs() == 4
