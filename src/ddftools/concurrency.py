from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from contextvars import copy_context
from typing import Any, Callable


def run_indexed_tasks(
    tasks: list[tuple[int, Callable[[], Any]]],
    *,
    max_workers: int,
    on_error: Callable[[int, Exception], Any] | None = None,
) -> list[tuple[int, Any]]:
    """Run tasks on a thread pool and return ``(index, result)`` pairs in index order.

    Without ``on_error`` the first failure cancels pending tasks and is re-raised.
    With it, a failing task's result is replaced by ``on_error(index, exc)`` and
    sibling tasks keep running.
    """
    if not tasks:
        return []
    if max_workers <= 1 or len(tasks) == 1:
        return [(index, _run_one(index, task, on_error)) for index, task in tasks]

    results: dict[int, Any] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_index = {
            executor.submit(copy_context().run, task): index for index, task in tasks
        }
        try:
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except Exception as exc:
                    if on_error is None:
                        raise
                    results[index] = on_error(index, exc)
        except Exception:
            for future in future_to_index:
                future.cancel()
            raise

    return [(index, results[index]) for index in sorted(results)]


def _run_one(
    index: int,
    task: Callable[[], Any],
    on_error: Callable[[int, Exception], Any] | None,
) -> Any:
    if on_error is None:
        return task()
    try:
        return task()
    except Exception as exc:
        return on_error(index, exc)
