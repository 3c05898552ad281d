"""Maps path-keyed validation failures onto line/column positions."""

from __future__ import annotations

import sys
from typing import Any, Iterable, Mapping, Sequence

from .engine import ValidationFailure
from .errors import LocalizedError
from .jsonwalk import JsonPath, JsonVisitor, JsonWalkError, path_key, walk


def _log(msg: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(msg, file=sys.stderr, flush=True)


class _PendingMatcher(JsonVisitor):
    def __init__(self, pending: Mapping[str, Sequence[str]], file_path: str | None):
        self.pending = {key: list(messages) for key, messages in pending.items()}
        self.file_path = file_path
        self.found: list[LocalizedError] = []

    @property
    def done(self) -> bool:
        return not self.pending

    def on_literal(self, value: Any, path: JsonPath, line: int, column: int) -> None:
        messages = self.pending.pop(path_key(path), None)
        if messages is None:
            return
        for message in messages:
            self.found.append(
                LocalizedError(message, self.file_path, line, column, json_path=path)
            )


def _split_key(key: str) -> JsonPath:
    if not key:
        return ()
    return tuple(int(part) if part.isdigit() else part for part in key.split("/"))


def localize_errors(
    errors_by_path: Mapping[str, Sequence[str]],
    file_path: str | None,
    text: str,
) -> list[LocalizedError]:
    """Attach a position to each ``"a/0/b"``-keyed message found in ``text``.

    Each key matches its first literal only. Keys never seen in the text are
    returned after the localized ones, without a position.
    """
    matcher = _PendingMatcher(errors_by_path, file_path)
    if matcher.pending and text:
        try:
            walk(text, matcher)
        except JsonWalkError as exc:
            _log(f"Stopped localizing {file_path}: {exc}")

    result = list(matcher.found)
    for key, messages in matcher.pending.items():
        for message in messages:
            result.append(LocalizedError(message, file_path, json_path=_split_key(key)))
    return result


def group_failures(
    failures: Iterable[ValidationFailure],
) -> dict[str, dict[str, list[str]]]:
    """``file -> json path key -> messages``, preserving first-seen order."""
    grouped: dict[str, dict[str, list[str]]] = {}
    for failure in failures:
        grouped.setdefault(failure.path, {}).setdefault(failure.key, []).append(
            failure.message
        )
    return grouped


def localize_failures(
    failures: Iterable[ValidationFailure], texts: Mapping[str, str]
) -> list[LocalizedError]:
    errors: list[LocalizedError] = []
    for path, by_key in group_failures(failures).items():
        errors.extend(localize_errors(by_key, path, texts.get(path, "")))
    return errors
