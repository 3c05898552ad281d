"""Localized errors and conversion of arbitrary failures into them."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from typing import Iterable

from .jsonwalk import JsonPath


@dataclass(frozen=True)
class LocalizedError:
    message: str
    file_path: str | None = None
    line: int | None = None
    column: int | None = None
    json_path: JsonPath | None = None

    @property
    def localized(self) -> bool:
        return self.line is not None

    def format(self) -> str:
        if self.file_path is None:
            return self.message
        if self.line is None:
            return f"{self.file_path}: {self.message}"
        if self.column is None:
            return f"{self.file_path}:{self.line}: {self.message}"
        return f"{self.file_path}:{self.line}:{self.column}: {self.message}"

    def annotation(self, level: str = "error") -> str:
        """GitHub workflow command form of this error."""
        props = []
        if self.file_path is not None:
            props.append(f"file={self.file_path}")
        if self.line is not None:
            props.append(f"line={self.line}")
        if self.column is not None:
            props.append(f"col={self.column}")
        message = self.message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        head = f"::{level} {','.join(props)}" if props else f"::{level}"
        return f"{head}::{message}"


def handle_error(
    error: object, file_path: str | None = None, text: str = ""
) -> list[LocalizedError]:
    """Convert any failure raised while processing ``file_path`` into errors.

    Rule-engine failures are localized against ``text``; decoder errors keep
    the decoder's own position; anything else keeps only its message.
    """
    from jsonschema import ValidationError as SchemaValidationError

    from .engine import ValidationFailures
    from .localize import localize_errors, localize_failures

    if isinstance(error, ValidationFailures):
        return localize_failures(error.failures, {file_path: text} if file_path else {})
    if isinstance(error, SchemaValidationError):
        key = "/".join(str(part) for part in error.absolute_path)
        return localize_errors({key: [error.message]}, file_path, text)
    if isinstance(error, json.JSONDecodeError):
        return [LocalizedError(error.msg, file_path, error.lineno, error.colno)]
    if isinstance(error, Exception):
        return [LocalizedError(str(error) or type(error).__name__, file_path)]
    if isinstance(error, str):
        return [LocalizedError(error, file_path)]
    return [LocalizedError("Unknown Error", file_path)]


def _use_annotations() -> bool:
    return (os.environ.get("GITHUB_ACTIONS") or "").strip().lower() == "true"


def log_errors(errors: Iterable[LocalizedError], level: str = "error") -> None:
    annotate = _use_annotations()
    for error in errors:
        line = error.annotation(level) if annotate else f"{level}: {error.format()}"
        print(line, file=sys.stderr, flush=True)
