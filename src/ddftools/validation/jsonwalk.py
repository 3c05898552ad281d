"""Single-pass JSON walker reporting every literal with its path and position.

Accepts ``//`` and ``/* */`` comments and trailing commas, which hand-written
device files commonly contain.
"""

from __future__ import annotations

import json
import re
from bisect import bisect_left
from typing import Any

JsonPath = tuple[Any, ...]

_LITERAL_RE = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?|true|false|null")
_KEYWORDS = {"true": True, "false": False, "null": None}


class JsonWalkError(ValueError):
    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"{message} at line {line} column {column}")
        self.line = line
        self.column = column


class JsonVisitor:
    """Base visitor; set ``done`` to stop the walk early."""

    done = False

    def on_literal(self, value: Any, path: JsonPath, line: int, column: int) -> None:
        pass


class _Stop(Exception):
    pass


class _Walker:
    def __init__(self, text: str, visitor: JsonVisitor):
        self.text = text
        self.visitor = visitor
        self.pos = 0
        self._newlines = [i for i, ch in enumerate(text) if ch == "\n"]

    def position(self, offset: int) -> tuple[int, int]:
        """1-based (line, column) of ``offset``."""
        line_index = bisect_left(self._newlines, offset)
        line_start = self._newlines[line_index - 1] + 1 if line_index else 0
        return line_index + 1, offset - line_start + 1

    def fail(self, message: str) -> JsonWalkError:
        line, column = self.position(self.pos)
        return JsonWalkError(message, line, column)

    def walk(self) -> None:
        self.skip()
        if self.pos >= len(self.text):
            return
        try:
            self.value(())
        except _Stop:
            return
        self.skip()
        if self.pos < len(self.text):
            raise self.fail("Unexpected trailing content")

    def skip(self) -> None:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch in " \t\r\n\ufeff":
                self.pos += 1
            elif text.startswith("//", self.pos):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end + 1
            elif text.startswith("/*", self.pos):
                end = text.find("*/", self.pos + 2)
                self.pos = len(text) if end == -1 else end + 2
            else:
                return

    def peek(self) -> str:
        if self.pos >= len(self.text):
            raise self.fail("Unexpected end of input")
        return self.text[self.pos]

    def emit(self, value: Any, path: JsonPath, offset: int) -> None:
        line, column = self.position(offset)
        self.visitor.on_literal(value, path, line, column)
        if self.visitor.done:
            raise _Stop()

    def value(self, path: JsonPath) -> None:
        ch = self.peek()
        if ch == "{":
            self.object(path)
        elif ch == "[":
            self.array(path)
        elif ch == '"':
            start = self.pos
            self.emit(self.string(), path, start)
        else:
            match = _LITERAL_RE.match(self.text, self.pos)
            if not match:
                raise self.fail(f"Unexpected character {ch!r}")
            start = self.pos
            self.pos = match.end()
            token = match.group(0)
            if token in _KEYWORDS:
                literal = _KEYWORDS[token]
            else:
                literal = json.loads(token)
            self.emit(literal, path, start)

    def string(self) -> str:
        text = self.text
        end = self.pos + 1
        while end < len(text):
            ch = text[end]
            if ch == "\\":
                end += 2
                continue
            if ch == '"':
                break
            end += 1
        else:
            raise self.fail("Unterminated string")
        raw = text[self.pos : end + 1]
        self.pos = end + 1
        try:
            return json.loads(raw, strict=False)
        except json.JSONDecodeError as exc:
            raise self.fail(f"Invalid string: {exc.msg}") from exc

    def object(self, path: JsonPath) -> None:
        self.pos += 1
        while True:
            self.skip()
            ch = self.peek()
            if ch == "}":
                self.pos += 1
                return
            if ch != '"':
                raise self.fail("Expected property name")
            key = self.string()
            self.skip()
            if self.peek() != ":":
                raise self.fail("Expected ':'")
            self.pos += 1
            self.skip()
            self.value(path + (key,))
            self.skip()
            ch = self.peek()
            if ch == ",":
                self.pos += 1
            elif ch != "}":
                raise self.fail("Expected ',' or '}'")

    def array(self, path: JsonPath) -> None:
        self.pos += 1
        index = 0
        while True:
            self.skip()
            if self.peek() == "]":
                self.pos += 1
                return
            self.value(path + (index,))
            index += 1
            self.skip()
            ch = self.peek()
            if ch == ",":
                self.pos += 1
            elif ch != "]":
                raise self.fail("Expected ',' or ']'")


def walk(text: str, visitor: JsonVisitor) -> None:
    """Visit every literal of ``text`` in document order.

    Raises :class:`JsonWalkError` on malformed input; literals before the
    error have already been visited.
    """
    _Walker(text, visitor).walk()


def path_key(path: JsonPath) -> str:
    return "/".join(str(part) for part in path)
