"""Keeps each declared uuid on exactly one device description."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field

from .sources.registry import SourceRegistry
from .validation.errors import LocalizedError, handle_error

IDENTIFIER_FIELD = "uuid"


def _log(msg: str) -> None:
    from .runtime import get_verbose_logging

    if get_verbose_logging():
        print(msg, file=sys.stderr, flush=True)


@dataclass
class IdentityGroup:
    identifier: str
    paths: list[str]
    survivor: str | None = None
    losers: list[str] = field(default_factory=list)


@dataclass
class DedupResult:
    groups: list[IdentityGroup] = field(default_factory=list)
    errors: list[LocalizedError] = field(default_factory=list)

    @property
    def edited(self) -> list[str]:
        return [path for group in self.groups for path in group.losers]


def detect_newline(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def identifier_line_pattern(value: str, field_name: str = IDENTIFIER_FIELD) -> re.Pattern:
    return re.compile(
        r'^\s*"' + re.escape(field_name) + r'"\s*:\s*"' + re.escape(value) + r'"\s*,?\s*$'
    )


def remove_identifier_lines(
    text: str, value: str, field_name: str = IDENTIFIER_FIELD
) -> str:
    """Drop every line declaring ``field_name: value``; other lines stay byte-identical."""
    newline = detect_newline(text)
    pattern = identifier_line_pattern(value, field_name)
    lines = text.split(newline)
    return newline.join(line for line in lines if not pattern.match(line))


class IdentityDeduplicator:
    """Finds documents sharing an identifier and strips it from all but the oldest.

    Must run after every build task has finished since it edits registry
    content in place.
    """

    def __init__(self, field_name: str = IDENTIFIER_FIELD):
        self.field_name = field_name

    def find_groups(self, registry: SourceRegistry) -> tuple[list[IdentityGroup], list[LocalizedError]]:
        by_identifier: dict[str, list[str]] = {}
        errors: list[LocalizedError] = []
        for path in registry.all_paths("ddf"):
            entry = registry.resolve(path, counts_as_use=False)
            if entry.status == "missing":
                continue
            try:
                data = entry.json()
            except ValueError as exc:
                errors.extend(
                    handle_error(exc, path, entry.content.decode("utf-8", errors="replace"))
                )
                continue
            value = data.get(self.field_name) if isinstance(data, dict) else None
            if isinstance(value, str) and value:
                by_identifier.setdefault(value, []).append(path)

        groups = [
            IdentityGroup(identifier, paths)
            for identifier, paths in sorted(by_identifier.items())
            if len(paths) > 1
        ]
        return groups, errors

    def resolve(self, registry: SourceRegistry) -> DedupResult:
        groups, errors = self.find_groups(registry)
        for group in groups:
            for path in group.paths:
                registry.resolve(path, counts_as_use=False)
            ordered = sorted(
                group.paths, key=lambda p: (registry.last_modified(p), p)
            )
            group.survivor, losers = ordered[0], ordered[1:]
            _log(
                f"{self.field_name} {group.identifier} shared by {len(ordered)} files; "
                f"keeping {group.survivor}"
            )
            for path in losers:
                entry = registry.resolve(path, counts_as_use=False)
                text = entry.text()
                edited = remove_identifier_lines(text, group.identifier, self.field_name)
                if edited == text:
                    _log(f"No {self.field_name} line found in {path}")
                    continue
                registry.override_content(path, edited)
                group.losers.append(path)
        return DedupResult(groups=groups, errors=errors)
