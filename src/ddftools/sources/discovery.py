from __future__ import annotations

import os
import re
from glob import glob


_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def brace_expand(pattern: str) -> list[str]:
    """Expand every flat `{a,b}` group, leftmost group varying slowest."""
    match = _BRACE_RE.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    return [
        expanded
        for option in match.group(1).split(",")
        for expanded in brace_expand(head + option + tail)
    ]


def discover_sources(
    devices_path: str,
    generic_path: str,
    search: str = "**/*.{json,js}",
    ignore: list[str] | None = None,
) -> list[str]:
    """Return the sorted absolute paths of every source file.

    Only the devices tree is globbed when the generic directory lives inside it.
    Ignore patterns are gitignore-style and matched relative to each root.
    """
    from pathspec import PathSpec

    devices_path = os.path.abspath(devices_path)
    generic_path = os.path.abspath(generic_path)
    roots = [devices_path]
    if not generic_path.startswith(os.path.join(devices_path, "")):
        roots.insert(0, generic_path)

    patterns: list[str] = []
    for pattern in ignore or []:
        patterns.extend(brace_expand(pattern))
    spec = PathSpec.from_lines("gitwildmatch", patterns)

    found: set[str] = set()
    for root in roots:
        for expanded in brace_expand(search):
            for match in glob(os.path.join(root, expanded), recursive=True):
                if not os.path.isfile(match):
                    continue
                rel = os.path.relpath(match, root).replace(os.sep, "/")
                if spec.match_file(rel):
                    continue
                found.add(os.path.abspath(match))
    return sorted(found)
