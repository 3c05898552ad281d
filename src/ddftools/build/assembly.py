"""Default assembly collaborator for device description files."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Protocol

from ..sources.registry import SourceRegistry
from ..validation.errors import LocalizedError, handle_error
from .bundle import Bundle, BundleFile, describe

Fetch = Callable[[str], str]

CONSTANTS_SCHEMAS = ("constants1.schema.json", "constants2.schema.json")
RESOURCE_ITEM_SCHEMA = "resourceitem1.schema.json"
SUBDEVICE_SCHEMA = "subdevice1.schema.json"


def _log(msg: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(msg, file=sys.stderr, flush=True)


@dataclass
class AssembledArtifact:
    bundle: Bundle
    touched: list[str]
    documents: list[tuple[str, Any]]


class Assembler(Protocol):
    def __call__(self, root_path: str, fetch: Fetch) -> AssembledArtifact: ...


@dataclass
class GenericIndex:
    constants: list[str] = field(default_factory=list)
    items: dict[str, str] = field(default_factory=dict)
    subdevices: dict[str, str] = field(default_factory=dict)
    errors: list[LocalizedError] = field(default_factory=list)

    @classmethod
    def build(cls, registry: SourceRegistry) -> "GenericIndex":
        """Index generic files by identity without counting them as used."""
        index = cls()
        for path in registry.all_paths("generic"):
            entry = registry.resolve(path, counts_as_use=False)
            if entry.status == "missing":
                continue
            text = entry.content.decode("utf-8", errors="replace")
            try:
                data = entry.json()
            except ValueError as exc:
                index.errors.extend(handle_error(exc, path, text))
                continue
            if not isinstance(data, dict):
                index.errors.append(LocalizedError("Expected a JSON object", path))
                continue

            schema = data.get("schema")
            if schema in CONSTANTS_SCHEMAS:
                index.constants.append(path)
            elif schema == RESOURCE_ITEM_SCHEMA and isinstance(data.get("id"), str):
                index.items.setdefault(data["id"], path)
            elif schema == SUBDEVICE_SCHEMA and isinstance(data.get("type"), str):
                index.subdevices.setdefault(data["type"], path)
            else:
                _log(f"Generic file {path} has no usable schema/identity")
        return index


def _iter_scripts(node: Any) -> Iterator[str]:
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "script" and isinstance(value, str) and value:
                yield value
            else:
                yield from _iter_scripts(value)
    elif isinstance(node, list):
        for value in node:
            yield from _iter_scripts(value)


class DDFAssembler:
    """Pulls constants, subdevice definitions, resource items and scripts into a bundle."""

    def __init__(self, index: GenericIndex, devices_path: str, generic_path: str):
        self.index = index
        self.devices_path = os.path.abspath(devices_path)
        self.generic_path = os.path.abspath(generic_path)

    def _rel(self, path: str, base: str) -> str:
        rel = os.path.relpath(path, base)
        if rel.startswith(".."):
            rel = os.path.basename(path)
        return rel.replace(os.sep, "/")

    def __call__(self, root_path: str, fetch: Fetch) -> AssembledArtifact:
        touched: list[str] = []
        seen: set[str] = set()

        root_text = fetch(root_path)
        touched.append(root_path)
        seen.add(root_path)
        ddf = json.loads(root_text)
        if not isinstance(ddf, dict):
            raise ValueError("A device description must be a JSON object")

        bundle = Bundle(source_path=root_path, desc=describe(ddf))
        bundle.files.append(
            BundleFile(self._rel(root_path, self.devices_path), "ddf", root_text)
        )
        documents: list[tuple[str, Any]] = [(root_path, ddf)]

        def add_generic(path: str) -> None:
            if path in seen:
                return
            seen.add(path)
            text = fetch(path)
            touched.append(path)
            bundle.files.append(
                BundleFile(self._rel(path, self.generic_path), "generic", text)
            )
            documents.append((path, json.loads(text)))

        for path in self.index.constants:
            add_generic(path)

        subdevices = ddf.get("subdevices")
        for subdevice in subdevices if isinstance(subdevices, list) else []:
            if not isinstance(subdevice, dict):
                continue
            sub_path = self.index.subdevices.get(subdevice.get("type"))
            if sub_path:
                add_generic(sub_path)
            items = subdevice.get("items")
            for item in items if isinstance(items, list) else []:
                name = item.get("name") if isinstance(item, dict) else None
                item_path = self.index.items.get(name)
                if item_path:
                    add_generic(item_path)
                else:
                    _log(f"{root_path}: no generic definition for item {name!r}")

        base_dir = os.path.dirname(root_path)
        for script in _iter_scripts(ddf):
            path = os.path.normpath(os.path.join(base_dir, script))
            if path in seen:
                continue
            seen.add(path)
            text = fetch(path)
            touched.append(path)
            bundle.files.append(
                BundleFile(self._rel(path, self.devices_path), "script", text)
            )

        return AssembledArtifact(bundle, touched, documents)
