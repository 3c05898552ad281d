from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from typing import Any

FORMAT_NAME = "ddf-bundle+json"
FORMAT_VERSION = 1
DESC_KEYS = ("uuid", "product", "manufacturername", "modelid", "vendor", "status")


@dataclass
class BundleFile:
    path: str
    kind: str
    data: str


@dataclass
class Bundle:
    source_path: str
    desc: dict[str, Any] = field(default_factory=dict)
    files: list[BundleFile] = field(default_factory=list)

    @property
    def product(self) -> str:
        return str(self.desc.get("product") or "")

    def encode(self) -> bytes:
        body = {
            "format": FORMAT_NAME,
            "version": FORMAT_VERSION,
            "desc": self.desc,
            "files": [asdict(f) for f in self.files],
        }
        return json.dumps(
            body, ensure_ascii=False, sort_keys=True, separators=(",", ":")
        ).encode("utf-8")

    def hash(self) -> str:
        return hashlib.sha256(self.encode()).hexdigest()


def describe(ddf: dict[str, Any]) -> dict[str, Any]:
    return {key: ddf[key] for key in DESC_KEYS if key in ddf}
