from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from .bundle import Bundle

DIRECTORY_FORMATS = ("source-tree", "flat")
FILE_FORMATS = ("name", "hash", "name-hash")
BUNDLE_SUFFIX = ".ddb"


def bundle_file_name(source_path: str, bundle: Bundle, file_format: str) -> str:
    stem = Path(source_path).stem
    if file_format == "name":
        return stem + BUNDLE_SUFFIX
    if file_format == "hash":
        return bundle.hash() + BUNDLE_SUFFIX
    if file_format == "name-hash":
        return f"{stem}-{bundle.hash()[:16]}{BUNDLE_SUFFIX}"
    raise ValueError(f"Unknown output file format: {file_format}")


def bundle_output_path(
    source_path: str,
    bundle: Bundle,
    output_path: str,
    devices_path: str,
    directory_format: str = "source-tree",
    file_format: str = "name",
) -> str:
    name = bundle_file_name(source_path, bundle, file_format)
    if directory_format == "flat":
        return os.path.join(output_path, name)
    if directory_format != "source-tree":
        raise ValueError(f"Unknown output directory format: {directory_format}")
    rel_dir = os.path.relpath(os.path.dirname(source_path), devices_path)
    if rel_dir.startswith(".."):
        rel_dir = ""
    return os.path.normpath(os.path.join(output_path, rel_dir, name))


def export_bundles(
    bundles: Iterable[tuple[str, Bundle]],
    output_path: str,
    devices_path: str,
    *,
    directory_format: str = "source-tree",
    file_format: str = "name",
) -> list[str]:
    """Write encoded bundles under ``output_path`` and return the written paths."""
    written: list[str] = []
    for source_path, bundle in bundles:
        target = Path(
            bundle_output_path(
                source_path,
                bundle,
                output_path,
                devices_path,
                directory_format=directory_format,
                file_format=file_format,
            )
        )
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(".tmp")
        tmp.write_bytes(bundle.encode())
        tmp.replace(target)
        written.append(str(target))
    return written
