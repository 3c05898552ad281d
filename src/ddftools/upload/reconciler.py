"""Batched upload with per-item results correlated by global index."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from glob import glob
from typing import Any, Literal, Protocol, Sequence

import requests

from ..validation.errors import LocalizedError

BATCH_SIZE = 10
FIELD_PREFIX = "bundle-#"
ALREADY_EXISTS_CODE = "bundle_hash_already_exists"
_LEGACY_ALREADY_EXISTS_MESSAGE = "Bundle with same hash already exists"

Outcome = Literal["success", "already-exists", "failed"]


def _log(msg: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(msg, file=sys.stderr, flush=True)


class Transport(Protocol):
    def health(self) -> str: ...
    def upload(self, parts: Sequence[tuple[str, str, bytes]]) -> dict[str, Any]: ...


@dataclass
class ItemResult:
    index: int
    name: str
    outcome: Outcome
    created_id: str | None = None
    code: str | None = None
    message: str | None = None


@dataclass
class BatchSummary:
    results: list[ItemResult] = field(default_factory=list)
    unreported: list[int] = field(default_factory=list)
    errors: list[LocalizedError] = field(default_factory=list)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for result in self.results if result.outcome == outcome)

    @property
    def success(self) -> int:
        return self.count("success")

    @property
    def already_exists(self) -> int:
        return self.count("already-exists")

    @property
    def failed_count(self) -> int:
        return self.count("failed")

    @property
    def failed(self) -> bool:
        return self.failed_count > 0 or bool(self.errors)


class UploadError(RuntimeError):
    def __init__(self, message: str, summary: BatchSummary):
        super().__init__(message)
        self.summary = summary


def field_name(index: int) -> str:
    return f"{FIELD_PREFIX}{index}"


def parse_field_name(key: str) -> int | None:
    if not key.startswith(FIELD_PREFIX):
        return None
    raw = key[len(FIELD_PREFIX) :]
    if not raw.isdigit():
        return None
    return int(raw)


def classify(index: int, name: str, value: Any) -> ItemResult:
    if not isinstance(value, dict):
        return ItemResult(index, name, "failed", code="unknown", message=repr(value))
    if value.get("success"):
        return ItemResult(index, name, "success", created_id=value.get("createdId"))

    code = value.get("code")
    message = value.get("message")
    if (not code or code == "unknown") and message == _LEGACY_ALREADY_EXISTS_MESSAGE:
        code = ALREADY_EXISTS_CODE
    if code == ALREADY_EXISTS_CODE:
        return ItemResult(index, name, "already-exists", code=code, message=message)
    return ItemResult(index, name, "failed", code=code or "unknown", message=message)


class UploadReconciler:
    def __init__(self, transport: Transport, *, batch_size: int = BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.transport = transport
        self.batch_size = batch_size

    def check_health(self) -> None:
        summary = BatchSummary()
        try:
            status = self.transport.health()
        except (requests.RequestException, ValueError) as exc:
            summary.errors.append(LocalizedError(f"Store health check failed: {exc}"))
            raise UploadError("Failed to check server health", summary) from exc
        if status != "ok":
            summary.errors.append(LocalizedError(f"Server health is not ok: {status}"))
            raise UploadError(f"Server health is not ok: {status}", summary)
        _log(f"Store status = {status}")

    def submit(
        self,
        artifacts: Sequence[bytes],
        names: Sequence[str] | None = None,
    ) -> BatchSummary:
        """Upload ``artifacts`` in order and classify each server result.

        Results are attributed through the index embedded in each multipart
        field name, so the response order is irrelevant. A transport failure
        aborts the remaining batches with :class:`UploadError`.
        """
        if names is None:
            names = [field_name(i) for i in range(len(artifacts))]
        if len(names) != len(artifacts):
            raise ValueError("names and artifacts must have the same length")

        summary = BatchSummary()
        for start in range(0, len(artifacts), self.batch_size):
            submitted = list(range(start, min(start + self.batch_size, len(artifacts))))
            parts = [
                (field_name(i), os.path.basename(names[i]) or field_name(i), artifacts[i])
                for i in submitted
            ]
            try:
                response = self.transport.upload(parts)
            except (requests.RequestException, ValueError) as exc:
                summary.errors.append(
                    LocalizedError(f"Failed to upload bundles {submitted[0]}-{submitted[-1]}: {exc}")
                )
                raise UploadError("Failed to upload bundles", summary) from exc

            reported: set[int] = set()
            for key, value in response.items():
                index = parse_field_name(key)
                if index is None or index not in submitted:
                    summary.errors.append(
                        LocalizedError(f"Unexpected result key {key!r} in upload response")
                    )
                    continue
                reported.add(index)
                result = classify(index, names[index], value)
                summary.results.append(result)
                self._log_result(result)

            for index in submitted:
                if index not in reported:
                    summary.unreported.append(index)
                    _log(f"No upload result for bundle '{names[index]}'")

        summary.results.sort(key=lambda r: r.index)
        return summary

    def _log_result(self, result: ItemResult) -> None:
        if result.outcome == "success":
            _log(f"Uploaded bundle '{result.name}' with id {result.created_id} on the store.")
        elif result.outcome == "already-exists":
            _log(f"Bundle '{result.name}' already exists on the store. Do nothing.")
        else:
            print(
                f"Failed to upload bundle '{result.name}' with code {result.code}: {result.message}",
                file=sys.stderr,
                flush=True,
            )


def read_bundles_from_disk(pattern: str) -> list[tuple[str, bytes]]:
    """Load previously exported bundles matching a glob pattern."""
    bundles: list[tuple[str, bytes]] = []
    for path in sorted(glob(pattern, recursive=True)):
        if os.path.isfile(path):
            with open(path, "rb") as f:
                bundles.append((path, f.read()))
    return bundles
