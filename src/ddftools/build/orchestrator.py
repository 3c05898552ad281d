"""Builds one artifact per device description and derives its change status."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Literal

from ..concurrency import run_indexed_tasks
from ..sources.registry import SourceEntry, SourceRegistry, canonical_path
from ..validation.engine import RuleEngine, ValidationFailure, ValidationFailures
from ..validation.errors import LocalizedError, handle_error
from ..validation.localize import localize_failures
from .assembly import AssembledArtifact, Assembler
from .bundle import Bundle

ArtifactStatus = Literal["added", "modified", "unchanged"]
ValidationOutcome = Literal["success", "error", "skipped"]


def _log(msg: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(msg, file=sys.stderr, flush=True)


class StatusAccumulator:
    """Folds the statuses of every entry touched by one artifact.

    Precedence is added > modified > unchanged. Only the top-level document can
    make an artifact ``added``; any changed or missing dependency makes it
    ``modified``, and nothing downgrades it afterwards.
    """

    def __init__(self) -> None:
        self.status: ArtifactStatus = "unchanged"
        self.touched: list[str] = []
        self.missing: list[str] = []

    def observe_root(self, entry: SourceEntry) -> None:
        self.touched.append(entry.path)
        if entry.status == "added":
            self.status = "added"
            return
        self._escalate(entry)

    def observe(self, entry: SourceEntry) -> None:
        self.touched.append(entry.path)
        self._escalate(entry)

    def _escalate(self, entry: SourceEntry) -> None:
        if entry.status == "missing":
            self.missing.append(entry.path)
        if entry.status == "unchanged":
            return
        if self.status == "unchanged":
            self.status = "modified"


@dataclass
class ArtifactBuildResult:
    path: str
    status: ArtifactStatus
    validation_outcome: ValidationOutcome
    errors: list[LocalizedError] = field(default_factory=list)
    bundle: Bundle | None = None
    touched: list[str] = field(default_factory=list)


@dataclass
class BuildReport:
    results: list[ArtifactBuildResult] = field(default_factory=list)
    errors: list[LocalizedError] = field(default_factory=list)
    unused: dict[str, list[str]] = field(default_factory=dict)

    @property
    def all_errors(self) -> list[LocalizedError]:
        errors = list(self.errors)
        for result in self.results:
            errors.extend(result.errors)
        return errors

    @property
    def failed(self) -> bool:
        return bool(self.all_errors)

    def with_status(self, status: ArtifactStatus) -> list[ArtifactBuildResult]:
        return [result for result in self.results if result.status == status]

    def bundles(self) -> list[tuple[str, Bundle]]:
        return [
            (result.path, result.bundle)
            for result in self.results
            if result.bundle is not None
        ]

    def replace(self, result: ArtifactBuildResult) -> None:
        for i, existing in enumerate(self.results):
            if existing.path == result.path:
                self.results[i] = result
                return
        self.results.append(result)


class BuildOrchestrator:
    def __init__(
        self,
        registry: SourceRegistry,
        assembler: Assembler,
        *,
        engine: RuleEngine | None = None,
        enforce_uuid: bool = False,
        max_workers: int | None = None,
    ):
        self.registry = registry
        self.assembler = assembler
        self.engine = engine
        self.enforce_uuid = enforce_uuid
        if max_workers is None:
            from ..runtime import get_build_jobs

            max_workers = get_build_jobs()
        self.max_workers = max_workers

    def build_all(self, paths: list[str] | None = None) -> BuildReport:
        if paths is None:
            paths = self.registry.all_paths("ddf")
        paths = sorted(canonical_path(p) for p in paths)
        tasks = [(i, partial(self.build_one, path)) for i, path in enumerate(paths)]

        def on_error(index: int, exc: Exception) -> ArtifactBuildResult:
            return ArtifactBuildResult(
                paths[index], "unchanged", "error", handle_error(exc, paths[index])
            )

        results = run_indexed_tasks(
            tasks, max_workers=self.max_workers, on_error=on_error
        )
        return BuildReport(results=[result for _, result in results])

    def build_one(self, path: str) -> ArtifactBuildResult:
        """Build one artifact; failures become errors on the result."""
        _log(f"Found DDF {path}")
        acc = StatusAccumulator()
        root = self.registry.resolve(path)
        acc.observe_root(root)

        if root.status == "missing":
            return ArtifactBuildResult(
                root.path,
                acc.status,
                "error",
                [LocalizedError("File not found", root.path)],
                touched=acc.touched,
            )

        def fetch(dep_path: str) -> str:
            dep_path = canonical_path(dep_path)
            if dep_path == root.path:
                return root.text()
            _log(f"{root.path} needs file {dep_path}")
            entry = self.registry.resolve(dep_path)
            acc.observe(entry)
            return entry.text()

        def missing_errors() -> list[LocalizedError]:
            return [
                LocalizedError(f"Referenced file not found: {missing}", root.path)
                for missing in acc.missing
            ]

        try:
            assembled = self.assembler(root.path, fetch)
            errors = missing_errors()
            outcome, validation_errors = self._validate(root, acc, assembled)
        except Exception as exc:
            _log(f"Error while creating bundle {root.path}: {exc}")
            text = root.content.decode("utf-8", errors="replace")
            return ArtifactBuildResult(
                root.path,
                acc.status,
                "error",
                missing_errors() + handle_error(exc, root.path, text),
                touched=acc.touched,
            )

        _log(f"Bundle {root.path} created ({acc.status}, validation {outcome})")
        return ArtifactBuildResult(
            root.path,
            acc.status,
            outcome,
            errors + validation_errors,
            bundle=assembled.bundle,
            touched=acc.touched,
        )

    def _validate(
        self,
        root: SourceEntry,
        acc: StatusAccumulator,
        assembled: AssembledArtifact,
    ) -> tuple[ValidationOutcome, list[LocalizedError]]:
        if self.engine is None:
            return "skipped", []
        data: Any = assembled.documents[0][1] if assembled.documents else None
        if isinstance(data, dict) and data.get("ddfvalidate") is False:
            _log(f"Skipping {root.path} because it sets ddfvalidate to false")
            return "skipped", []

        try:
            failures = self.engine.validate(assembled.documents)
        except ValidationFailures as exc:
            failures = exc.failures
        if (
            self.enforce_uuid
            and acc.status != "unchanged"
            and isinstance(data, dict)
            and "uuid" not in data
        ):
            failures.append(ValidationFailure(root.path, (), "Missing uuid"))
        if not failures:
            return "success", []

        texts: dict[str, str] = {}
        for failure in failures:
            entry = self.registry.get(failure.path)
            if entry is not None and failure.path not in texts:
                texts[failure.path] = entry.content.decode("utf-8", errors="replace")
        return "error", localize_failures(failures, texts)
