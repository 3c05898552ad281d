"""End-to-end run: discover, build, deduplicate, export and upload."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field

from .build import BuildOrchestrator, BuildReport, DDFAssembler, GenericIndex, export_bundles
from .config import Settings
from .dedup import DedupResult, IdentityDeduplicator
from .sources import SourceRegistry, build_status_provider, discover_sources, git, load_changes
from .upload import BatchSummary, StoreClient, UploadReconciler, read_bundles_from_disk
from .validation import JsonSchemaEngine, LocalizedError, RuleEngine, log_errors


def _log(msg: str) -> None:
    from .runtime import get_verbose_logging

    if get_verbose_logging():
        print(msg, file=sys.stderr, flush=True)


@dataclass
class RunResult:
    report: BuildReport
    dedup: DedupResult | None = None
    written: list[str] = field(default_factory=list)
    upload: BatchSummary | None = None

    @property
    def failed(self) -> bool:
        return self.report.failed or (self.upload is not None and self.upload.failed)


def create_registry(settings: Settings) -> SourceRegistry:
    src = settings.source
    bnd = settings.bundler
    changes = None
    if bnd.modified_method == "diff":
        root = git.get_repo_root(src.devices) or settings.base_dir
        _log(f"Resolving change listing {bnd.changes} against {root}")
        changes = load_changes(bnd.changes, root=root)
    elif bnd.modified_method in ("mtime", "atime") and bnd.since is None:
        _log(f"No 'bundler.since' set, every file is unchanged for {bnd.modified_method}")
    provider = build_status_provider(
        bnd.modified_method,
        changes=changes,
        since=bnd.since,
        base_rev=bnd.base_rev,
        repo_root=src.devices,
    )
    registry = SourceRegistry(src.generic, provider)
    paths = discover_sources(src.devices, src.generic, src.search, src.ignore)
    if not paths:
        raise ValueError("No source files found. Please check the settings.")
    _log(f"Found {len(paths)} source files")
    registry.register(paths)
    return registry


def create_engine(settings: Settings) -> RuleEngine | None:
    val = settings.validation
    if not val.enabled:
        return None
    if val.schemas is None:
        _log("No schema directory configured, validation skipped")
        return None
    return JsonSchemaEngine.from_directory(val.schemas, strict=val.strict)


def build(
    settings: Settings,
    *,
    registry: SourceRegistry | None = None,
    engine: RuleEngine | None = None,
) -> tuple[BuildReport, SourceRegistry, DedupResult | None]:
    if registry is None:
        registry = create_registry(settings)
    if engine is None:
        engine = create_engine(settings)

    index = GenericIndex.build(registry)
    orchestrator = BuildOrchestrator(
        registry,
        DDFAssembler(index, settings.source.devices, settings.source.generic),
        engine=engine,
        enforce_uuid=settings.validation.enforce_uuid,
    )
    report = orchestrator.build_all()
    report.errors.extend(index.errors)

    dedup = None
    if settings.bundler.dedup:
        dedup = IdentityDeduplicator().resolve(registry)
        for path in dedup.edited:
            _log(f"Rebuilding {path} after identifier removal")
            report.replace(orchestrator.build_one(path))

    report.unused = registry.unused()
    if settings.validation.warn_unused_files:
        log_errors(
            (
                LocalizedError(f"Unused {category} file", path)
                for category, paths in report.unused.items()
                for path in paths
            ),
            level="warning",
        )
    return report, registry, dedup


def upload(settings: Settings, report: BuildReport | None = None) -> BatchSummary:
    up = settings.upload
    if up.input:
        _log(f"Looking for bundles on the disk to upload ({up.input})")
        items = read_bundles_from_disk(up.input)
    else:
        items = [(path, bundle.encode()) for path, bundle in (report.bundles() if report else [])]
    _log(f"{len(items)} bundles to upload")

    reconciler = UploadReconciler(
        StoreClient(up.url or "", up.token or ""), batch_size=up.batch_size
    )
    reconciler.check_health()
    return reconciler.submit([data for _, data in items], [name for name, _ in items])


def run(settings: Settings) -> RunResult:
    _log(json.dumps(settings.redacted(), indent=2))
    result = RunResult(report=BuildReport())
    if settings.bundler.enabled:
        result.report, _, result.dedup = build(settings)
        if settings.bundler.output:
            result.written = export_bundles(
                result.report.bundles(),
                settings.bundler.output,
                settings.source.devices,
                directory_format=settings.bundler.directory_format,
                file_format=settings.bundler.file_format,
            )
    if settings.upload.enabled:
        result.upload = upload(settings, result.report)
    return result
