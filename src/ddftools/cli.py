from collections.abc import Sequence

import click

from .config import ConfigError, Settings, load_settings
from .sources.status import MODIFIED_METHODS
from .validation.errors import log_errors

COMMAND_GROUPS = (
    ("Build", ("bundle", "validate", "unused")),
    ("Store", ("upload",)),
)
HELP_COL_MAX = 30
HELP_COL_SPACING = 2

STATUS_ORDER = ("added", "modified", "unchanged")


class OrderedGroup(click.Group):
    def __init__(
        self,
        *args,
        command_groups: Sequence[tuple[str, Sequence[str]]] | None = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._command_groups = [
            (title, list(commands)) for title, commands in (command_groups or [])
        ]

    def list_commands(self, ctx: click.Context) -> list[str]:
        ordered = [
            name
            for _, commands in self._command_groups
            for name in commands
            if name in self.commands
        ]
        remaining = [
            name for name in super().list_commands(ctx) if name not in ordered
        ]
        return ordered + remaining

    def format_commands(
        self, ctx: click.Context, formatter: click.HelpFormatter
    ) -> None:
        for title, commands in self._command_groups:
            rows = []
            for name in commands:
                cmd = self.get_command(ctx, name)
                if cmd is None or cmd.hidden:
                    continue
                rows.append((name, cmd.get_short_help_str(limit=45)))
            if not rows:
                continue
            formatter.write("\n")
            formatter.write(click.style(title.upper(), bold=True) + "\n")
            formatter.indent()
            formatter.write_dl(rows, col_max=HELP_COL_MAX, col_spacing=HELP_COL_SPACING)
            formatter.dedent()


def _settings(ctx: click.Context, **overrides) -> Settings:
    merged = dict(ctx.obj["overrides"])
    merged.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return load_settings(ctx.obj["config"], merged)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _print_results(report) -> None:
    for status in STATUS_ORDER:
        results = report.with_status(status)
        if not results:
            continue
        click.echo(f"{status.upper()} ({len(results)})")
        for result in results:
            click.echo(f"  {result.path} [{result.validation_outcome}]")


def _finish_build(report) -> bool:
    errors = report.all_errors
    if errors:
        log_errors(errors)
        click.echo(f"Found {len(errors)} error(s). Check logs for details.", err=True)
        return False
    click.echo("All files passed.")
    return True


@click.group(
    cls=OrderedGroup,
    command_groups=COMMAND_GROUPS,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings file (defaults to ./ddf-tools.yml when present).",
)
@click.option(
    "--devices",
    type=click.Path(file_okay=False, resolve_path=True),
    default=None,
    help="Device description directory.",
)
@click.option(
    "--generic",
    type=click.Path(file_okay=False, resolve_path=True),
    default=None,
    help="Generic directory (defaults to <devices>/generic).",
)
@click.option(
    "--modified-method",
    type=click.Choice(MODIFIED_METHODS),
    default=None,
    help="How file changes and modification times are detected.",
)
@click.option(
    "--since",
    default=None,
    help="ISO timestamp; mtime/atime methods mark newer files as modified.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr.")
@click.pass_context
def cli(ctx, config_path, devices, generic, modified_method, since, verbose):
    """
    ddf-tools - incremental DDF bundle builder
    """
    from .runtime import set_verbose_logging

    set_verbose_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path
    ctx.obj["overrides"] = {
        "source.devices": devices,
        "source.generic": generic,
        "bundler.modified-method": modified_method,
        "bundler.since": since,
    }


@cli.command("bundle")
@click.option(
    "-o",
    "--output",
    type=click.Path(file_okay=False, resolve_path=True),
    default=None,
    help="Write bundles to this directory.",
)
@click.option("--dedup/--no-dedup", default=None, help="Strip duplicated uuids.")
@click.pass_context
def bundle_cmd(ctx, output, dedup):
    """
    Build bundles and report which ones changed.
    """
    from .pipeline import run

    settings = _settings(ctx, **{"bundler.output": output, "bundler.dedup": dedup})
    settings.upload.enabled = False
    try:
        result = run(settings)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    _print_results(result.report)
    if result.dedup is not None:
        for group in result.dedup.groups:
            click.echo(
                f"uuid {group.identifier}: kept {group.survivor}, "
                f"removed from {len(group.losers)} file(s)"
            )
    for path in result.written:
        click.echo(f"Wrote {path}")
    if not _finish_build(result.report):
        ctx.exit(1)


@cli.command("validate")
@click.option("--strict", is_flag=True, default=None, help="Unknown schemas are errors.")
@click.option(
    "--schemas",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=None,
    help="Directory of JSON schemas.",
)
@click.pass_context
def validate_cmd(ctx, strict, schemas):
    """
    Validate every device description.
    """
    from .pipeline import build

    settings = _settings(
        ctx, **{"validation.strict": strict, "validation.schemas": schemas}
    )
    settings.validation.enabled = True
    try:
        report, _, _ = build(settings)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    _print_results(report)
    if not _finish_build(report):
        ctx.exit(1)


@cli.command("unused")
@click.pass_context
def unused_cmd(ctx):
    """
    List source files no bundle references.
    """
    from .pipeline import build

    settings = _settings(ctx)
    settings.validation.warn_unused_files = False
    try:
        report, _, _ = build(settings)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    for category, paths in report.unused.items():
        for path in paths:
            click.echo(f"{category}\t{path}")


@cli.command("upload")
@click.option(
    "--input",
    "input_pattern",
    default=None,
    help="Glob of bundle files to upload instead of building them.",
)
@click.pass_context
def upload_cmd(ctx, input_pattern):
    """
    Upload bundles to the store.
    """
    from .pipeline import build, upload
    from .upload import UploadError

    settings = _settings(ctx, **{"upload.input": input_pattern, "upload.enabled": True})
    report = None
    if not settings.upload.input:
        try:
            report, _, _ = build(settings)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc
        if report.failed:
            _finish_build(report)
            ctx.exit(1)

    try:
        summary = upload(settings, report)
    except UploadError as exc:
        log_errors(exc.summary.errors)
        raise click.ClickException(
            "Failed to upload bundles, please check logs for more information"
        ) from exc

    click.echo(
        f"Uploaded: {summary.success}, already exists: {summary.already_exists}, "
        f"failed: {summary.failed_count}"
    )
    if summary.unreported:
        click.echo(f"No result for {len(summary.unreported)} bundle(s)", err=True)
    if summary.failed:
        log_errors(summary.errors)
        ctx.exit(1)


def main():
    cli()


if __name__ == "__main__":
    main()
