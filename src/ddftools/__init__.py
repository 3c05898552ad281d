from pathlib import Path


def build(
    config: str | Path | None = None,
    *,
    devices: str | None = None,
    generic: str | None = None,
    modified_method: str | None = None,
    dedup: bool | None = None,
):
    """Build every device description and return the build report."""
    from .config import load_settings
    from .pipeline import build as run_build

    settings = load_settings(
        str(config) if config is not None else None,
        {
            "source.devices": devices,
            "source.generic": generic,
            "bundler.modified-method": modified_method,
            "bundler.dedup": dedup,
        },
    )
    report, _, _ = run_build(settings)
    return report


def bundle(
    output: str | Path,
    config: str | Path | None = None,
    *,
    devices: str | None = None,
    directory_format: str | None = None,
    file_format: str | None = None,
) -> list[str]:
    from .config import load_settings
    from .pipeline import run

    settings = load_settings(
        str(config) if config is not None else None,
        {
            "source.devices": devices,
            "bundler.output": str(output),
            "bundler.directory-format": directory_format,
            "bundler.file-format": file_format,
        },
    )
    settings.upload.enabled = False
    return run(settings).written


def upload(
    config: str | Path | None = None,
    *,
    input: str | None = None,
    url: str | None = None,
    token: str | None = None,
):
    from .config import load_settings
    from .pipeline import build as run_build
    from .pipeline import upload as run_upload

    settings = load_settings(
        str(config) if config is not None else None,
        {
            "upload.enabled": True,
            "upload.input": input,
            "upload.url": url,
            "upload.token": token,
        },
    )
    report = None
    if not settings.upload.input:
        report, _, _ = run_build(settings)
    return run_upload(settings, report)


__all__ = [
    "build",
    "bundle",
    "upload",
]
