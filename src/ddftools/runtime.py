from __future__ import annotations

from contextvars import ContextVar, Token
import os

_VERBOSE_LOGGING: ContextVar[bool] = ContextVar(
    "ddftools_verbose_logging", default=False
)

_DEFAULT_BUILD_JOBS = 4
_MAX_BUILD_JOBS = 64
_DEFAULT_UPLOAD_TIMEOUT = 60.0


def _read_positive_int_env(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    return min(value, _MAX_BUILD_JOBS)


def get_verbose_logging() -> bool:
    return _VERBOSE_LOGGING.get()


def set_verbose_logging(enabled: bool) -> Token[bool]:
    return _VERBOSE_LOGGING.set(bool(enabled))


def reset_verbose_logging(token: Token[bool]) -> None:
    _VERBOSE_LOGGING.reset(token)


def get_build_jobs() -> int:
    return _read_positive_int_env("DDF_TOOLS_BUILD_JOBS", _DEFAULT_BUILD_JOBS)


def get_upload_timeout() -> float:
    raw = (os.environ.get("DDF_TOOLS_UPLOAD_TIMEOUT") or "").strip()
    if not raw:
        return _DEFAULT_UPLOAD_TIMEOUT
    try:
        return max(1.0, float(raw))
    except ValueError:
        return _DEFAULT_UPLOAD_TIMEOUT
