from .discovery import brace_expand, discover_sources
from .registry import (
    CATEGORIES,
    Category,
    ChangeStatus,
    SourceEntry,
    SourceRegistry,
    canonical_path,
)
from .status import (
    MODIFIED_METHODS,
    AtimeProvider,
    ChangeStatusProvider,
    DiffMapProvider,
    GitLogProvider,
    MtimeProvider,
    StatusLookupError,
    build_status_provider,
    changes_from_listing,
    load_changes,
)

__all__ = [
    "CATEGORIES",
    "Category",
    "ChangeStatus",
    "SourceEntry",
    "SourceRegistry",
    "canonical_path",
    "brace_expand",
    "discover_sources",
    "MODIFIED_METHODS",
    "AtimeProvider",
    "ChangeStatusProvider",
    "DiffMapProvider",
    "GitLogProvider",
    "MtimeProvider",
    "StatusLookupError",
    "build_status_provider",
    "changes_from_listing",
    "load_changes",
]
