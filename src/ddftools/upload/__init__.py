from .client import StoreClient
from .reconciler import (
    BATCH_SIZE,
    BatchSummary,
    ItemResult,
    UploadError,
    UploadReconciler,
    classify,
    field_name,
    parse_field_name,
    read_bundles_from_disk,
)

__all__ = [
    "StoreClient",
    "BATCH_SIZE",
    "BatchSummary",
    "ItemResult",
    "UploadError",
    "UploadReconciler",
    "classify",
    "field_name",
    "parse_field_name",
    "read_bundles_from_disk",
]
