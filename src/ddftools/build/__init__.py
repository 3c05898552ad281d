from .assembly import AssembledArtifact, Assembler, DDFAssembler, GenericIndex
from .bundle import Bundle, BundleFile
from .export import DIRECTORY_FORMATS, FILE_FORMATS, export_bundles
from .orchestrator import (
    ArtifactBuildResult,
    BuildOrchestrator,
    BuildReport,
    StatusAccumulator,
)

__all__ = [
    "AssembledArtifact",
    "Assembler",
    "DDFAssembler",
    "GenericIndex",
    "Bundle",
    "BundleFile",
    "DIRECTORY_FORMATS",
    "FILE_FORMATS",
    "export_bundles",
    "ArtifactBuildResult",
    "BuildOrchestrator",
    "BuildReport",
    "StatusAccumulator",
]
