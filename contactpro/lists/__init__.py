from contactpro.lists.controller import ListError, ListSnapshot, ListStateController, ListStatus
from contactpro.lists.derive import SortDirection, SortSpec, derive_view
from contactpro.lists.pipeline import OTHER_STAGE, PipelineBoard, PipelineSummary, StageBucket, bucket_by_stage
from contactpro.lists.screens import SCREENS, ScreenConfig, get_screen

__all__ = [
    "ListError",
    "ListSnapshot",
    "ListStateController",
    "ListStatus",
    "OTHER_STAGE",
    "PipelineBoard",
    "PipelineSummary",
    "SCREENS",
    "ScreenConfig",
    "SortDirection",
    "SortSpec",
    "StageBucket",
    "bucket_by_stage",
    "derive_view",
    "get_screen",
]
