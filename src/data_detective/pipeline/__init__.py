"""Pipeline orchestration layer.

validate -> profile -> select_provider -> call_provider -> score_confidence
-> assemble, each stage an independently retryable unit with its own
serializable state record.
"""

from .context import RunContext
from .run import PipelineConfig, PipelineManager, PipelineRun, RunStatus, run_pipeline
from .stages import StageName, StageSpec, StageState, StageStatus
from .validation import ValidationResult, validate_parsed_data

__all__ = [
    "PipelineConfig",
    "PipelineManager",
    "PipelineRun",
    "RunContext",
    "RunStatus",
    "StageName",
    "StageSpec",
    "StageState",
    "StageStatus",
    "ValidationResult",
    "run_pipeline",
    "validate_parsed_data",
]
