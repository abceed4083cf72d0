"""CI pipeline stages and status reporting.

This package provides:
- PipelineRunner: ordered, short-circuiting test stages
- BuildStage / DeploymentStage: single-shot build and deploy commands
- StatusReporter: markdown reports and commit statuses
"""

from src.stone.ci.models import (
    DEFAULT_STAGES,
    BuildResult,
    DeploymentResult,
    PipelineResult,
    StageDescriptor,
    StageResult,
)
from src.stone.ci.pipeline import PipelineRunner, stages_from_names
from src.stone.ci.stages import BuildStage, DeploymentStage
from src.stone.ci.status import StatusReporter

__all__ = [
    "DEFAULT_STAGES",
    "BuildResult",
    "BuildStage",
    "DeploymentResult",
    "DeploymentStage",
    "PipelineResult",
    "PipelineRunner",
    "StageDescriptor",
    "StageResult",
    "StatusReporter",
    "stages_from_names",
]
