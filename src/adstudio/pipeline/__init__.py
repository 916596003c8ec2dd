"""Pipeline stage graph and state machine."""

from adstudio.pipeline.stages import (
    PIPELINE,
    RESTART_POINTS,
    STAGE_REQUIREMENTS,
    Stage,
    StageGraph,
    StageRequirement,
)
from adstudio.pipeline.state_machine import PipelineStateMachine, StageProgress

__all__ = [
    "PIPELINE",
    "RESTART_POINTS",
    "STAGE_REQUIREMENTS",
    "Stage",
    "StageGraph",
    "StageRequirement",
    "PipelineStateMachine",
    "StageProgress",
]
