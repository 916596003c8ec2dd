"""Generation providers and the asset job lifecycle."""

from adstudio.generation.lifecycle import (
    GenerationLifecycle,
    RegenerationResult,
    TargetFailure,
    select_later_keyframes,
)
from adstudio.generation.prompts import StructuredPrompt, is_well_formed_prompt, validate_prompt
from adstudio.generation.providers import (
    DisabledGenerationProvider,
    FakeGenerationProvider,
    GenerationProvider,
    JobPoll,
    get_generation_provider,
)

__all__ = [
    "GenerationLifecycle",
    "RegenerationResult",
    "TargetFailure",
    "select_later_keyframes",
    "StructuredPrompt",
    "is_well_formed_prompt",
    "validate_prompt",
    "GenerationProvider",
    "FakeGenerationProvider",
    "DisabledGenerationProvider",
    "JobPoll",
    "get_generation_provider",
]
