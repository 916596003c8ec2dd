"""Structured video prompt schema.

A scene's `video_prompt_override` is either a legacy plain-text prompt or a
structured prompt object. Structured prompts are validated before they are
sent to a provider rather than trusted by shape.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from adstudio.errors import PromptValidationError

__all__ = [
    "StructuredPrompt",
    "GenerationPrompt",
    "is_well_formed_prompt",
    "validate_prompt",
]


class _PromptPart(BaseModel):
    model_config = ConfigDict(extra="allow")


class Subject(_PromptPart):
    primary: str
    emphasis: str | None = None
    features: str | None = None
    wardrobe: str | None = None


class Product(_PromptPart):
    emphasis: str | None = None
    position: str | None = None
    scale: str | None = None


class Dialogue(_PromptPart):
    text: str | None = None
    delivery: str | None = None


class ActionBeat(_PromptPart):
    time: str
    action: str
    energy: str


class Action(_PromptPart):
    sequence: list[ActionBeat] = Field(min_length=1)
    energy_arc: str


class CameraSpecs(_PromptPart):
    shot: str
    movement: str
    framing: str | None = None


class Environment(_PromptPart):
    setting: str
    product_visible: bool
    elements: list[str] | None = None
    product_position: str | None = None


class Lighting(_PromptPart):
    type: str
    quality: str
    details: str | None = None
    avoid: str | None = None


class Style(_PromptPart):
    aesthetic: str
    quality: str
    skin: str | None = None


class StructuredPrompt(_PromptPart):
    subject: Subject | None = None
    product: Product | None = None
    dialogue: Dialogue | None = None
    action: Action
    camera_specs: CameraSpecs
    environment: Environment
    lighting: Lighting
    style: Style
    negative_prompt: str


GenerationPrompt = Union[str, StructuredPrompt]


def validate_prompt(value: Any) -> GenerationPrompt:
    """Return a validated prompt or raise `PromptValidationError`.

    Non-empty strings are accepted as legacy prompts; dicts must match the
    structured schema.
    """
    if isinstance(value, str):
        if not value.strip():
            raise PromptValidationError("Prompt text is empty")
        return value
    if isinstance(value, StructuredPrompt):
        return value
    if not isinstance(value, dict):
        raise PromptValidationError(f"Unsupported prompt type: {type(value).__name__}")
    try:
        return StructuredPrompt.model_validate(value)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise PromptValidationError(f"Malformed structured prompt: {', '.join(fields)}") from exc


def is_well_formed_prompt(value: Any) -> bool:
    try:
        validate_prompt(value)
    except PromptValidationError:
        return False
    return True
