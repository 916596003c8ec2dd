"""Static downstream-impact configuration.

`IMPACT_RULES[stage][field]` says whether editing that field after its stage
ran is harmless or forces later stages to be regenerated.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping

from adstudio.costs.rates import API_COSTS
from adstudio.pipeline.stages import Stage

__all__ = [
    "ImpactKind",
    "ImpactRule",
    "StageCostEstimate",
    "IMPACT_RULES",
    "STAGE_COST_ESTIMATES",
    "ESTIMATE_SEGMENTS",
    "safe",
    "destructive",
]


class ImpactKind(str, Enum):
    SAFE = "safe"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class ImpactRule:
    kind: ImpactKind
    description: str
    affected_stages: tuple[str, ...] = ()


@dataclass(frozen=True)
class StageCostEstimate:
    label: str
    cost: Decimal


def safe(description: str) -> ImpactRule:
    return ImpactRule(ImpactKind.SAFE, description)


def destructive(description: str, *stages: Stage) -> ImpactRule:
    return ImpactRule(ImpactKind.DESTRUCTIVE, description, tuple(s.value for s in stages))


IMPACT_RULES: Mapping[str, Mapping[str, ImpactRule]] = {
    Stage.ANALYZING.value: {
        "product_name": destructive(
            "The product name is spoken in the script and voiceover",
            Stage.SCRIPTING,
            Stage.VOICEOVER,
            Stage.EDITING,
        ),
        "product_description": destructive(
            "Scripts and keyframes are generated from the product analysis",
            Stage.SCRIPTING,
            Stage.CASTING,
            Stage.DIRECTING,
            Stage.VOICEOVER,
            Stage.EDITING,
        ),
        "target_audience": destructive(
            "The script is written for the target audience",
            Stage.SCRIPTING,
            Stage.VOICEOVER,
            Stage.EDITING,
        ),
        "brand_colors": safe("Only used for display"),
        "notes": safe("Internal notes are not used for generation"),
    },
    Stage.SCRIPTING.value: {
        "script_text": destructive(
            "Voiceover narration is read from the script text",
            Stage.VOICEOVER,
            Stage.EDITING,
        ),
        "shot_scripts": destructive(
            "Keyframes and video clips are generated from the shot breakdown",
            Stage.CASTING,
            Stage.DIRECTING,
            Stage.EDITING,
        ),
        "section": safe("Section labels only organize the script"),
        "title": safe("The title is not used in generated media"),
    },
    Stage.BROLL_PLANNING.value: {
        "broll_shots": destructive(
            "B-roll images are generated from the shot plan",
            Stage.BROLL_GENERATION,
            Stage.EDITING,
        ),
        "broll_notes": safe("Planning notes are not used for generation"),
    },
    Stage.CASTING.value: {
        "character": destructive(
            "Keyframes show the cast character and videos animate them",
            Stage.CASTING,
            Stage.DIRECTING,
            Stage.EDITING,
        ),
        "keyframe_prompt": destructive(
            "Keyframes are regenerated from the new prompt",
            Stage.CASTING,
            Stage.DIRECTING,
            Stage.EDITING,
        ),
        "wardrobe_notes": safe("Notes are not used for generation"),
    },
    Stage.DIRECTING.value: {
        "energy_arc": destructive(
            "Keyframe poses and video motion follow the energy arc",
            Stage.CASTING,
            Stage.DIRECTING,
        ),
        "camera_spec": destructive(
            "Video clips are shot with the camera spec",
            Stage.DIRECTING,
            Stage.EDITING,
        ),
        "video_prompt_override": destructive(
            "Video clips are generated from the prompt override",
            Stage.DIRECTING,
            Stage.EDITING,
        ),
        "director_notes": safe("Notes are not used for generation"),
    },
    Stage.VOICEOVER.value: {
        "voice_id": destructive("Voiceover audio is re-synthesized", Stage.VOICEOVER, Stage.EDITING),
        "delivery": destructive("Voiceover audio is re-synthesized", Stage.VOICEOVER, Stage.EDITING),
    },
    Stage.EDITING.value: {
        "music_track": destructive("The final video is re-rendered", Stage.EDITING),
        "caption_style": destructive("The final video is re-rendered", Stage.EDITING),
        "export_name": safe("Only the download file name changes"),
    },
}

# Per-stage regeneration estimates assume a standard four-segment ad.
ESTIMATE_SEGMENTS = 4

STAGE_COST_ESTIMATES: Mapping[str, StageCostEstimate] = {
    Stage.SCRIPTING.value: StageCostEstimate("Script", API_COSTS["text"]),
    Stage.CASTING.value: StageCostEstimate("Keyframes", API_COSTS["image"] * 2 * ESTIMATE_SEGMENTS),
    Stage.DIRECTING.value: StageCostEstimate("Video Clips", API_COSTS["video"] * ESTIMATE_SEGMENTS),
    Stage.VOICEOVER.value: StageCostEstimate("Voiceover", API_COSTS["tts"] * ESTIMATE_SEGMENTS),
    Stage.BROLL_GENERATION.value: StageCostEstimate("B-Roll", API_COSTS["image"] * ESTIMATE_SEGMENTS),
    Stage.EDITING.value: StageCostEstimate("Final Render", API_COSTS["render"]),
}
