"""Pipeline stage graph.

One ordered tuple of statuses plus a gate-membership map is the single source
for every stage question: is this a review gate, what comes next, which gate
belongs to which stage, and how far along a project is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping

from adstudio.storage.models import AssetType

__all__ = [
    "Stage",
    "StageGraph",
    "StageRequirement",
    "PIPELINE",
    "RESTART_POINTS",
    "STAGE_REQUIREMENTS",
]


class Stage(str, Enum):
    """Project status values (production stages, review gates, terminals)."""

    CREATED = "created"
    ANALYZING = "analyzing"
    ANALYSIS_REVIEW = "analysis_review"
    SCRIPTING = "scripting"
    SCRIPT_REVIEW = "script_review"
    BROLL_PLANNING = "broll_planning"
    BROLL_REVIEW = "broll_review"
    CASTING = "casting"
    CASTING_REVIEW = "casting_review"
    DIRECTING = "directing"
    VOICEOVER = "voiceover"
    BROLL_GENERATION = "broll_generation"
    ASSET_REVIEW = "asset_review"
    EDITING = "editing"
    COMPLETED = "completed"
    FAILED = "failed"


def _key(status: Stage | str) -> str:
    return status.value if isinstance(status, Stage) else str(status)


@dataclass(frozen=True)
class StageGraph:
    """Immutable ordered stage graph.

    Args:
        order: every status in pipeline order, initial first, success terminal last
        gates: review gate -> the production stage that owns it
        failed: terminal failure status, outside the order
    """

    order: tuple[str, ...]
    gates: Mapping[str, str]
    failed: str = Stage.FAILED.value
    _index: Mapping[str, int] = field(init=False, repr=False, compare=False)
    _gate_by_stage: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(set(self.order)) != len(self.order):
            raise ValueError("Stage order contains duplicates")
        index = {status: i for i, status in enumerate(self.order)}
        for gate, stage in self.gates.items():
            if gate not in index or stage not in index:
                raise ValueError(f"Gate {gate!r} or stage {stage!r} is not in the stage order")
            if index[gate] <= index[stage]:
                raise ValueError(f"Gate {gate!r} must follow its stage {stage!r}")
        object.__setattr__(self, "_index", index)
        object.__setattr__(self, "_gate_by_stage", {s: g for g, s in self.gates.items()})

    @property
    def initial(self) -> str:
        return self.order[0]

    @property
    def completed(self) -> str:
        return self.order[-1]

    def __contains__(self, status: object) -> bool:
        return _key(status) in self._index or _key(status) == self.failed  # type: ignore[arg-type]

    def index(self, status: Stage | str) -> int:
        try:
            return self._index[_key(status)]
        except KeyError:
            raise ValueError(f"Unknown stage '{_key(status)}'") from None

    def is_known(self, status: Stage | str) -> bool:
        return _key(status) in self._index

    def is_review_gate(self, status: Stage | str) -> bool:
        return _key(status) in self.gates

    def is_terminal(self, status: Stage | str) -> bool:
        return _key(status) in {self.completed, self.failed}

    def is_production_stage(self, status: Stage | str) -> bool:
        key = _key(status)
        return (
            key in self._index
            and not self.is_review_gate(key)
            and not self.is_terminal(key)
            and key != self.initial
        )

    def successor(self, status: Stage | str) -> str | None:
        key = _key(status)
        if key == self.failed:
            return None
        i = self.index(key)
        return self.order[i + 1] if i + 1 < len(self.order) else None

    def gate_for(self, stage: Stage | str) -> str | None:
        return self._gate_by_stage.get(_key(stage))

    def stage_for(self, gate: Stage | str) -> str | None:
        return self.gates.get(_key(gate))

    def previous_gate(self, status: Stage | str) -> str | None:
        """Nearest review gate strictly before `status`."""
        for candidate in reversed(self.order[: self.index(status)]):
            if candidate in self.gates:
                return candidate
        return None

    def rollback_target(self, status: Stage | str) -> str:
        """Where a project returns to when work at `status` is abandoned.

        A gate is its own rollback point; anything else goes back to the gate
        before it, or to the initial status.
        """
        key = _key(status)
        if self.is_review_gate(key):
            return key
        return self.previous_gate(key) or self.initial

    def progress(self, status: Stage | str, failed_at: Stage | str | None = None) -> float:
        """Fraction of the pipeline covered, in [0, 1]."""
        key = _key(status)
        if key == self.failed:
            if failed_at is None or not self.is_known(failed_at):
                return 0.0
            key = _key(failed_at)
        return self.index(key) / (len(self.order) - 1)

    def sort(self, statuses: Iterable[Stage | str]) -> list[str]:
        """Filter to known statuses, dedupe, and sort by pipeline order."""
        wanted = {_key(s) for s in statuses}
        return [status for status in self.order if status in wanted]


PIPELINE = StageGraph(
    order=tuple(s.value for s in Stage if s is not Stage.FAILED),
    gates={
        Stage.ANALYSIS_REVIEW.value: Stage.ANALYZING.value,
        Stage.SCRIPT_REVIEW.value: Stage.SCRIPTING.value,
        Stage.BROLL_REVIEW.value: Stage.BROLL_PLANNING.value,
        Stage.CASTING_REVIEW.value: Stage.CASTING.value,
        Stage.ASSET_REVIEW.value: Stage.BROLL_GENERATION.value,
    },
)

# Stages a project can be restarted from after a destructive edit.
RESTART_POINTS: frozenset[str] = frozenset(
    {
        Stage.ANALYZING.value,
        Stage.SCRIPTING.value,
        Stage.CASTING.value,
        Stage.DIRECTING.value,
        Stage.VOICEOVER.value,
        Stage.EDITING.value,
    }
)


@dataclass(frozen=True)
class StageRequirement:
    """Assets a generating stage must complete, per scene."""

    asset_types: tuple[str, ...]
    label: str


STAGE_REQUIREMENTS: dict[str, StageRequirement] = {
    Stage.CASTING.value: StageRequirement(
        (AssetType.KEYFRAME_START.value, AssetType.KEYFRAME_END.value),
        "Generating Keyframes",
    ),
    Stage.DIRECTING.value: StageRequirement((AssetType.VIDEO.value,), "Generating Videos"),
    Stage.VOICEOVER.value: StageRequirement((AssetType.AUDIO.value,), "Generating Voiceover"),
    Stage.BROLL_GENERATION.value: StageRequirement((AssetType.BROLL.value,), "Generating B-Roll"),
}
