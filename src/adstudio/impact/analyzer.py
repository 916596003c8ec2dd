"""Downstream impact of editing an upstream field.

Pure: no database, no provider calls. Unknown fields are reported as safe so
an incomplete rule table never blocks an edit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, List, Mapping

from adstudio.costs.rates import round_cents
from adstudio.errors import UnknownStage
from adstudio.impact.rules import (
    IMPACT_RULES,
    STAGE_COST_ESTIMATES,
    ImpactKind,
    ImpactRule,
    StageCostEstimate,
)
from adstudio.pipeline.stages import PIPELINE, RESTART_POINTS, StageGraph

__all__ = ["FieldImpact", "ImpactReport", "compute_impact", "UNKNOWN_FIELD_DESCRIPTION"]

UNKNOWN_FIELD_DESCRIPTION = "No known downstream impact"


@dataclass(frozen=True)
class FieldImpact:
    field: str
    description: str
    affected_stages: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImpactReport:
    stage: str
    safe: List[FieldImpact] = field(default_factory=list)
    destructive: List[FieldImpact] = field(default_factory=list)
    all_affected_stages: List[str] = field(default_factory=list)
    restart_from: str | None = None
    estimated_cost_usd: Decimal = Decimal("0.00")
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "safe": [{"field": f.field, "description": f.description} for f in self.safe],
            "destructive": [
                {
                    "field": f.field,
                    "description": f.description,
                    "affected_stages": list(f.affected_stages),
                }
                for f in self.destructive
            ],
            "all_affected_stages": list(self.all_affected_stages),
            "restart_from": self.restart_from,
            "estimated_cost_usd": str(self.estimated_cost_usd),
            "warning": self.warning,
        }


def compute_impact(
    stage: str,
    changed_fields: Iterable[str],
    *,
    rules: Mapping[str, Mapping[str, ImpactRule]] = IMPACT_RULES,
    estimates: Mapping[str, StageCostEstimate] = STAGE_COST_ESTIMATES,
    restart_points: Iterable[str] = RESTART_POINTS,
    graph: StageGraph = PIPELINE,
) -> ImpactReport:
    """Classify `changed_fields` of `stage` and price the regeneration they force.

    Raises:
        UnknownStage: `stage` is neither a pipeline status nor a rule-table key
    """
    if stage not in rules and not graph.is_known(stage):
        raise UnknownStage(
            f"Unknown stage '{stage}'. Valid stages: {', '.join(rules)}"
        )
    stage_rules = rules.get(stage, {})

    safe: list[FieldImpact] = []
    destructive: list[FieldImpact] = []
    affected: set[str] = set()
    seen: set[str] = set()
    for name in changed_fields:
        if name in seen:
            continue
        seen.add(name)
        rule = stage_rules.get(name)
        if rule is None:
            safe.append(FieldImpact(name, UNKNOWN_FIELD_DESCRIPTION))
        elif rule.kind is ImpactKind.SAFE:
            safe.append(FieldImpact(name, rule.description))
        else:
            destructive.append(FieldImpact(name, rule.description, rule.affected_stages))
            affected.update(rule.affected_stages)

    ordered = graph.sort(affected)
    restart_set = set(restart_points)
    restart_from = next((s for s in ordered if s in restart_set), None)

    breakdown: list[str] = []
    total = Decimal("0")
    for s in ordered:
        estimate = estimates.get(s)
        if estimate is None:
            continue
        total += estimate.cost
        breakdown.append(f"{estimate.label} (${round_cents(estimate.cost):.2f})")

    warning = None
    if destructive and breakdown:
        names = ", ".join(f.field for f in destructive)
        warning = f"Editing {names} will require regenerating: {', '.join(breakdown)}."

    return ImpactReport(
        stage=stage,
        safe=safe,
        destructive=destructive,
        all_affected_stages=ordered,
        restart_from=restart_from,
        estimated_cost_usd=round_cents(total),
        warning=warning,
    )
