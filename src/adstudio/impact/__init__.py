from adstudio.impact.analyzer import FieldImpact, ImpactReport, compute_impact
from adstudio.impact.rules import IMPACT_RULES, STAGE_COST_ESTIMATES, ImpactKind, ImpactRule

__all__ = [
    "FieldImpact",
    "ImpactReport",
    "compute_impact",
    "IMPACT_RULES",
    "STAGE_COST_ESTIMATES",
    "ImpactKind",
    "ImpactRule",
]
