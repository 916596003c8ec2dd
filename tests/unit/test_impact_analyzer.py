"""Unit tests for the downstream impact analyzer."""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from adstudio.errors import UnknownStage
from adstudio.impact.analyzer import UNKNOWN_FIELD_DESCRIPTION, compute_impact
from adstudio.impact.rules import IMPACT_RULES, STAGE_COST_ESTIMATES, StageCostEstimate, destructive, safe
from adstudio.pipeline.stages import PIPELINE, Stage


def test_energy_arc_with_unknown_field():
    report = compute_impact("directing", ["energy_arc", "unknown_field"])

    assert report.all_affected_stages == ["casting", "directing"]
    assert [f.field for f in report.destructive] == ["energy_arc"]
    assert [(f.field, f.description) for f in report.safe] == [("unknown_field", UNKNOWN_FIELD_DESCRIPTION)]
    assert report.restart_from == "casting"
    assert report.estimated_cost_usd == Decimal("5.36")
    assert report.warning == (
        "Editing energy_arc will require regenerating: Keyframes ($0.56), Video Clips ($4.80)."
    )


def test_unknown_field_is_safe():
    report = compute_impact("scripting", ["totally_made_up_field"])

    assert [f.field for f in report.safe] == ["totally_made_up_field"]
    assert report.destructive == []
    assert report.all_affected_stages == []
    assert report.restart_from is None
    assert report.estimated_cost_usd == Decimal("0.00")
    assert report.warning is None


def test_safe_fields_only():
    report = compute_impact("directing", ["director_notes"])

    assert report.safe[0].description == "Notes are not used for generation"
    assert report.warning is None


def test_affected_stages_are_unioned_and_sorted():
    report = compute_impact("scripting", ["script_text", "shot_scripts", "section"])

    assert report.all_affected_stages == ["casting", "directing", "voiceover", "editing"]
    assert report.restart_from == "casting"
    assert report.estimated_cost_usd == Decimal("6.06")
    assert report.warning.startswith("Editing script_text, shot_scripts will require regenerating: Keyframes")


def test_duplicate_fields_are_reported_once():
    report = compute_impact("voiceover", ["voice_id", "voice_id"])

    assert [f.field for f in report.destructive] == ["voice_id"]
    assert report.estimated_cost_usd == Decimal("0.70")


def test_known_stage_without_rules_fails_open():
    report = compute_impact("casting_review", ["anything"])

    assert [f.field for f in report.safe] == ["anything"]


def test_unknown_stage_raises():
    with pytest.raises(UnknownStage):
        compute_impact("rendering", ["energy_arc"])


def test_no_warning_without_cost_bearing_stage():
    rules = {"directing": {"tempo": destructive("Changes pacing", Stage.ASSET_REVIEW)}}

    report = compute_impact("directing", ["tempo"], rules=rules)

    assert report.all_affected_stages == ["asset_review"]
    assert report.restart_from is None
    assert report.warning is None


def test_cost_is_rounded_half_up():
    rules = {"scripting": {"hook": destructive("Rewrites the hook", Stage.SCRIPTING, Stage.VOICEOVER)}}
    estimates = {
        "scripting": StageCostEstimate("Script", Decimal("0.0025")),
        "voiceover": StageCostEstimate("Voiceover", Decimal("0.0025")),
    }

    report = compute_impact("scripting", ["hook"], rules=rules, estimates=estimates)

    assert report.estimated_cost_usd == Decimal("0.01")


def test_custom_restart_points():
    report = compute_impact("directing", ["energy_arc"], restart_points=["directing"])

    assert report.restart_from == "directing"


def test_report_serializes():
    payload = compute_impact("editing", ["music_track", "export_name"]).to_dict()

    assert payload["estimated_cost_usd"] == "0.50"
    assert payload["destructive"][0]["affected_stages"] == ["editing"]
    assert payload["safe"] == [{"field": "export_name", "description": "Only the download file name changes"}]


def test_rule_table_only_references_known_stages():
    for stage, fields in IMPACT_RULES.items():
        assert PIPELINE.is_known(stage)
        for rule in fields.values():
            assert all(PIPELINE.is_known(s) for s in rule.affected_stages)
    assert all(PIPELINE.is_known(s) for s in STAGE_COST_ESTIMATES)
    assert safe("x").affected_stages == ()


_ALL_FIELDS = sorted({f for fields in IMPACT_RULES.values() for f in fields} | {"mystery"})


@given(stage=st.sampled_from(sorted(IMPACT_RULES)), fields=st.lists(st.sampled_from(_ALL_FIELDS), max_size=8))
def test_affected_stages_sorted_regardless_of_input_order(stage, fields):
    forward = compute_impact(stage, fields)
    backward = compute_impact(stage, list(reversed(fields)))

    assert forward.all_affected_stages == PIPELINE.sort(forward.all_affected_stages)
    assert forward.all_affected_stages == backward.all_affected_stages
    assert forward.estimated_cost_usd == backward.estimated_cost_usd
    assert forward.restart_from == backward.restart_from
    assert {f.field for f in forward.safe} | {f.field for f in forward.destructive} == set(fields)
