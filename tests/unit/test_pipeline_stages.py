"""Unit tests for the pipeline stage graph."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from adstudio.pipeline.stages import PIPELINE, RESTART_POINTS, STAGE_REQUIREMENTS, Stage, StageGraph


def test_canonical_order():
    assert PIPELINE.initial == "created"
    assert PIPELINE.completed == "completed"
    assert PIPELINE.order[:4] == ("created", "analyzing", "analysis_review", "scripting")
    assert "failed" not in PIPELINE.order
    assert "failed" in PIPELINE
    assert "rendering" not in PIPELINE


def test_review_gates_follow_their_stage():
    for gate, stage in PIPELINE.gates.items():
        assert PIPELINE.is_review_gate(gate)
        assert PIPELINE.gate_for(stage) == gate
        assert PIPELINE.stage_for(gate) == stage
        assert PIPELINE.index(gate) > PIPELINE.index(stage)

    assert PIPELINE.gate_for(Stage.DIRECTING) is None
    assert not PIPELINE.is_review_gate(Stage.EDITING)


def test_successor():
    assert PIPELINE.successor(Stage.CREATED) == "analyzing"
    assert PIPELINE.successor("casting_review") == "directing"
    assert PIPELINE.successor(Stage.COMPLETED) is None
    assert PIPELINE.successor(Stage.FAILED) is None
    with pytest.raises(ValueError):
        PIPELINE.successor("rendering")


def test_production_stages():
    assert PIPELINE.is_production_stage("casting")
    assert PIPELINE.is_production_stage(Stage.EDITING)
    assert not PIPELINE.is_production_stage("created")
    assert not PIPELINE.is_production_stage("casting_review")
    assert not PIPELINE.is_production_stage("completed")
    assert not PIPELINE.is_production_stage("failed")


@pytest.mark.parametrize(
    "status,expected",
    [
        ("analyzing", "created"),
        ("analysis_review", "analysis_review"),
        ("scripting", "analysis_review"),
        ("casting", "broll_review"),
        ("directing", "casting_review"),
        ("voiceover", "casting_review"),
        ("editing", "asset_review"),
    ],
)
def test_rollback_target(status, expected):
    assert PIPELINE.rollback_target(status) == expected


def test_progress():
    assert PIPELINE.progress("created") == 0.0
    assert PIPELINE.progress("completed") == 1.0
    assert PIPELINE.progress("casting") == 0.5
    assert PIPELINE.progress("failed", "casting") == 0.5
    assert PIPELINE.progress("failed") == 0.0


def test_restart_points_are_production_stages():
    assert all(PIPELINE.is_production_stage(point) for point in RESTART_POINTS)


def test_stage_requirements_cover_generating_stages():
    assert STAGE_REQUIREMENTS["casting"].asset_types == ("keyframe_start", "keyframe_end")
    assert set(STAGE_REQUIREMENTS) == {"casting", "directing", "voiceover", "broll_generation"}


def test_invalid_graphs_rejected():
    with pytest.raises(ValueError):
        StageGraph(order=("a", "b", "a"), gates={})
    with pytest.raises(ValueError):
        StageGraph(order=("a", "gate", "b"), gates={"gate": "b"})
    with pytest.raises(ValueError):
        StageGraph(order=("a", "b"), gates={"gate": "a"})


def test_custom_graph():
    graph = StageGraph(order=("new", "draft", "draft_review", "done"), gates={"draft_review": "draft"})

    assert graph.initial == "new"
    assert graph.successor("draft") == "draft_review"
    assert graph.rollback_target("done") == "draft_review"
    assert graph.progress("draft_review") == pytest.approx(2 / 3)


@given(st.permutations(list(PIPELINE.order) + ["failed", "not_a_stage"]))
def test_sort_follows_pipeline_order(statuses):
    ordered = PIPELINE.sort(statuses)

    assert ordered == list(PIPELINE.order)
    assert PIPELINE.sort(reversed(ordered[3:7])) == ordered[3:7]
