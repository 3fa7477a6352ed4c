"""Unit tests for the progression evaluator."""

import uuid

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from mission_control.engines.progression.errors import UnresolvedCycleError
from mission_control.engines.progression.evaluator import (
    evaluate,
    evaluate_report,
    explain_lock,
    summarize,
    topological_order,
)
from mission_control.engines.progression.graph import MissionGraph, build_graph
from mission_control.engines.progression.types import MissionStatus, UserMissionRecord
from tests.helpers.factories import chain_graph, completed, edge, make_mission, record
from tests.helpers.strategies import completion_subset, dag_strategy

S = MissionStatus


class TestEvaluate:
    """Status derivation for a single user."""

    def test_new_user_sees_only_roots(self, diamond):
        graph, m = diamond
        statuses = evaluate(graph, [], user_rank=1)
        assert statuses[m["A"].id] == S.AVAILABLE
        assert statuses[m["B"].id] == S.LOCKED
        assert statuses[m["C"].id] == S.LOCKED
        assert statuses[m["D"].id] == S.LOCKED

    def test_completing_root_unlocks_children(self, diamond):
        graph, m = diamond
        statuses = evaluate(graph, completed(m["A"]), user_rank=1)
        assert statuses[m["A"].id] == S.COMPLETED
        assert statuses[m["B"].id] == S.AVAILABLE
        assert statuses[m["C"].id] == S.AVAILABLE
        assert statuses[m["D"].id] == S.LOCKED

    def test_and_join_needs_every_prerequisite(self, diamond):
        graph, m = diamond
        partial = evaluate(graph, completed(m["A"], m["B"]), user_rank=1)
        assert partial[m["D"].id] == S.LOCKED
        full = evaluate(graph, completed(m["A"], m["B"], m["C"]), user_rank=1)
        assert full[m["D"].id] == S.AVAILABLE

    def test_pending_review_prerequisite_does_not_unlock(self, diamond):
        graph, m = diamond
        records = completed(m["A"], m["B"]) + [record(m["C"], S.PENDING_REVIEW)]
        assert evaluate(graph, records, user_rank=1)[m["D"].id] == S.LOCKED

    def test_min_rank_gates_availability(self):
        a = make_mission("A", min_rank=3)
        graph = build_graph([a], [])
        assert evaluate(graph, [], user_rank=2)[a.id] == S.LOCKED
        assert evaluate(graph, [], user_rank=3)[a.id] == S.AVAILABLE

    def test_advanced_statuses_are_kept(self, diamond):
        graph, m = diamond
        # stored progress is never re-derived, even if prerequisites say otherwise
        records = [record(m["B"], S.IN_PROGRESS), record(m["D"], S.COMPLETED)]
        statuses = evaluate(graph, records, user_rank=1)
        assert statuses[m["B"].id] == S.IN_PROGRESS
        assert statuses[m["D"].id] == S.COMPLETED

    def test_stale_locked_record_is_recomputed(self, diamond):
        graph, m = diamond
        records = completed(m["A"]) + [record(m["B"], S.LOCKED)]
        assert evaluate(graph, records, user_rank=1)[m["B"].id] == S.AVAILABLE

    def test_records_for_unknown_missions_are_ignored(self, diamond):
        graph, m = diamond
        stray = UserMissionRecord(mission_id=uuid.uuid4(), status=S.COMPLETED)
        report = evaluate_report(graph, completed(m["A"]) + [stray], user_rank=1)
        assert report.ignored_mission_ids == [stray.mission_id]
        assert stray.mission_id not in report.statuses
        assert len(report.statuses) == 4

    def test_every_mission_gets_a_status(self, diamond):
        graph, m = diamond
        assert set(evaluate(graph, [], user_rank=1)) == {mission.id for mission in m.values()}


class TestTopologicalOrder:

    def test_prerequisites_come_first(self):
        graph, missions = chain_graph(5)
        assert topological_order(graph) == [m.id for m in missions]

    def test_ties_broken_by_position(self):
        left = make_mission("left", position=(0.0, 0.0))
        right = make_mission("right", position=(5.0, 0.0))
        top = make_mission("top", position=(9.0, -1.0))
        graph = build_graph([right, left, top], [])
        assert topological_order(graph) == [top.id, left.id, right.id]

    def test_cycle_in_unvalidated_graph(self):
        a, b, c = make_mission("A"), make_mission("B"), make_mission("C")
        graph = MissionGraph([a, b, c], [edge(a, b), edge(b, a)])
        with pytest.raises(UnresolvedCycleError) as exc_info:
            topological_order(graph)
        assert set(exc_info.value.unresolved) == {a.id, b.id}


class TestLockExplanation:

    def test_missing_prerequisites_listed(self, diamond):
        graph, m = diamond
        statuses = evaluate(graph, completed(m["A"], m["B"]), user_rank=1)
        reason = explain_lock(graph, statuses, m["D"].id, user_rank=1)
        assert reason.missing_prerequisites == [m["C"].id]
        assert reason.required_rank is None

    def test_rank_requirement_listed(self):
        a = make_mission("A", min_rank=2)
        graph = build_graph([a], [])
        statuses = evaluate(graph, [], user_rank=1)
        reason = explain_lock(graph, statuses, a.id, user_rank=1)
        assert reason.required_rank == 2
        assert reason.missing_prerequisites == []

    def test_not_locked_has_no_reason(self, diamond):
        graph, m = diamond
        statuses = evaluate(graph, [], user_rank=1)
        assert explain_lock(graph, statuses, m["A"].id, user_rank=1) is None


def test_summarize_counts_each_status(diamond):
    graph, m = diamond
    records = completed(m["A"]) + [record(m["B"], S.PENDING_REVIEW), record(m["C"], S.IN_PROGRESS)]
    summary = summarize(evaluate(graph, records, user_rank=1))
    assert summary.total == 4
    assert summary.completed == 1
    assert summary.pending_review == 1
    assert summary.in_progress == 1
    assert summary.locked == 1
    assert summary.available == 0


@given(dag_strategy(), st.data())
@settings(max_examples=60)
def test_available_iff_all_prerequisites_completed(campaign, data):
    missions, deps = campaign
    graph = build_graph(missions, deps)
    done = data.draw(completion_subset(missions))
    statuses = evaluate(graph, completed(*done), user_rank=1)
    done_ids = {m.id for m in done}
    for mission in missions:
        if mission.id in done_ids:
            assert statuses[mission.id] == S.COMPLETED
            continue
        prereqs_done = all(statuses[p] == S.COMPLETED for p in graph.prerequisites_of(mission.id))
        assert (statuses[mission.id] == S.AVAILABLE) == prereqs_done


@given(dag_strategy(), st.data())
@settings(max_examples=60)
def test_completing_an_available_mission_never_relocks(campaign, data):
    missions, deps = campaign
    graph = build_graph(missions, deps)
    done = data.draw(completion_subset(missions))
    before = evaluate(graph, completed(*done), user_rank=1)
    available = [m for m in missions if before[m.id] == S.AVAILABLE]
    if not available:
        return
    extra = data.draw(st.sampled_from(available))
    after = evaluate(graph, completed(*done, extra), user_rank=1)
    for mission_id, status in before.items():
        if status != S.LOCKED:
            assert after[mission_id] != S.LOCKED
