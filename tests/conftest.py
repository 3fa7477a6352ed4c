"""
Pytest fixtures for Mission Control tests.
"""

import uuid

import pytest

from mission_control.engines.progression.aggregator import RankThreshold
from mission_control.engines.progression.graph import build_graph
from mission_control.engines.progression.payloads import ConfirmationType, MissionType
from tests.helpers.factories import edge, make_mission, quiz_payload


@pytest.fixture
def diamond():
    """
    A -> B, A -> C, (B and C) -> D.

    Returns (graph, missions by name).
    """
    a = make_mission("A", position=(0.0, 0.0))
    b = make_mission("B", position=(0.0, 1.0))
    c = make_mission("C", position=(1.0, 1.0))
    d = make_mission("D", position=(0.0, 2.0), experience=40)
    graph = build_graph([a, b, c, d], [edge(a, b), edge(a, c), edge(b, d), edge(c, d)])
    return graph, {"A": a, "B": b, "C": c, "D": d}


@pytest.fixture
def quiz_mission():
    return make_mission(
        "Quiz",
        mission_type=MissionType.QUIZ,
        payload=quiz_payload(passing_score=70),
        experience=30,
    )


@pytest.fixture
def review_mission():
    return make_mission(
        "Essay",
        mission_type=MissionType.CUSTOM,
        payload={"submission_format": "text"},
        confirmation_type=ConfirmationType.MANUAL_REVIEW,
        experience=50,
        mana=20,
    )


@pytest.fixture
def competency_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def thresholds(competency_id):
    return [
        RankThreshold(level=1, name="Recruit"),
        RankThreshold(level=2, name="Cadet", min_experience=100),
        RankThreshold(
            level=3,
            name="Ensign",
            min_experience=200,
            min_missions=3,
            required_competencies={competency_id: 10},
        ),
    ]
