"""Builders for engine-side missions, edges and records."""

import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from mission_control.engines.progression.graph import MissionGraph, build_graph
from mission_control.engines.progression.payloads import ConfirmationType, MissionType
from mission_control.engines.progression.types import (
    CompetencyGrant,
    Mission,
    MissionDependency,
    MissionStatus,
    UserMissionRecord,
)

CAMPAIGN_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c1")


def make_mission(
    name: str = "Mission",
    mission_type: MissionType = MissionType.CUSTOM,
    payload: Optional[dict] = None,
    confirmation_type: ConfirmationType = ConfirmationType.AUTO,
    experience: int = 10,
    mana: int = 5,
    min_rank: int = 1,
    competencies: Optional[Dict[uuid.UUID, int]] = None,
    position: Tuple[float, float] = (0.0, 0.0),
    description: Optional[str] = "Do the thing",
    mission_id: Optional[uuid.UUID] = None,
) -> Mission:
    return Mission(
        id=mission_id or uuid.uuid4(),
        campaign_id=CAMPAIGN_ID,
        name=name,
        description=description,
        mission_type=mission_type,
        payload=payload,
        confirmation_type=confirmation_type,
        experience_reward=experience,
        mana_reward=mana,
        min_rank=min_rank,
        position_x=position[0],
        position_y=position[1],
        competencies=[
            CompetencyGrant(competency_id=cid, points=points)
            for cid, points in (competencies or {}).items()
        ],
    )


def edge(source: Mission, target: Mission) -> MissionDependency:
    return MissionDependency(source_mission_id=source.id, target_mission_id=target.id)


def make_chain(length: int, **kwargs) -> Tuple[List[Mission], List[MissionDependency]]:
    """m0 -> m1 -> ... -> m{length-1}, laid out top to bottom."""
    missions = [make_mission(name=f"m{i}", position=(0.0, float(i)), **kwargs) for i in range(length)]
    deps = [edge(a, b) for a, b in zip(missions, missions[1:])]
    return missions, deps


def chain_graph(length: int, **kwargs) -> Tuple[MissionGraph, List[Mission]]:
    missions, deps = make_chain(length, **kwargs)
    return build_graph(missions, deps), missions


def completed(*missions: Mission) -> List[UserMissionRecord]:
    return [record(m, MissionStatus.COMPLETED) for m in missions]


def record(
    mission: Mission,
    status: MissionStatus = MissionStatus.AVAILABLE,
    attempts: int = 0,
    user_id: Optional[uuid.UUID] = None,
) -> UserMissionRecord:
    return UserMissionRecord(mission_id=mission.id, user_id=user_id, status=status, attempts=attempts)


def quiz_payload(
    passing_score: int = 70,
    allow_retries: bool = False,
    max_retries: Optional[int] = None,
    questions: Optional[Sequence[dict]] = None,
) -> dict:
    """Two single-choice questions (q1 -> a, q2 -> c) unless ``questions`` is given."""
    if questions is None:
        questions = [
            {
                "id": "q1",
                "text": "First?",
                "question_type": "single",
                "answers": [{"id": "a"}, {"id": "b"}],
                "correct_answer_ids": ["a"],
            },
            {
                "id": "q2",
                "text": "Second?",
                "question_type": "single",
                "answers": [{"id": "c"}, {"id": "d"}],
                "correct_answer_ids": ["c"],
            },
        ]
    return {
        "passing_score": passing_score,
        "allow_retries": allow_retries,
        "max_retries": max_retries,
        "questions": list(questions),
    }


def quiz_answers(**chosen: str) -> dict:
    """quiz_answers(q1="a", q2="d") -> submission payload."""
    return {"answers": [{"question_id": qid, "answer_ids": [aid]} for qid, aid in chosen.items()]}
