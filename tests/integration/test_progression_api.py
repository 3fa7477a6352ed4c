"""
End-to-end tests for the progression API.

Runs the FastAPI app against a file-backed SQLite database. Each test seeds its
own users and campaign, so tests do not depend on each other.
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator, Dict, List, Optional, Sequence, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# File-based SQLite so all connections share the same DB
_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
from mission_control.config import get_settings
get_settings.cache_clear()

from mission_control.api.deps import get_db
from mission_control.kernel.models import (
    Base,
    Campaign,
    EventType,
    Mission,
    MissionDependency,
    ProgressionEvent,
    Rank,
    User,
    UserMission,
    UserRole,
)
from mission_control.kernel.persistence.progress_repository import ProgressRepository
from mission_control.main import app
from tests.helpers.factories import quiz_payload

API = "/api/v1"

TEST_ENGINE = create_async_engine(
    f"sqlite+aiosqlite:///{TEST_DB_PATH}",
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=NullPool,
)
TEST_SESSION_MAKER = async_sessionmaker(
    TEST_ENGINE,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TEST_SESSION_MAKER() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@pytest_asyncio.fixture
async def client():
    """Async client bound to the test database."""
    async with TEST_ENGINE.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture(scope="module", autouse=True)
def _remove_test_db():
    yield
    try:
        os.unlink(TEST_DB_PATH)
    except OSError:
        pass


# --- seeding helpers ---


async def make_user(role: UserRole = UserRole.CADET, name: Optional[str] = None) -> User:
    async with TEST_SESSION_MAKER() as session:
        user = User(
            email=f"{role.value}-{uuid.uuid4().hex[:8]}@fleet.test",
            display_name=name or role.value.title(),
            role=role.value,
        )
        session.add(user)
        await session.commit()
        return user


def mission(name: str, **overrides) -> Dict:
    fields = {
        "name": name,
        "description": f"{name} briefing",
        "mission_type": "CUSTOM",
        "payload": {"submission_format": "text"},
        "confirmation_type": "AUTO",
        "experience_reward": 10,
        "mana_reward": 5,
    }
    fields.update(overrides)
    return fields


async def make_campaign(
    definitions: Sequence[Dict],
    edges: Sequence[Tuple[int, int]] = (),
    ranks: Sequence[Tuple[int, str, int]] = (),
) -> Tuple[uuid.UUID, List[uuid.UUID]]:
    """Insert a campaign; edges and ranks are (source_idx, target_idx) and (level, name, min_experience)."""
    async with TEST_SESSION_MAKER() as session:
        campaign = Campaign(id=uuid.uuid4(), name=f"Campaign {uuid.uuid4().hex[:6]}")
        session.add(campaign)
        rows = [Mission(id=uuid.uuid4(), campaign_id=campaign.id, **fields) for fields in definitions]
        session.add_all(rows)
        await session.flush()
        for source, target in edges:
            session.add(MissionDependency(source_mission_id=rows[source].id, target_mission_id=rows[target].id))
        for level, name, min_experience in ranks:
            session.add(Rank(campaign_id=campaign.id, level=level, name=name, min_experience=min_experience))
        await session.commit()
        return campaign.id, [row.id for row in rows]


def auth(user: User) -> Dict[str, str]:
    return {"X-User-Id": str(user.id)}


def statuses_of(progression: Dict) -> Dict[str, str]:
    return {m["mission_id"]: m["status"] for m in progression["missions"]}


async def submit(client: AsyncClient, user: User, mission_id: uuid.UUID, payload: Dict):
    return await client.post(f"{API}/missions/{mission_id}/submit", json={"payload": payload}, headers=auth(user))


# --- basics ---


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_identity_header_required(client: AsyncClient):
    campaign_id, _ = await make_campaign([mission("A")])
    r = await client.get(f"{API}/campaigns/{campaign_id}/progression")
    assert r.status_code == 401
    r = await client.get(f"{API}/campaigns/{campaign_id}/progression", headers={"X-User-Id": "nobody"})
    assert r.status_code == 401
    r = await client.get(f"{API}/campaigns/{campaign_id}/progression", headers={"X-User-Id": str(uuid.uuid4())})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_unknown_campaign(client: AsyncClient):
    cadet = await make_user()
    r = await client.get(f"{API}/campaigns/{uuid.uuid4()}/progression", headers=auth(cadet))
    assert r.status_code == 404
    assert r.json()["code"] == "campaign_not_found"
    assert "request_id" in r.json()

    headers = {**auth(cadet), "X-Request-ID": "trace-123"}
    r = await client.get(f"{API}/campaigns/{uuid.uuid4()}/progression", headers=headers)
    assert r.json()["request_id"] == "trace-123"
    assert r.headers["X-Request-ID"] == "trace-123"


# --- cadet flow ---


@pytest.mark.asyncio
async def test_completion_unlocks_dependents(client: AsyncClient):
    cadet = await make_user()
    campaign_id, (a, b, c) = await make_campaign(
        [mission("A"), mission("B", confirmation_type="MANUAL_REVIEW"), mission("C")],
        edges=[(0, 1), (0, 2)],
    )

    r = await client.get(f"{API}/campaigns/{campaign_id}/progression", headers=auth(cadet))
    assert r.status_code == 200
    body = r.json()
    assert statuses_of(body) == {str(a): "AVAILABLE", str(b): "LOCKED", str(c): "LOCKED"}
    locked = next(m for m in body["missions"] if m["mission_id"] == str(b))
    assert locked["lock_reason"]["missing_prerequisites"] == [str(a)]

    r = await submit(client, cadet, a, {"content": "done"})
    assert r.status_code == 200
    result = r.json()
    assert result["ok"] is True
    assert result["status"] == "COMPLETED"
    assert result["reward"]["experience"] == 10
    assert sorted(result["unlocked_mission_ids"]) == sorted([str(b), str(c)])

    r = await client.get(f"{API}/campaigns/{campaign_id}/progression", headers=auth(cadet))
    body = r.json()
    assert statuses_of(body)[str(b)] == "AVAILABLE"
    assert body["totals"]["total_experience"] == 10
    assert body["summary"]["completed"] == 1


@pytest.mark.asyncio
async def test_second_submission_is_not_rewarded(client: AsyncClient):
    cadet = await make_user()
    _, (a,) = await make_campaign([mission("A", experience_reward=25)])

    assert (await submit(client, cadet, a, {"content": "done"})).status_code == 200
    r = await submit(client, cadet, a, {"content": "done again"})
    assert r.status_code == 409
    assert r.json()["rejection"]["code"] == "ALREADY_COMPLETED"

    async with TEST_SESSION_MAKER() as session:
        stored = await session.get(User, cadet.id)
        assert stored.experience == 25


@pytest.mark.asyncio
async def test_racing_completion_is_rewarded_once(client: AsyncClient, monkeypatch):
    """A second request completes the mission between our snapshot and our write."""
    cadet = await make_user()
    _, (a,) = await make_campaign([mission("A", experience_reward=25)])

    original = ProgressRepository.save_user_mission
    rival: Dict = {}

    async def save_after_rival(self, user_id, record, expected_status, expected_attempts=None):
        if "response" not in rival:
            rival["response"] = None
            rival["response"] = await submit(client, cadet, a, {"content": "rival"})
        return await original(self, user_id, record, expected_status, expected_attempts)

    monkeypatch.setattr(ProgressRepository, "save_user_mission", save_after_rival)
    r = await submit(client, cadet, a, {"content": "first"})
    monkeypatch.undo()

    assert rival["response"].status_code == 200
    assert rival["response"].json()["status"] == "COMPLETED"
    assert r.status_code == 409
    assert r.json()["ok"] is False
    assert r.json()["rejection"]["code"] == "ALREADY_COMPLETED"
    assert r.json()["reward"] is None

    async with TEST_SESSION_MAKER() as session:
        stored = await session.get(User, cadet.id)
        assert stored.experience == 25
        rows = (await session.execute(
            select(UserMission.status).where(UserMission.user_id == cadet.id)
        )).scalars().all()
        assert rows == ["COMPLETED"]
        completions = await session.scalar(
            select(func.count(ProgressionEvent.id)).where(
                ProgressionEvent.user_id == cadet.id,
                ProgressionEvent.event_type == EventType.MISSION_COMPLETED.value,
            )
        )
        assert completions == 1


@pytest.mark.asyncio
async def test_activity_feed_is_newest_first(client: AsyncClient):
    cadet = await make_user()
    _, (a, b, c) = await make_campaign(
        [mission("A"), mission("B"), mission("C")],
        edges=[(0, 1), (1, 2)],
    )
    assert (await submit(client, cadet, a, {"content": "done"})).status_code == 200
    assert (await submit(client, cadet, b, {"content": "done"})).status_code == 200

    r = await client.get(
        f"{API}/users/{cadet.id}/events",
        params=[("event_type", "mission.completed"), ("event_type", "mission.unlocked")],
        headers=auth(cadet),
    )
    assert r.status_code == 200
    events = r.json()["events"]
    assert len(events) == 4
    # second submission's events first
    assert {(e["event_type"], e["entity_id"]) for e in events[:2]} == {
        ("mission.completed", str(b)),
        ("mission.unlocked", str(c)),
    }
    assert {(e["event_type"], e["entity_id"]) for e in events[2:]} == {
        ("mission.completed", str(a)),
        ("mission.unlocked", str(b)),
    }

    r = await client.get(
        f"{API}/users/{cadet.id}/events",
        params={"event_type": "mission.unlocked"},
        headers=auth(cadet),
    )
    assert [e["entity_id"] for e in r.json()["events"]] == [str(c), str(b)]

    r = await client.get(f"{API}/users/{cadet.id}/events", params={"limit": 1}, headers=auth(cadet))
    assert len(r.json()["events"]) == 1


@pytest.mark.asyncio
async def test_activity_feed_visibility(client: AsyncClient):
    cadet = await make_user()
    other = await make_user()
    officer = await make_user(UserRole.OFFICER)

    r = await client.get(f"{API}/users/{cadet.id}/events", headers=auth(other))
    assert r.status_code == 403
    r = await client.get(f"{API}/users/{cadet.id}/events", headers=auth(officer))
    assert r.status_code == 200
    assert r.json()["events"] == []
    r = await client.get(f"{API}/users/{uuid.uuid4()}/events", headers=auth(officer))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_locked_and_invalid_submissions(client: AsyncClient):
    cadet = await make_user()
    _, (a, b) = await make_campaign([mission("A"), mission("B")], edges=[(0, 1)])

    r = await submit(client, cadet, b, {"content": "too early"})
    assert r.status_code == 409
    assert r.json()["rejection"]["code"] == "NOT_AVAILABLE"

    r = await submit(client, cadet, a, {"content": ""})
    assert r.status_code == 422
    rejection = r.json()["rejection"]
    assert rejection["code"] == "INVALID_PAYLOAD"
    assert rejection["field"] == "content"


@pytest.mark.asyncio
async def test_start_then_submit(client: AsyncClient):
    cadet = await make_user()
    _, (a,) = await make_campaign([mission("A")])

    r = await client.post(f"{API}/missions/{a}/start", headers=auth(cadet))
    assert r.status_code == 200
    assert r.json()["status"] == "IN_PROGRESS"
    assert r.json()["started_at"] is not None

    r = await client.post(f"{API}/missions/{a}/start", headers=auth(cadet))
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_transition"

    r = await submit(client, cadet, a, {"content": "done"})
    assert r.status_code == 200
    assert r.json()["status"] == "COMPLETED"


@pytest.mark.asyncio
async def test_quiz_attempts(client: AsyncClient):
    cadet = await make_user()
    _, (quiz,) = await make_campaign([mission("Quiz", mission_type="QUIZ", payload=quiz_payload())])

    wrong = {"answers": [
        {"question_id": "q1", "answer_ids": ["a"]},
        {"question_id": "q2", "answer_ids": ["d"]},
    ]}
    r = await submit(client, cadet, quiz, wrong)
    assert r.status_code == 422
    body = r.json()
    assert body["rejection"]["code"] == "QUIZ_FAILED"
    assert body["rejection"]["score"] == 50
    assert body["record"]["attempts"] == 1

    right = {"answers": [
        {"question_id": "q1", "answer_ids": ["a"]},
        {"question_id": "q2", "answer_ids": ["c"]},
    ]}
    r = await submit(client, cadet, quiz, right)
    assert r.status_code == 422
    assert r.json()["rejection"]["attempts_remaining"] == 0
    assert r.json()["rejection"]["message"] == "No attempts left for this quiz"


@pytest.mark.asyncio
async def test_enroll_creates_rows_once(client: AsyncClient):
    cadet = await make_user()
    campaign_id, (a, b) = await make_campaign([mission("A"), mission("B")], edges=[(0, 1)])

    for _ in range(2):
        r = await client.post(f"{API}/campaigns/{campaign_id}/enroll", headers=auth(cadet))
        assert r.status_code == 200
        assert statuses_of(r.json()) == {str(a): "AVAILABLE", str(b): "LOCKED"}

    async with TEST_SESSION_MAKER() as session:
        count = await session.scalar(
            select(func.count()).select_from(UserMission).where(UserMission.user_id == cadet.id)
        )
    assert count == 2

    r = await submit(client, cadet, a, {"content": "done"})
    assert r.json()["unlocked_mission_ids"] == [str(b)]
    async with TEST_SESSION_MAKER() as session:
        row = await session.scalar(
            select(UserMission).where(UserMission.user_id == cadet.id, UserMission.mission_id == b)
        )
    assert row.status == "AVAILABLE"


# --- review ---


@pytest.mark.asyncio
async def test_review_reject_then_approve(client: AsyncClient):
    cadet = await make_user()
    officer = await make_user(UserRole.OFFICER)
    _, (essay, follow_up) = await make_campaign(
        [mission("Essay", confirmation_type="MANUAL_REVIEW", experience_reward=50), mission("Next")],
        edges=[(0, 1)],
    )

    r = await submit(client, cadet, essay, {"content": "first draft"})
    assert r.status_code == 200
    assert r.json()["status"] == "PENDING_REVIEW"
    assert r.json()["reward"] is None

    decision = {"user_id": str(cadet.id), "approved": False, "comment": "Needs sources"}
    r = await client.post(f"{API}/missions/{essay}/review", json=decision, headers=auth(cadet))
    assert r.status_code == 403

    r = await client.post(f"{API}/missions/{essay}/review", json=decision, headers=auth(officer))
    assert r.status_code == 200
    assert r.json()["status"] == "AVAILABLE"
    assert r.json()["record"]["submission"]["officer_comment"] == "Needs sources"

    r = await submit(client, cadet, essay, {"content": "second draft"})
    assert r.json()["status"] == "PENDING_REVIEW"

    decision = {"user_id": str(cadet.id), "approved": True}
    r = await client.post(f"{API}/missions/{essay}/review", json=decision, headers=auth(officer))
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "COMPLETED"
    assert body["reward"]["experience"] == 50
    assert body["unlocked_mission_ids"] == [str(follow_up)]

    r = await client.post(f"{API}/missions/{essay}/review", json=decision, headers=auth(officer))
    assert r.status_code == 409


# --- ranks ---


@pytest.mark.asyncio
async def test_rank_up_unlocks_gated_mission(client: AsyncClient):
    cadet = await make_user()
    other = await make_user()
    campaign_id, (basic, gated) = await make_campaign(
        [mission("Basic", experience_reward=100), mission("Gated", min_rank=2)],
        ranks=[(1, "Recruit", 0), (2, "Cadet", 100)],
    )

    r = await client.get(f"{API}/campaigns/{campaign_id}/progression", headers=auth(cadet))
    gated_view = next(m for m in r.json()["missions"] if m["mission_id"] == str(gated))
    assert gated_view["status"] == "LOCKED"
    assert gated_view["lock_reason"]["required_rank"] == 2

    r = await submit(client, cadet, basic, {"content": "done"})
    body = r.json()
    assert body["new_rank_level"] == 2
    assert body["unlocked_mission_ids"] == [str(gated)]

    r = await client.get(
        f"{API}/users/{cadet.id}/rank-progress",
        params={"campaign_id": str(campaign_id)},
        headers=auth(cadet),
    )
    assert r.status_code == 200
    assert r.json()["progress"]["current_level"] == 2
    assert r.json()["totals"]["total_experience"] == 100

    r = await client.get(f"{API}/users/{cadet.id}/rank-progress", headers=auth(other))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_leaderboard_orders_by_experience(client: AsyncClient):
    first = await make_user(name="First")
    second = await make_user(name="Second")
    campaign_id, (a, b) = await make_campaign(
        [mission("A", experience_reward=10), mission("B", experience_reward=30)],
    )
    await submit(client, first, a, {"content": "done"})
    await submit(client, second, a, {"content": "done"})
    await submit(client, second, b, {"content": "done"})

    r = await client.get(f"{API}/campaigns/{campaign_id}/leaderboard", headers=auth(first))
    assert r.status_code == 200
    entries = r.json()["entries"]
    assert [e["user_id"] for e in entries] == [str(second.id), str(first.id)]
    assert entries[0]["position"] == 1
    assert entries[0]["experience"] == 40
    assert entries[0]["completed_missions"] == 2

    r = await client.get(f"{API}/campaigns/{campaign_id}/leaderboard", params={"limit": 1}, headers=auth(first))
    assert len(r.json()["entries"]) == 1


@pytest.mark.asyncio
async def test_reconcile_detects_and_repairs_drift(client: AsyncClient):
    cadet = await make_user()
    officer = await make_user(UserRole.OFFICER)
    _, (a,) = await make_campaign([mission("A", experience_reward=10, mana_reward=5)])
    await submit(client, cadet, a, {"content": "done"})

    async with TEST_SESSION_MAKER() as session:
        await session.execute(update(User).where(User.id == cadet.id).values(experience=999))
        await session.commit()

    url = f"{API}/users/{cadet.id}/reconcile"
    r = await client.post(url, json={"repair": False}, headers=auth(cadet))
    assert r.status_code == 403

    r = await client.post(url, json={"repair": False}, headers=auth(officer))
    assert r.status_code == 200
    report = r.json()
    assert report["consistent"] is False
    assert report["experience_drift"] == 989
    assert report["repaired"] is False

    r = await client.post(url, json={"repair": True}, headers=auth(officer))
    assert r.json()["repaired"] is True

    r = await client.post(url, json={"repair": False}, headers=auth(officer))
    assert r.json()["consistent"] is True
    assert r.json()["stored_experience"] == 10


# --- campaign editing ---


@pytest.mark.asyncio
async def test_dependency_edits(client: AsyncClient):
    architect = await make_user(UserRole.ARCHITECT)
    cadet = await make_user()
    campaign_id, (a, b, c) = await make_campaign(
        [mission("A"), mission("B"), mission("C")],
        edges=[(0, 1)],
    )
    url = f"{API}/campaigns/{campaign_id}/dependencies"

    r = await client.post(url, json={"source_mission_id": str(b), "target_mission_id": str(a)}, headers=auth(architect))
    assert r.status_code == 409
    assert r.json()["code"] == "cycle_detected"

    r = await client.post(
        url, json={"source_mission_id": str(a), "target_mission_id": str(uuid.uuid4())}, headers=auth(architect),
    )
    assert r.status_code == 409
    assert r.json()["code"] == "dangling_edge"

    edge = {"source_mission_id": str(b), "target_mission_id": str(c)}
    r = await client.post(url, json=edge, headers=auth(architect))
    assert r.status_code == 201
    assert r.json()["created"] is True
    assert r.json()["total_dependencies"] == 2

    r = await client.post(url, json=edge, headers=auth(architect))
    assert r.status_code == 200
    assert r.json()["created"] is False

    r = await client.post(url, json=edge, headers=auth(cadet))
    assert r.status_code == 403

    r = await client.post(f"{API}/campaigns/{campaign_id}/validate", headers=auth(architect))
    assert r.status_code == 200
    assert r.json()["is_valid"] is True


@pytest.mark.asyncio
async def test_corrupt_campaign_is_reported_not_evaluated(client: AsyncClient):
    cadet = await make_user()
    architect = await make_user(UserRole.ARCHITECT)
    campaign_id, _ = await make_campaign([mission("A"), mission("B")], edges=[(0, 1), (1, 0)])

    r = await client.get(f"{API}/campaigns/{campaign_id}/progression", headers=auth(cadet))
    assert r.status_code == 500
    assert r.json()["detail"] == "Unable to load progression"

    r = await client.post(f"{API}/campaigns/{campaign_id}/validate", headers=auth(architect))
    assert r.status_code == 200
    report = r.json()
    assert report["is_valid"] is False
    assert "cycle" in [i["code"] for i in report["issues"]]


# --- test mode ---


@pytest.mark.asyncio
async def test_test_mode_session(client: AsyncClient):
    architect = await make_user(UserRole.ARCHITECT)
    cadet = await make_user()
    campaign_id, (a, b) = await make_campaign([mission("A"), mission("B")], edges=[(0, 1)])
    base = f"{API}/campaigns/{campaign_id}/test-mode"

    r = await client.get(base, headers=auth(architect))
    assert r.status_code == 404

    r = await client.post(base, json={}, headers=auth(cadet))
    assert r.status_code == 403

    r = await client.post(base, json={}, headers=auth(architect))
    assert r.status_code == 200
    state = r.json()["state"]
    assert state["initialized"] is True
    assert state["statuses"][str(a)] == "AVAILABLE"

    r = await client.post(f"{base}/missions/{b}/quick-complete", headers=auth(architect))
    assert r.status_code == 409
    assert r.json()["code"] == "mission_locked"

    r = await client.post(f"{base}/missions/{a}/quick-complete", headers=auth(architect))
    assert r.status_code == 200
    assert r.json()["state"]["statuses"][str(b)] == "AVAILABLE"

    r = await client.post(f"{base}/missions/{b}/submit", json={"payload": {"content": ""}}, headers=auth(architect))
    assert r.status_code == 200
    assert r.json()["result"]["rejection"]["code"] == "INVALID_PAYLOAD"

    r = await client.post(f"{base}/missions/{b}/submit", json={"payload": {"content": "ok"}}, headers=auth(architect))
    assert r.json()["result"]["status"] == "COMPLETED"
    assert r.json()["state"]["summary"]["completed"] == 2

    r = await client.get(base, headers=auth(architect))
    assert r.json()["state"]["totals"]["total_experience"] == 20

    # sandbox progress never reaches real records
    r = await client.get(f"{API}/campaigns/{campaign_id}/progression", headers=auth(architect))
    assert statuses_of(r.json()) == {str(a): "AVAILABLE", str(b): "LOCKED"}

    r = await client.delete(base, headers=auth(architect))
    assert r.status_code == 200
    assert r.json()["state"]["initialized"] is False

    r = await client.get(base, headers=auth(architect))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_test_mode_rank_override(client: AsyncClient):
    architect = await make_user(UserRole.ARCHITECT)
    campaign_id, (gated,) = await make_campaign([mission("Gated", min_rank=3)])

    r = await client.post(
        f"{API}/campaigns/{campaign_id}/test-mode", json={"rank_override": 3}, headers=auth(architect),
    )
    state = r.json()["state"]
    assert state["rank_level"] == 3
    assert state["statuses"][str(gated)] == "AVAILABLE"
