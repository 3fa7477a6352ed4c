"""
Progress repository - the persistence collaborator for the progression engine.

Converts between ORM rows and engine records. Every write here is part of the
caller's transaction; ProgressionService commits.
"""

import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mission_control.engines.progression.aggregator import RankThreshold, StoredTotals
from mission_control.engines.progression.types import (
    CompetencyGrant,
    Mission,
    MissionDependency,
    MissionStatus,
    UserMissionRecord,
)
from mission_control.kernel.models import (
    Campaign,
    Competency,
    Rank,
    TestModeSession,
    User,
    UserCompetency,
    UserMission,
    UserRole,
)
from mission_control.kernel.models import Mission as MissionRow
from mission_control.kernel.models import MissionDependency as DependencyRow
from mission_control.logging_config import get_logger

logger = get_logger(__name__)


def mission_from_row(row: MissionRow) -> Mission:
    """ORM row -> engine Mission. A broken payload degrades to the type default."""
    return Mission(
        id=row.id,
        campaign_id=row.campaign_id,
        name=row.name,
        description=row.description,
        mission_type=row.mission_type,
        payload=row.payload,
        confirmation_type=row.confirmation_type,
        experience_reward=row.experience_reward,
        mana_reward=row.mana_reward,
        min_rank=row.min_rank,
        position_x=row.position_x,
        position_y=row.position_y,
        competencies=[
            CompetencyGrant(competency_id=c.competency_id, points=c.points)
            for c in row.competencies
            if c.points > 0
        ],
    )


def record_from_row(row: UserMission) -> UserMissionRecord:
    return UserMissionRecord(
        mission_id=row.mission_id,
        user_id=row.user_id,
        status=MissionStatus(row.status),
        attempts=row.attempts,
        started_at=row.started_at,
        completed_at=row.completed_at,
        submission=row.submission,
    )


def threshold_from_row(row: Rank) -> RankThreshold:
    return RankThreshold(
        level=row.level,
        name=row.name,
        title=row.title,
        min_experience=row.min_experience,
        min_missions=row.min_missions,
        required_competencies={uuid.UUID(k): v for k, v in (row.required_competencies or {}).items()},
        rewards=row.rewards or {},
    )


class ProgressRepository:
    """Loads engine snapshots and applies engine results."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # --- reads ---

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_campaign(self, campaign_id: uuid.UUID) -> Optional[Campaign]:
        return await self.session.get(Campaign, campaign_id)

    async def get_mission(self, mission_id: uuid.UUID) -> Optional[Mission]:
        row = await self.session.get(MissionRow, mission_id)
        return mission_from_row(row) if row else None

    async def load_missions(self, campaign_id: uuid.UUID) -> List[Mission]:
        result = await self.session.execute(
            select(MissionRow).where(MissionRow.campaign_id == campaign_id)
        )
        return [mission_from_row(row) for row in result.scalars().all()]

    async def load_dependencies(self, campaign_id: uuid.UUID) -> List[MissionDependency]:
        """Edges touching the campaign at either end, so cross-campaign edges surface as dangling."""
        campaign_missions = select(MissionRow.id).where(MissionRow.campaign_id == campaign_id)
        result = await self.session.execute(
            select(DependencyRow).where(
                or_(
                    DependencyRow.source_mission_id.in_(campaign_missions),
                    DependencyRow.target_mission_id.in_(campaign_missions),
                )
            )
        )
        return [
            MissionDependency(source_mission_id=d.source_mission_id, target_mission_id=d.target_mission_id)
            for d in result.scalars().all()
        ]

    async def load_user_missions(
        self,
        user_id: uuid.UUID,
        campaign_id: Optional[uuid.UUID] = None,
    ) -> List[UserMissionRecord]:
        """A user's records, optionally limited to one campaign."""
        query = select(UserMission).where(UserMission.user_id == user_id)
        if campaign_id is not None:
            query = query.join(MissionRow, MissionRow.id == UserMission.mission_id).where(
                MissionRow.campaign_id == campaign_id
            )
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return [record_from_row(row) for row in result.scalars().all()]

    async def load_user_mission(self, user_id: uuid.UUID, mission_id: uuid.UUID) -> Optional[UserMissionRecord]:
        result = await self.session.execute(
            select(UserMission).where(
                and_(UserMission.user_id == user_id, UserMission.mission_id == mission_id)
            ).execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return record_from_row(row) if row else None

    async def load_missions_by_id(self, mission_ids: List[uuid.UUID]) -> List[Mission]:
        if not mission_ids:
            return []
        result = await self.session.execute(select(MissionRow).where(MissionRow.id.in_(mission_ids)))
        return [mission_from_row(row) for row in result.scalars().all()]

    async def load_ranks(self, campaign_id: Optional[uuid.UUID] = None) -> List[RankThreshold]:
        """Campaign ranks, falling back to global ranks (campaign_id NULL) when it has none."""
        rows: List[Rank] = []
        if campaign_id is not None:
            result = await self.session.execute(
                select(Rank).where(Rank.campaign_id == campaign_id).order_by(Rank.level)
            )
            rows = list(result.scalars().all())
        if not rows:
            result = await self.session.execute(
                select(Rank).where(Rank.campaign_id.is_(None)).order_by(Rank.level)
            )
            rows = list(result.scalars().all())
        return [threshold_from_row(r) for r in rows]

    async def load_competency_names(self, campaign_id: uuid.UUID) -> Dict[uuid.UUID, str]:
        result = await self.session.execute(
            select(Competency.id, Competency.name).where(Competency.campaign_id == campaign_id)
        )
        return {cid: name for cid, name in result.all()}

    async def load_stored_totals(self, user: User) -> StoredTotals:
        result = await self.session.execute(
            select(UserCompetency.competency_id, UserCompetency.points).where(UserCompetency.user_id == user.id)
        )
        return StoredTotals(
            experience=user.experience,
            mana=user.mana,
            competency_totals={cid: points for cid, points in result.all() if points},
        )

    # --- writes ---

    async def save_user_mission(
        self,
        user_id: uuid.UUID,
        record: UserMissionRecord,
        expected_status: Optional[MissionStatus],
        expected_attempts: Optional[int] = None,
    ) -> bool:
        """
        Check-and-set write of one UserMission row.

        ``expected_status`` is the stored status the caller read (None when no row
        existed). The row is only written if it still has that status (and attempt
        count, when given). Returns False when another writer got there first.
        """
        values = {
            "status": MissionStatus(record.status).value,
            "attempts": record.attempts,
            "started_at": record.started_at,
            "completed_at": record.completed_at,
            "submission": record.submission,
        }

        if expected_status is None:
            try:
                async with self.session.begin_nested():
                    self.session.add(UserMission(user_id=user_id, mission_id=record.mission_id, **values))
            except IntegrityError:
                logger.info(
                    "UserMission insert lost a race",
                    extra={"user_id": str(user_id), "mission_id": str(record.mission_id)},
                )
                return False
            return True

        conditions = [
            UserMission.user_id == user_id,
            UserMission.mission_id == record.mission_id,
            UserMission.status == MissionStatus(expected_status).value,
        ]
        if expected_attempts is not None:
            conditions.append(UserMission.attempts == expected_attempts)

        result = await self.session.execute(
            update(UserMission)
            .where(and_(*conditions))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(
                "UserMission check-and-set rejected",
                extra={
                    "user_id": str(user_id),
                    "mission_id": str(record.mission_id),
                    "expected_status": MissionStatus(expected_status).value,
                },
            )
            return False
        return True

    async def increment_user_competency(self, user_id: uuid.UUID, competency_id: uuid.UUID, points: int) -> None:
        """Upsert: add ``points`` to the user's competency total."""
        bump = (
            update(UserCompetency)
            .where(and_(UserCompetency.user_id == user_id, UserCompetency.competency_id == competency_id))
            .values(points=UserCompetency.points + points)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(bump)
        if result.rowcount:
            return
        try:
            async with self.session.begin_nested():
                self.session.add(UserCompetency(user_id=user_id, competency_id=competency_id, points=points))
        except IntegrityError:
            # created concurrently; the row exists now
            await self.session.execute(bump)

    async def increment_user_totals(self, user_id: uuid.UUID, experience: int, mana: int) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(experience=User.experience + experience, mana=User.mana + mana)
            .execution_options(synchronize_session=False)
        )

    async def set_user_rank(self, user_id: uuid.UUID, level: int) -> None:
        await self.session.execute(
            update(User).where(User.id == user_id).values(current_rank=level)
            .execution_options(synchronize_session=False)
        )

    async def overwrite_user_totals(
        self,
        user_id: uuid.UUID,
        experience: int,
        mana: int,
        competency_totals: Dict[uuid.UUID, int],
    ) -> None:
        """Repair: replace running counters with values derived from history."""
        await self.session.execute(
            update(User).where(User.id == user_id).values(experience=experience, mana=mana)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(delete(UserCompetency).where(UserCompetency.user_id == user_id))
        for competency_id, points in competency_totals.items():
            self.session.add(UserCompetency(user_id=user_id, competency_id=competency_id, points=points))

    async def add_dependency(self, source_id: uuid.UUID, target_id: uuid.UUID) -> DependencyRow:
        row = DependencyRow(source_mission_id=source_id, target_mission_id=target_id)
        self.session.add(row)
        await self.session.flush()
        return row

    async def leaderboard(self, campaign_id: uuid.UUID, limit: int) -> List[Tuple[User, int]]:
        """Cadets with progress in the campaign, by experience, with completed-mission counts."""
        completed = func.sum(case((UserMission.status == MissionStatus.COMPLETED.value, 1), else_=0))
        result = await self.session.execute(
            select(User, completed.label("completed"))
            .join(UserMission, UserMission.user_id == User.id)
            .join(MissionRow, MissionRow.id == UserMission.mission_id)
            .where(and_(MissionRow.campaign_id == campaign_id, User.role == UserRole.CADET.value))
            .group_by(User.id)
            .order_by(User.experience.desc(), completed.desc(), User.display_name)
            .limit(limit)
        )
        return [(user, int(count or 0)) for user, count in result.all()]

    # --- test mode ---

    async def load_test_session(self, architect_id: uuid.UUID, campaign_id: uuid.UUID) -> Optional[TestModeSession]:
        result = await self.session.execute(
            select(TestModeSession).where(
                and_(TestModeSession.architect_id == architect_id, TestModeSession.campaign_id == campaign_id)
            )
        )
        return result.scalar_one_or_none()

    async def save_test_session(
        self,
        architect_id: uuid.UUID,
        campaign_id: uuid.UUID,
        snapshot: Dict[str, Any],
    ) -> TestModeSession:
        row = await self.load_test_session(architect_id, campaign_id)
        if row is None:
            row = TestModeSession(architect_id=architect_id, campaign_id=campaign_id, snapshot=snapshot)
            self.session.add(row)
        else:
            row.snapshot = snapshot
        await self.session.flush()
        return row

    async def delete_test_session(self, architect_id: uuid.UUID, campaign_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            delete(TestModeSession).where(
                and_(TestModeSession.architect_id == architect_id, TestModeSession.campaign_id == campaign_id)
            )
        )
        return bool(result.rowcount)
