"""
Progression service - one request's worth of load -> engine -> persist.

The engine never touches the database. This service fetches a consistent snapshot,
hands it to the engine as plain records, and writes the results back. Reward
increments are only applied after the UserMission check-and-set succeeds, so a
completion is rewarded at most once even under concurrent submissions.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from mission_control.config import get_settings
from mission_control.engines.progression import submission as pipeline
from mission_control.engines.progression.aggregator import (
    RankThreshold,
    ReconciliationReport,
    RewardTotals,
    aggregate,
    compute_rank,
    rank_level,
    rank_progress,
    reconcile,
)
from mission_control.engines.progression.campaign_validator import CampaignHealthReport, validate_campaign
from mission_control.engines.progression.errors import (
    CorruptCampaignError,
    GraphError,
    InvalidTransitionError,
    SimulationNotInitializedError,
)
from mission_control.engines.progression.evaluator import (
    EvaluationReport,
    evaluate,
    evaluate_report,
    explain_lock,
    summarize,
)
from mission_control.engines.progression.graph import MissionGraph, build_graph
from mission_control.engines.progression.submission import (
    SubmissionErrorCode,
    SubmissionRejection,
    SubmissionResult,
)
from mission_control.engines.progression.test_mode import SimulationState, TestModeSimulator
from mission_control.engines.progression.types import (
    Mission,
    MissionStatus,
    RewardGrant,
    UserMissionRecord,
)
from mission_control.kernel.events.event_store import EventStore
from mission_control.kernel.models import EventType, ProgressionEvent, User, UserRole
from mission_control.kernel.persistence.progress_repository import ProgressRepository
from mission_control.logging_config import get_logger
from mission_control.orchestration.state_machine import Actor
from mission_control.schemas.progression import (
    LeaderboardEntry,
    MissionProgress,
    ProgressionResponse,
    RankProgressResponse,
)

logger = get_logger(__name__)


class ResourceNotFoundError(LookupError):
    """A campaign, mission or user named in the request does not exist."""

    def __init__(self, kind: str, resource_id: uuid.UUID):
        self.kind = kind
        self.resource_id = resource_id
        super().__init__(f"{kind.capitalize()} {resource_id} not found")


@dataclass
class CampaignSnapshot:
    """Everything the engine needs for one (user, campaign) evaluation."""

    graph: MissionGraph
    stored: Dict[uuid.UUID, UserMissionRecord]  # this campaign's rows, by mission
    history: List[UserMissionRecord]  # all of the user's rows, every campaign
    history_missions: List[Mission]
    thresholds: List[RankThreshold]
    totals: RewardTotals  # all campaigns; drives rank
    rank: int
    report: EvaluationReport

    @property
    def statuses(self) -> Dict[uuid.UUID, MissionStatus]:
        return self.report.statuses


@dataclass
class SubmissionOutcome:
    result: SubmissionResult
    unlocked: List[uuid.UUID] = field(default_factory=list)
    new_rank: Optional[int] = None


class ProgressionService:
    """Request-scoped orchestration around the progression engine."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ProgressRepository(session)
        self.events = EventStore(session)
        self.settings = get_settings()

    # --- loading ---

    async def _load_graph(self, campaign_id: uuid.UUID) -> MissionGraph:
        """Build the stored graph. Stored data that fails validation is corrupt."""
        missions = await self.repo.load_missions(campaign_id)
        dependencies = await self.repo.load_dependencies(campaign_id)
        try:
            return build_graph(missions, dependencies)
        except GraphError as exc:
            logger.error(
                "Stored campaign graph is invalid",
                extra={"campaign_id": str(campaign_id), "reason": str(exc)},
            )
            raise CorruptCampaignError(campaign_id, str(exc)) from exc

    async def _require_campaign(self, campaign_id: uuid.UUID) -> None:
        if await self.repo.get_campaign(campaign_id) is None:
            raise ResourceNotFoundError("campaign", campaign_id)

    async def _require_mission(self, mission_id: uuid.UUID) -> Mission:
        mission = await self.repo.get_mission(mission_id)
        if mission is None:
            raise ResourceNotFoundError("mission", mission_id)
        return mission

    async def _require_user(self, user_id: uuid.UUID) -> User:
        user = await self.repo.get_user(user_id)
        if user is None:
            raise ResourceNotFoundError("user", user_id)
        return user

    async def _history(self, user_id: uuid.UUID) -> Tuple[List[UserMissionRecord], List[Mission]]:
        history = await self.repo.load_user_missions(user_id)
        missions = await self.repo.load_missions_by_id(list({r.mission_id for r in history}))
        return history, missions

    def _rank(self, totals: RewardTotals, thresholds: List[RankThreshold]) -> int:
        return rank_level(totals, thresholds, base=self.settings.default_rank_level)

    async def _snapshot(self, user_id: uuid.UUID, campaign_id: uuid.UUID) -> CampaignSnapshot:
        graph = await self._load_graph(campaign_id)
        history, history_missions = await self._history(user_id)
        thresholds = await self.repo.load_ranks(campaign_id)
        totals = aggregate(history, history_missions)
        rank = self._rank(totals, thresholds)
        stored = {r.mission_id: r for r in history if r.mission_id in graph}
        report = evaluate_report(graph, stored.values(), rank)
        return CampaignSnapshot(
            graph=graph,
            stored=stored,
            history=history,
            history_missions=history_missions,
            thresholds=thresholds,
            totals=totals,
            rank=rank,
            report=report,
        )

    @staticmethod
    def _current_record(snapshot: CampaignSnapshot, user_id: uuid.UUID, mission_id: uuid.UUID) -> UserMissionRecord:
        """The stored record with the evaluator's status, or a fresh one."""
        status = snapshot.statuses[mission_id]
        stored = snapshot.stored.get(mission_id)
        if stored is None:
            return UserMissionRecord(mission_id=mission_id, user_id=user_id, status=status)
        if stored.status != status:
            return stored.model_copy(update={"status": status})
        return stored

    # --- reads ---

    async def get_progression(self, user: User, campaign_id: uuid.UUID) -> ProgressionResponse:
        await self._require_campaign(campaign_id)
        snapshot = await self._snapshot(user.id, campaign_id)
        statuses = snapshot.statuses

        missions = []
        for mission in sorted(snapshot.graph, key=lambda m: (m.position_y, m.position_x, str(m.id))):
            stored = snapshot.stored.get(mission.id)
            missions.append(MissionProgress(
                mission_id=mission.id,
                name=mission.name,
                mission_type=mission.mission_type,
                confirmation_type=mission.confirmation_type,
                status=statuses[mission.id],
                experience_reward=mission.experience_reward,
                mana_reward=mission.mana_reward,
                min_rank=mission.min_rank,
                position_x=mission.position_x,
                position_y=mission.position_y,
                attempts=stored.attempts if stored else 0,
                completed_at=stored.completed_at if stored else None,
                lock_reason=explain_lock(snapshot.graph, statuses, mission.id, snapshot.rank),
            ))

        return ProgressionResponse(
            campaign_id=campaign_id,
            user_id=user.id,
            rank_level=snapshot.rank,
            missions=missions,
            summary=summarize(statuses),
            totals=aggregate(snapshot.stored.values(), snapshot.graph),
            ignored_mission_ids=snapshot.report.ignored_mission_ids,
        )

    async def rank_progress(self, user_id: uuid.UUID, campaign_id: Optional[uuid.UUID] = None) -> RankProgressResponse:
        await self._require_user(user_id)
        history, missions = await self._history(user_id)
        totals = aggregate(history, missions)
        thresholds = await self.repo.load_ranks(campaign_id)
        names = await self.repo.load_competency_names(campaign_id) if campaign_id else {}
        return RankProgressResponse(
            user_id=user_id,
            campaign_id=campaign_id,
            totals=totals,
            progress=rank_progress(totals, thresholds, names, base=self.settings.default_rank_level),
        )

    async def leaderboard(self, campaign_id: uuid.UUID, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        await self._require_campaign(campaign_id)
        limit = min(limit or self.settings.leaderboard_default_limit, self.settings.leaderboard_max_limit)
        rows = await self.repo.leaderboard(campaign_id, limit)
        return [
            LeaderboardEntry(
                position=index + 1,
                user_id=user.id,
                display_name=user.display_name,
                experience=user.experience,
                mana=user.mana,
                rank_level=user.current_rank,
                completed_missions=completed,
            )
            for index, (user, completed) in enumerate(rows)
        ]

    async def user_events(
        self,
        user_id: uuid.UUID,
        campaign_id: Optional[uuid.UUID] = None,
        event_types: Optional[List[EventType]] = None,
        limit: int = 50,
    ) -> List[ProgressionEvent]:
        """A user's unlocks, completions, reviews and promotions, newest first."""
        await self._require_user(user_id)
        return await self.events.get_user_activity(
            user_id, campaign_id=campaign_id, event_types=event_types, limit=limit,
        )

    async def validate_campaign(self, campaign_id: uuid.UUID) -> CampaignHealthReport:
        await self._require_campaign(campaign_id)
        missions = await self.repo.load_missions(campaign_id)
        dependencies = await self.repo.load_dependencies(campaign_id)
        return validate_campaign(missions, dependencies)

    # --- cadet actions ---

    async def enroll(self, user: User, campaign_id: uuid.UUID) -> ProgressionResponse:
        """Create a row for every mission that has none, with the evaluator's status."""
        await self._require_campaign(campaign_id)
        snapshot = await self._snapshot(user.id, campaign_id)
        created = 0
        for mission_id, status in snapshot.statuses.items():
            if mission_id in snapshot.stored:
                continue
            record = UserMissionRecord(mission_id=mission_id, user_id=user.id, status=status)
            if await self.repo.save_user_mission(user.id, record, expected_status=None):
                created += 1
                if status == MissionStatus.AVAILABLE:
                    await self._log_mission_event(EventType.MISSION_UNLOCKED, user.id, campaign_id, mission_id)
        await self.session.commit()
        logger.info(
            "Cadet enrolled",
            extra={"user_id": str(user.id), "campaign_id": str(campaign_id), "created": created},
        )
        return await self.get_progression(user, campaign_id)

    async def start_mission(self, user: User, mission_id: uuid.UUID) -> UserMissionRecord:
        mission = await self._require_mission(mission_id)
        snapshot = await self._snapshot(user.id, mission.campaign_id)
        record = self._current_record(snapshot, user.id, mission_id)
        updated = pipeline.start(mission, record)

        stored = snapshot.stored.get(mission_id)
        saved = await self.repo.save_user_mission(
            user.id, updated,
            expected_status=stored.status if stored else None,
            expected_attempts=stored.attempts if stored else None,
        )
        if not saved:
            user_id = user.id  # rollback expires ORM instances
            await self.session.rollback()
            fresh = await self.repo.load_user_mission(user_id, mission_id)
            current = fresh.status if fresh else record.status
            raise InvalidTransitionError(current.value, MissionStatus.IN_PROGRESS.value, Actor.CADET.value)

        await self._log_mission_event(EventType.MISSION_STARTED, user.id, mission.campaign_id, mission_id)
        await self.session.commit()
        return updated

    async def submit(self, user: User, mission_id: uuid.UUID, payload: Any) -> SubmissionOutcome:
        """
        Run a cadet submission and persist the outcome.

        LOCKED missions are rejected by the pipeline because the record carries the
        evaluator's status. The UserMission write is a check-and-set on the stored
        status and attempt count; losing that race writes nothing.
        """
        mission = await self._require_mission(mission_id)
        snapshot = await self._snapshot(user.id, mission.campaign_id)
        record = self._current_record(snapshot, user.id, mission_id)

        result = pipeline.submit(mission, record, payload)
        if result.record == record:
            return SubmissionOutcome(result=result)

        stored = snapshot.stored.get(mission_id)
        saved = await self.repo.save_user_mission(
            user.id, result.record,
            expected_status=stored.status if stored else None,
            expected_attempts=stored.attempts if stored else None,
        )
        if not saved:
            user_id = user.id  # rollback expires ORM instances
            await self.session.rollback()
            return SubmissionOutcome(result=await self._lost_race(user_id, mission_id, record))

        outcome = SubmissionOutcome(result=result)
        rejection = result.rejection
        if rejection is not None and rejection.code == SubmissionErrorCode.QUIZ_FAILED:
            await self._log_mission_event(
                EventType.QUIZ_ATTEMPT_FAILED, user.id, mission.campaign_id, mission_id,
                {"score": rejection.score, "attempts": result.record.attempts,
                 "attempts_remaining": rejection.attempts_remaining},
            )
        elif result.status == MissionStatus.PENDING_REVIEW:
            await self._log_mission_event(EventType.SUBMISSION_PENDING, user.id, mission.campaign_id, mission_id)
        elif result.status == MissionStatus.COMPLETED:
            outcome.unlocked, outcome.new_rank = await self._on_completed(
                user, mission, result.record, result.reward, snapshot,
            )

        await self.session.commit()
        return outcome

    async def _lost_race(
        self,
        user_id: uuid.UUID,
        mission_id: uuid.UUID,
        record: UserMissionRecord,
    ) -> SubmissionResult:
        fresh = await self.repo.load_user_mission(user_id, mission_id) or record
        if fresh.status == MissionStatus.COMPLETED:
            code, message = SubmissionErrorCode.ALREADY_COMPLETED, "Mission already completed"
        else:
            code, message = SubmissionErrorCode.NOT_AVAILABLE, "Mission changed while submitting, try again"
        return SubmissionResult(
            ok=False,
            status=fresh.status,
            record=fresh,
            rejection=SubmissionRejection(code=code, message=message),
        )

    async def review(
        self,
        moderator: User,
        user_id: uuid.UUID,
        mission_id: uuid.UUID,
        approved: bool,
        comment: Optional[str] = None,
    ) -> SubmissionOutcome:
        """PENDING_REVIEW -> COMPLETED (rewarded once) or -> AVAILABLE."""
        mission = await self._require_mission(mission_id)
        user = await self._require_user(user_id)
        stored = await self.repo.load_user_mission(user_id, mission_id)
        if stored is None:
            raise InvalidTransitionError(
                MissionStatus.LOCKED.value,
                (MissionStatus.COMPLETED if approved else MissionStatus.AVAILABLE).value,
            )

        result = pipeline.review(mission, stored, approved, comment, actor=Actor(UserRole(moderator.role).value))
        # taken before the write so unlocks are measured against the pending state
        snapshot = await self._snapshot(user_id, mission.campaign_id) if approved else None
        saved = await self.repo.save_user_mission(
            user_id, result.record, expected_status=MissionStatus.PENDING_REVIEW,
        )
        if not saved:
            role = moderator.role  # rollback expires ORM instances
            await self.session.rollback()
            fresh = await self.repo.load_user_mission(user_id, mission_id)
            raise InvalidTransitionError((fresh or stored).status.value, result.status.value, role)

        outcome = SubmissionOutcome(result=result)
        if snapshot is not None:
            outcome.unlocked, outcome.new_rank = await self._on_completed(
                user, mission, result.record, result.reward, snapshot, reviewer_id=moderator.id,
            )
        else:
            await self._log_mission_event(
                EventType.SUBMISSION_REJECTED, user_id, mission.campaign_id, mission_id,
                {"reviewer_id": moderator.id, "comment": comment},
            )
        await self.session.commit()
        return outcome

    async def _on_completed(
        self,
        user: User,
        mission: Mission,
        record: UserMissionRecord,
        reward: Optional[RewardGrant],
        snapshot: CampaignSnapshot,
        reviewer_id: Optional[uuid.UUID] = None,
    ) -> Tuple[List[uuid.UUID], Optional[int]]:
        """
        Apply the reward, log unlocks and promotions. Runs only after the
        check-and-set that moved the row to COMPLETED succeeded.
        """
        reward = reward or RewardGrant.for_mission(mission)
        await self.repo.increment_user_totals(user.id, reward.experience, reward.mana)
        for competency_id, points in reward.competencies.items():
            await self.repo.increment_user_competency(user.id, competency_id, points)
        payload: Dict[str, Any] = {"experience": reward.experience, "mana": reward.mana}
        if reviewer_id:
            payload["reviewer_id"] = reviewer_id
        await self._log_mission_event(EventType.MISSION_COMPLETED, user.id, mission.campaign_id, mission.id, payload)

        # Re-derive from history with the new record in place
        history = [r for r in snapshot.history if r.mission_id != mission.id] + [record]
        history_missions = snapshot.history_missions
        if all(m.id != mission.id for m in history_missions):
            history_missions = history_missions + [mission]
        totals = aggregate(history, history_missions)
        new_rank_level = self._rank(totals, snapshot.thresholds)

        stored = dict(snapshot.stored)
        stored[mission.id] = record
        after = evaluate(snapshot.graph, stored.values(), new_rank_level)
        unlocked = sorted(
            (mid for mid, status in after.items()
             if status == MissionStatus.AVAILABLE and snapshot.statuses.get(mid) == MissionStatus.LOCKED),
            key=str,
        )
        for mid in unlocked:
            existing = snapshot.stored.get(mid)
            if existing is not None and existing.status == MissionStatus.LOCKED:
                await self.repo.save_user_mission(
                    user.id, existing.model_copy(update={"status": MissionStatus.AVAILABLE}),
                    expected_status=MissionStatus.LOCKED,
                )
            await self._log_mission_event(EventType.MISSION_UNLOCKED, user.id, mission.campaign_id, mid)

        promoted: Optional[int] = None
        if new_rank_level > user.current_rank:
            reached = compute_rank(totals, snapshot.thresholds)
            await self.repo.set_user_rank(user.id, new_rank_level)
            await self.events.log(
                event_type=EventType.RANK_UP,
                entity_type="user",
                entity_id=user.id,
                user_id=user.id,
                campaign_id=mission.campaign_id,
                payload={
                    "from_level": user.current_rank,
                    "to_level": new_rank_level,
                    "rank_name": reached.name if reached else None,
                },
            )
            promoted = new_rank_level

        logger.info(
            "Mission completed",
            extra={
                "user_id": str(user.id),
                "mission_id": str(mission.id),
                "experience": reward.experience,
                "unlocked": len(unlocked),
            },
        )
        return unlocked, promoted

    async def _log_mission_event(
        self,
        event_type: EventType,
        user_id: uuid.UUID,
        campaign_id: Optional[uuid.UUID],
        mission_id: uuid.UUID,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self.events.log(
            event_type=event_type,
            entity_type="mission",
            entity_id=mission_id,
            user_id=user_id,
            campaign_id=campaign_id,
            payload=payload,
        )

    # --- accounting ---

    async def reconcile(self, user_id: uuid.UUID, repair: bool = False) -> Tuple[ReconciliationReport, bool]:
        """
        Compare running counters with totals derived from history.

        With ``repair`` the counters are overwritten when they drifted. Returns the
        report and whether a repair was written.
        """
        user = await self._require_user(user_id)
        await self.session.refresh(user)
        history, missions = await self._history(user_id)
        stored = await self.repo.load_stored_totals(user)
        report = reconcile(stored, history, missions)

        if not repair or report.is_consistent:
            return report, False

        expected = report.expected
        await self.repo.overwrite_user_totals(
            user_id, expected.total_experience, expected.total_mana, expected.competency_totals,
        )
        await self.events.log(
            event_type=EventType.TOTALS_REPAIRED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            payload={
                "experience_drift": report.experience_drift,
                "mana_drift": report.mana_drift,
                "competency_drift": report.competency_drift,
            },
        )
        await self.session.commit()
        logger.warning("Reward counters repaired", extra={"user_id": str(user_id)})
        return report, True

    # --- architect actions ---

    async def add_dependency(
        self,
        architect: User,
        campaign_id: uuid.UUID,
        source_id: uuid.UUID,
        target_id: uuid.UUID,
    ) -> Tuple[bool, int]:
        """
        Add edge source -> target after validating the resulting graph.

        Raises GraphError (cycle, dangling edge) without writing anything. Returns
        whether an edge was created and the campaign's edge count afterwards.
        """
        await self._require_campaign(campaign_id)
        graph = await self._load_graph(campaign_id)
        if target_id in graph and source_id in graph.prerequisites_of(target_id):
            return False, len(graph.dependencies)

        updated = graph.with_dependency(source_id, target_id)
        await self.repo.add_dependency(source_id, target_id)
        await self.events.log(
            event_type=EventType.DEPENDENCY_ADDED,
            entity_type="campaign",
            entity_id=campaign_id,
            user_id=architect.id,
            campaign_id=campaign_id,
            payload={"source_mission_id": source_id, "target_mission_id": target_id},
        )
        await self.session.commit()
        return True, len(updated.dependencies)

    # --- test mode ---

    async def _simulator(self, architect: User, campaign_id: uuid.UUID) -> TestModeSimulator:
        await self._require_campaign(campaign_id)
        graph = await self._load_graph(campaign_id)
        thresholds = await self.repo.load_ranks(campaign_id)
        simulator = TestModeSimulator(graph, campaign_id, thresholds)
        row = await self.repo.load_test_session(architect.id, campaign_id)
        if row is not None:
            simulator.restore(SimulationState.model_validate(row.snapshot))
        return simulator

    async def _save_simulation(self, architect: User, campaign_id: uuid.UUID, state: SimulationState) -> None:
        await self.repo.save_test_session(architect.id, campaign_id, state.model_dump(mode="json"))
        await self.session.commit()

    async def start_test_mode(
        self,
        architect: User,
        campaign_id: uuid.UUID,
        rank_override: Optional[int] = None,
    ) -> SimulationState:
        simulator = await self._simulator(architect, campaign_id)
        simulator.rank_override = rank_override
        state = simulator.initialize()
        await self._save_simulation(architect, campaign_id, state)
        return state

    async def get_test_mode(self, architect: User, campaign_id: uuid.UUID) -> SimulationState:
        simulator = await self._simulator(architect, campaign_id)
        state = simulator.state()
        if not state.initialized:
            raise SimulationNotInitializedError()
        return state

    async def quick_complete(self, architect: User, campaign_id: uuid.UUID, mission_id: uuid.UUID) -> SimulationState:
        simulator = await self._simulator(architect, campaign_id)
        state = simulator.quick_complete(mission_id)
        await self._save_simulation(architect, campaign_id, state)
        return state

    async def test_mode_submit(
        self,
        architect: User,
        campaign_id: uuid.UUID,
        mission_id: uuid.UUID,
        payload: Any,
    ) -> Tuple[SubmissionResult, SimulationState]:
        simulator = await self._simulator(architect, campaign_id)
        result, state = simulator.submit(mission_id, payload)
        await self._save_simulation(architect, campaign_id, state)
        return result, state

    async def reset_test_mode(self, architect: User, campaign_id: uuid.UUID) -> SimulationState:
        await self._require_campaign(campaign_id)
        await self.repo.delete_test_session(architect.id, campaign_id)
        await self.session.commit()
        return SimulationState(campaign_id=campaign_id)
