import uuid
import datetime
import logging
from typing import Iterable
from db import MissionRepository
from models import (
    BlockMission,
    MissionHistoryEntry,
    MissionProgress,
    MissionTarget,
    MissionUpdate,
    PersonalRecord,
    Program,
    WorkoutSession,
)
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


class MissionService:
    """Accrue block mission progress from completed sessions."""

    def __init__(self, repo: MissionRepository) -> None:
        self.repo = repo

    @staticmethod
    def mission_delta(
        mission: BlockMission,
        session: WorkoutSession,
        prs: list[PersonalRecord],
    ) -> float | None:
        """Return the progress ``session`` earns for ``mission`` or ``None``."""
        if mission.type == "pr":
            return float(len(prs)) if prs else None
        if mission.type == "consistency":
            return 1.0
        if mission.type == "volume":
            volume = StatisticsService.total_volume(session)
            return volume if volume > 0 else None
        if mission.type == "rpe":
            avg = StatisticsService.average_rpe(session)
            if avg is None:
                return None
            # target is a ceiling on average exertion
            return 1.0 if avg <= mission.target.value else None
        return None

    @classmethod
    def compute_updates(
        cls,
        session: WorkoutSession,
        prs: Iterable[PersonalRecord],
        missions: Iterable[BlockMission],
        today: str | None = None,
    ) -> list[MissionUpdate]:
        prs = list(prs)
        today = today or datetime.date.today().isoformat()
        updates: list[MissionUpdate] = []
        for mission in missions:
            delta = cls.mission_delta(mission, session, prs)
            if delta is None:
                continue
            current = mission.progress.current + delta
            progress = MissionProgress(
                current=current,
                history=list(mission.progress.history)
                + [MissionHistoryEntry(date=today, value=delta)],
            )
            if mission.status == "completed" or current >= mission.target.value:
                status = "completed"
            else:
                status = "active"
            updates.append(
                MissionUpdate(
                    mission_id=mission.id,
                    delta=delta,
                    progress=progress,
                    status=status,
                )
            )
        return updates

    def apply_session(
        self,
        user_id: str,
        session: WorkoutSession,
        prs: Iterable[PersonalRecord],
        today: str | None = None,
    ) -> list[MissionUpdate]:
        """Store progress for every active mission of the session's program.

        A session already applied to a mission is skipped, so replays are safe.
        """
        missions = [
            m
            for m in self.repo.list_active_missions(user_id, session.program_id)
            if not self.repo.was_applied(m.id, session.id)
        ]
        applied: list[MissionUpdate] = []
        for update in self.compute_updates(session, prs, missions, today):
            if self.repo.apply_once(
                update.mission_id, session.id, update.progress, update.status
            ):
                applied.append(update)
                if update.status == "completed":
                    logger.info("Mission %s completed", update.mission_id)
        return applied

    def create_mission(
        self,
        user_id: str,
        program_id: str,
        mission_type: str,
        target_value: float,
        description: str = "",
        metric: str = "",
        unit: str = "",
    ) -> BlockMission:
        if target_value <= 0:
            raise ValueError("target must be positive")
        mission = BlockMission(
            id=str(uuid.uuid4()),
            user_id=user_id,
            program_id=program_id,
            type=mission_type,
            description=description,
            target=MissionTarget(metric=metric, value=target_value, unit=unit),
        )
        self.repo.add(mission)
        return mission

    def create_default_missions(self, user_id: str, program: Program) -> list[BlockMission]:
        """Create the standard consistency, PR and volume missions for a program."""
        sessions = program.days_per_week * 4
        return [
            self.create_mission(
                user_id,
                program.id,
                "consistency",
                sessions,
                f"Complete {sessions} sessions in the next 4 weeks",
                "sessions",
                "sessions",
            ),
            self.create_mission(
                user_id,
                program.id,
                "pr",
                1,
                "Set a new personal record on your primary compound lift",
                "new PR",
                "PR",
            ),
            self.create_mission(
                user_id,
                program.id,
                "volume",
                10000,
                "Hit a weekly volume of 10,000 kg",
                "weekly volume",
                "kg",
            ),
        ]

    def missions_for_user(self, user_id: str) -> list[BlockMission]:
        return self.repo.fetch_for_user(user_id)
