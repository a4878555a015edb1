from __future__ import annotations
import uuid
import datetime
import logging
from typing import Callable, Iterable
from pydantic import ValidationError
from db import ActiveSessionRepository, HistoryRepository
from models import (
    QUICK_PROGRAM_ID,
    CompletionResult,
    LoggedExercise,
    LoggedSet,
    Program,
    WorkoutSession,
)
from program_service import ProgramCursorService
from record_service import PersonalRecordService
from stats_service import StatisticsService
from sync_service import SyncService

logger = logging.getLogger(__name__)

EDITABLE_SET_FIELDS = {"weight", "reps", "completed", "rpe"}


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class SessionService:
    """Drive a workout from start to completion.

    There is at most one active session per user. Invalid edits (unknown
    indices, missing session, removing the last set) are declined silently
    and return ``None`` or ``False``.
    """

    def __init__(
        self,
        history_repo: HistoryRepository,
        active_repo: ActiveSessionRepository,
        cursor_service: ProgramCursorService,
        user_id: str,
        sync: SyncService | None = None,
        *,
        adhoc_default_sets: int = 3,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.history = history_repo
        self.active = active_repo
        self.cursors = cursor_service
        self.user_id = user_id
        self.sync = sync
        self.adhoc_default_sets = adhoc_default_sets
        self.clock = clock or _utcnow
        self._session: WorkoutSession | None = self.active.load(user_id)

    @property
    def session(self) -> WorkoutSession | None:
        return self._session

    def resume(self) -> WorkoutSession | None:
        """Reload the persisted draft, if any."""
        self._session = self.active.load(self.user_id)
        return self._session

    @staticmethod
    def _empty_sets(count: int) -> list[LoggedSet]:
        return [LoggedSet(set_number=i + 1) for i in range(count)]

    def _begin(self, session: WorkoutSession) -> WorkoutSession:
        if self._session is not None:
            logger.info("Replacing unfinished session %s", self._session.id)
        self._store(session)
        logger.info("Started session %s (%s)", session.id, session.program_id)
        return session

    def _store(self, session: WorkoutSession) -> None:
        session.total_volume_kg = StatisticsService.total_volume(session)
        self.active.save(self.user_id, session)
        self._session = session

    def _draft(self) -> WorkoutSession | None:
        if self._session is None:
            logger.debug("No active session")
            return None
        return self._session.model_copy(deep=True)

    @staticmethod
    def _valid_index(items: list, idx: int) -> bool:
        return 0 <= idx < len(items)

    def start(self, program: Program, day_index: int) -> WorkoutSession | None:
        if not self._valid_index(program.schedule, day_index):
            logger.debug("Program %s has no day %s", program.id, day_index)
            return None
        day = program.schedule[day_index]
        session = WorkoutSession(
            id=str(uuid.uuid4()),
            program_id=program.id,
            training_day_index=day_index,
            started_at=self.clock().isoformat(),
            exercises=[
                LoggedExercise(
                    exercise_id=pe.exercise_id,
                    sets=self._empty_sets(pe.scheme.sets),
                )
                for pe in day.exercises
            ],
        )
        return self._begin(session)

    def start_ad_hoc(self, exercise_ids: Iterable[str]) -> WorkoutSession | None:
        exercise_ids = list(exercise_ids)
        if not exercise_ids:
            return None
        session = WorkoutSession(
            id=str(uuid.uuid4()),
            program_id=QUICK_PROGRAM_ID,
            training_day_index=0,
            started_at=self.clock().isoformat(),
            exercises=[
                LoggedExercise(
                    exercise_id=ex_id, sets=self._empty_sets(self.adhoc_default_sets)
                )
                for ex_id in exercise_ids
            ],
        )
        return self._begin(session)

    def update_set(
        self, exercise_index: int, set_index: int, fields: dict
    ) -> WorkoutSession | None:
        session = self._draft()
        if session is None or not self._valid_index(session.exercises, exercise_index):
            return None
        sets = session.exercises[exercise_index].sets
        if not self._valid_index(sets, set_index):
            return None
        changes = {k: v for k, v in fields.items() if k in EDITABLE_SET_FIELDS}
        try:
            updated = LoggedSet.model_validate({**sets[set_index].model_dump(), **changes})
        except ValidationError as e:
            logger.debug("Rejected set edit: %s", e)
            return None
        if "completed" in changes and updated.completed:
            updated.timestamp = self.clock().isoformat()
        sets[set_index] = updated
        self._store(session)
        return session

    def add_set(self, exercise_index: int) -> WorkoutSession | None:
        session = self._draft()
        if session is None or not self._valid_index(session.exercises, exercise_index):
            return None
        sets = session.exercises[exercise_index].sets
        sets.append(LoggedSet(set_number=len(sets) + 1))
        self._store(session)
        return session

    def remove_set(self, exercise_index: int, set_index: int) -> WorkoutSession | None:
        session = self._draft()
        if session is None or not self._valid_index(session.exercises, exercise_index):
            return None
        sets = session.exercises[exercise_index].sets
        if len(sets) <= 1 or not self._valid_index(sets, set_index):
            logger.debug("Declined removing set %s of exercise %s", set_index, exercise_index)
            return None
        del sets[set_index]
        for i, s in enumerate(sets):
            s.set_number = i + 1
        self._store(session)
        return session

    def add_exercise(self, exercise_id: str) -> WorkoutSession | None:
        session = self._draft()
        if session is None:
            return None
        session.exercises.append(
            LoggedExercise(exercise_id=exercise_id, sets=self._empty_sets(1))
        )
        self._store(session)
        return session

    def complete(self, program: Program | None = None) -> CompletionResult | None:
        """Finalize the active session and commit it to local history.

        Remote follow-ups are queued afterwards; their failure never undoes
        the local completion.
        """
        session = self._draft()
        if session is None:
            return None
        now = self.clock()
        started = datetime.datetime.fromisoformat(session.started_at)
        if started.tzinfo is None:
            started = started.replace(tzinfo=datetime.timezone.utc)
        session.completed_at = now.isoformat()
        session.duration_seconds = max(0, round((now - started).total_seconds()))
        session.total_volume_kg = StatisticsService.total_volume(session)

        prior = self.history.fetch_sessions(self.user_id)
        prs = PersonalRecordService.detect(session, prior)
        PersonalRecordService.annotate(session, prs)
        self.history.record_completion(self.user_id, session, prs)

        if (
            not session.is_ad_hoc
            and program is not None
            and program.id == session.program_id
        ):
            self.cursors.advance(program)
        self.active.clear(self.user_id)
        self._session = None
        logger.info(
            "Completed session %s: %.1f kg, %d PRs",
            session.id,
            session.total_volume_kg,
            len(prs),
        )

        if self.sync is not None:
            try:
                self.sync.enqueue_completion(self.user_id, session, prs)
                self.sync.dispatch()
            except Exception as e:
                logger.warning("Could not schedule sync for %s: %s", session.id, e)
        return CompletionResult(session=session, prs=prs)

    def discard(self) -> bool:
        if self._session is None:
            return False
        logger.info("Discarded session %s", self._session.id)
        self.active.clear(self.user_id)
        self._session = None
        return True
