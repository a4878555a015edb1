from __future__ import annotations
import datetime
from typing import Dict, Iterable, List, Optional
from db import ExerciseCatalogRepository
from models import MUSCLE_GROUPS, Exercise, WorkoutHistory, WorkoutSession
from algorithms import MathTools


class StatisticsService:
    """Compute workout statistics for analysis."""

    def __init__(
        self,
        catalog_repo: ExerciseCatalogRepository | None = None,
        exercises: Dict[str, Exercise] | None = None,
    ) -> None:
        self.catalog = catalog_repo
        self._exercises = exercises

    @staticmethod
    def _parse_timestamp(ts: str) -> datetime.datetime:
        """Return ``ts`` as timezone-aware datetime in UTC."""
        dt = datetime.datetime.fromisoformat(ts)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=datetime.timezone.utc)
        return dt

    def _exercise_lookup(self) -> Dict[str, Exercise]:
        if self._exercises is None:
            self._exercises = self.catalog.lookup() if self.catalog is not None else {}
        return self._exercises

    @staticmethod
    def total_volume(session: WorkoutSession) -> float:
        """Return the sum of weight times reps over completed sets."""
        total = 0.0
        for exercise in session.exercises:
            for s in exercise.sets:
                if not s.completed:
                    continue
                total += MathTools.set_volume(s.weight, s.reps)
        return total

    @staticmethod
    def estimated_one_rep_max(weight: float, reps: int) -> float:
        return MathTools.estimated_one_rep_max(weight, reps)

    @staticmethod
    def average_rpe(session: WorkoutSession) -> Optional[float]:
        """Mean RPE over completed sets that recorded one."""
        return MathTools.mean(
            s.rpe
            for exercise in session.exercises
            for s in exercise.sets
            if s.completed and s.rpe is not None
        )

    def exercise_progression(
        self,
        exercise_id: str,
        history: WorkoutHistory,
        max_points: int = 12,
    ) -> List[Dict[str, float]]:
        """Return per-session max weight, best 1RM and set count for an exercise.

        Only the most recent ``max_points`` completed sessions are used and
        the result is ordered oldest first.
        """
        relevant = [
            s
            for s in history.sessions
            if s.completed_at
            and any(e.exercise_id == exercise_id for e in s.exercises)
        ]
        relevant.sort(key=lambda s: self._parse_timestamp(s.completed_at))
        if max_points > 0:
            relevant = relevant[-max_points:]
        result = []
        for session in relevant:
            logged = next(e for e in session.exercises if e.exercise_id == exercise_id)
            done = [s for s in logged.sets if s.completed and s.weight > 0]
            max_weight = max((s.weight for s in done), default=0.0)
            best = max(
                (MathTools.estimated_one_rep_max(s.weight, s.reps) for s in done),
                default=0.0,
            )
            result.append(
                {
                    "date": session.completed_at,
                    "max_weight_kg": max_weight,
                    "estimated_1rm": round(best, 1),
                    "total_sets": len(done),
                }
            )
        return result

    def weekly_volume_by_muscle(
        self,
        history: WorkoutHistory,
        weeks: int = 4,
        now: datetime.datetime | None = None,
    ) -> Dict[str, List[float]]:
        """Return completed volume per primary muscle group in weekly buckets.

        Buckets run oldest to newest; bucket ``i`` covers the seven days
        starting at midnight ``(weeks - i) * 7`` days before ``now``.
        """
        now = now or datetime.datetime.now(datetime.timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=datetime.timezone.utc)
        lookup = self._exercise_lookup()
        result: Dict[str, List[float]] = {m: [] for m in MUSCLE_GROUPS}
        for w in range(weeks - 1, -1, -1):
            week_start = (now - datetime.timedelta(days=(w + 1) * 7)).replace(
                hour=0, minute=0, second=0, microsecond=0
            )
            week_end = week_start + datetime.timedelta(days=7)
            muscle_volume: Dict[str, float] = {}
            for session in history.sessions:
                started = self._parse_timestamp(session.started_at)
                if not (week_start <= started < week_end):
                    continue
                for logged in session.exercises:
                    definition = lookup.get(logged.exercise_id)
                    if definition is None:
                        continue
                    vol = sum(
                        MathTools.set_volume(s.weight, s.reps)
                        for s in logged.sets
                        if s.completed
                    )
                    for muscle in definition.primary_muscles:
                        muscle_volume[muscle] = muscle_volume.get(muscle, 0.0) + vol
            for muscle in result:
                result[muscle].append(muscle_volume.get(muscle, 0.0))
        return result

    @classmethod
    def workout_streak(
        cls, session_dates: Iterable[str], today: datetime.date | None = None
    ) -> int:
        """Return the number of consecutive training days ending today or yesterday."""
        unique = sorted(
            {cls._parse_timestamp(d).date() for d in session_dates}, reverse=True
        )
        if not unique:
            return 0
        cursor = today or datetime.date.today()
        streak = 0
        for day in unique:
            gap = (cursor - day).days
            if gap in (0, 1):
                streak += 1
                cursor = day
            else:
                break
        return streak

    @staticmethod
    def week_start(date: datetime.date | None = None) -> datetime.date:
        """Return the Monday of the week containing ``date``."""
        date = date or datetime.date.today()
        return date - datetime.timedelta(days=date.weekday())

    @classmethod
    def weekly_completion_count(
        cls, session_dates: Iterable[str], week_start: datetime.date
    ) -> int:
        """Return how many sessions started within the week beginning ``week_start``."""
        start = datetime.datetime.combine(
            week_start, datetime.time.min, tzinfo=datetime.timezone.utc
        )
        end = start + datetime.timedelta(days=7)
        return sum(1 for d in session_dates if start <= cls._parse_timestamp(d) < end)
