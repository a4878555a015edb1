from __future__ import annotations
import datetime
from typing import Dict, Iterable, List
from models import LoggedExercise, PersonalRecord, WorkoutSession
from algorithms import MathTools


class PersonalRecordService:
    """Detect personal records by comparing a session with prior history."""

    @staticmethod
    def best_past_one_rep_max(sessions: Iterable[WorkoutSession]) -> Dict[str, float]:
        """Return the best estimated 1RM per exercise over completed sets."""
        best: Dict[str, float] = {}
        for session in sessions:
            for logged in session.exercises:
                current = best.get(logged.exercise_id, 0.0)
                for s in logged.sets:
                    if not s.completed:
                        continue
                    current = max(
                        current, MathTools.estimated_one_rep_max(s.weight, s.reps)
                    )
                best[logged.exercise_id] = current
        return best

    @staticmethod
    def best_set(logged: LoggedExercise) -> tuple[float, int, float] | None:
        """Return ``(weight, reps, 1rm)`` of the strongest completed set.

        Ties keep the first occurrence.
        """
        best = None
        for s in logged.sets:
            if not s.completed:
                continue
            one_rm = MathTools.estimated_one_rep_max(s.weight, s.reps)
            if best is None or one_rm > best[2]:
                best = (s.weight, s.reps, one_rm)
        return best

    @classmethod
    def detect(
        cls, session: WorkoutSession, prior_sessions: Iterable[WorkoutSession]
    ) -> List[PersonalRecord]:
        """Return the records ``session`` sets against ``prior_sessions``.

        ``prior_sessions`` must not include ``session`` itself. A best set
        equal to the previous best is not a record.
        """
        best_past = cls.best_past_one_rep_max(
            s for s in prior_sessions if s.id != session.id
        )
        achieved_at = (
            session.completed_at
            or datetime.datetime.now(datetime.timezone.utc).isoformat()
        )
        records: List[PersonalRecord] = []
        seen: set[str] = set()
        for logged in session.exercises:
            if logged.exercise_id in seen:
                continue
            seen.add(logged.exercise_id)
            candidates = [
                e for e in session.exercises if e.exercise_id == logged.exercise_id
            ]
            best = None
            for candidate in candidates:
                found = cls.best_set(candidate)
                if found is not None and (best is None or found[2] > best[2]):
                    best = found
            if best is None:
                continue
            weight, reps, one_rm = best
            if one_rm > best_past.get(logged.exercise_id, 0.0) and weight > 0:
                records.append(
                    PersonalRecord(
                        exercise_id=logged.exercise_id,
                        weight=weight,
                        reps=reps,
                        achieved_at=achieved_at,
                        session_id=session.id,
                    )
                )
        return records

    @staticmethod
    def annotate(session: WorkoutSession, records: Iterable[PersonalRecord]) -> int:
        """Flag every set matching a record's weight and reps; return the count."""
        marked = 0
        for pr in records:
            for logged in session.exercises:
                if logged.exercise_id != pr.exercise_id:
                    continue
                for s in logged.sets:
                    if s.weight == pr.weight and s.reps == pr.reps:
                        s.is_personal_record = True
                        marked += 1
        return marked

    @staticmethod
    def merge(
        existing: Iterable[PersonalRecord], new: Iterable[PersonalRecord]
    ) -> List[PersonalRecord]:
        """Replace records per exercise, keeping a single entry for each."""
        merged: Dict[str, PersonalRecord] = {pr.exercise_id: pr for pr in existing}
        for pr in new:
            merged[pr.exercise_id] = pr
        return list(merged.values())
