import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import HistoryRepository
from models import LoggedExercise, LoggedSet, PersonalRecord, WorkoutSession


def make_record(exercise_id, weight, session_id):
    return PersonalRecord(
        exercise_id=exercise_id,
        weight=weight,
        reps=5,
        achieved_at="2024-03-15T11:00:00+00:00",
        session_id=session_id,
    )


class HistoryRepositoryTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_history.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.repo = HistoryRepository(self.db_path)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_upsert_replaces_existing_record(self) -> None:
        self.repo.upsert_personal_records(
            "user-1",
            [make_record("deadlift", 140.0, "s1"), make_record("plank", 10.0, "s1")],
        )
        self.repo.upsert_personal_records("user-1", [make_record("deadlift", 150.0, "s2")])
        records = {r.exercise_id: r for r in self.repo.fetch_personal_records("user-1")}
        self.assertEqual(len(records), 2)
        self.assertEqual(records["deadlift"].weight, 150.0)
        self.assertEqual(records["deadlift"].session_id, "s2")
        self.assertEqual(records["plank"].weight, 10.0)
        self.assertEqual(self.repo.fetch_personal_records("user-2"), [])

    def test_append_keeps_order_and_ignores_replay(self) -> None:
        for sid in ("b", "a"):
            session = WorkoutSession(
                id=sid,
                program_id="quick",
                training_day_index=0,
                started_at="2024-03-15T10:00:00+00:00",
                exercises=[
                    LoggedExercise(
                        exercise_id="plank",
                        sets=[LoggedSet(set_number=1, reps=60, completed=True)],
                    )
                ],
            )
            self.repo.append_session("user-1", session)
        self.repo.append_session("user-1", session)
        self.assertEqual([s.id for s in self.repo.fetch_sessions("user-1")], ["b", "a"])
        self.assertEqual(self.repo.fetch_session("a").exercises[0].sets[0].reps, 60)
        self.assertIsNone(self.repo.fetch_session("missing"))


if __name__ == "__main__":
    unittest.main()
