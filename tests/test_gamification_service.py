import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import MissionRepository
from gamification_service import MissionService
from models import (
    BlockMission,
    LoggedExercise,
    LoggedSet,
    MissionProgress,
    MissionTarget,
    PersonalRecord,
    WorkoutSession,
)
from program_service import ProgramCatalog


def make_session(sid, sets, rpe=None):
    return WorkoutSession(
        id=sid,
        program_id="beginner-full-body",
        training_day_index=0,
        started_at="2024-03-15T10:00:00+00:00",
        completed_at="2024-03-15T11:00:00+00:00",
        exercises=[
            LoggedExercise(
                exercise_id="barbell-back-squat",
                sets=[
                    LoggedSet(
                        set_number=i + 1, weight=w, reps=r, completed=True, rpe=rpe
                    )
                    for i, (w, r) in enumerate(sets)
                ],
            )
        ],
    )


def make_mission(mtype, target, current=0.0, status="active", mid="m1"):
    return BlockMission(
        id=mid,
        user_id="user-1",
        program_id="beginner-full-body",
        type=mtype,
        target=MissionTarget(value=target),
        progress=MissionProgress(current=current),
        status=status,
    )


PR = PersonalRecord(
    exercise_id="barbell-back-squat",
    weight=100.0,
    reps=10,
    achieved_at="2024-03-15T11:00:00+00:00",
    session_id="s1",
)


class ComputeUpdatesTest(unittest.TestCase):
    def test_volume_accumulates_to_completion(self) -> None:
        mission = make_mission("volume", 10000)
        first = MissionService.compute_updates(
            make_session("s1", [(100.0, 10)] * 6), [], [mission], today="2024-03-15"
        )
        self.assertEqual(first[0].progress.current, 6000.0)
        self.assertEqual(first[0].status, "active")

        mission.progress = first[0].progress
        second = MissionService.compute_updates(
            make_session("s2", [(100.0, 10)] * 5), [], [mission], today="2024-03-17"
        )
        self.assertEqual(second[0].delta, 5000.0)
        self.assertEqual(second[0].progress.current, 11000.0)
        self.assertEqual(second[0].status, "completed")
        self.assertEqual(
            [(h.date, h.value) for h in second[0].progress.history],
            [("2024-03-15", 6000.0), ("2024-03-17", 5000.0)],
        )

    def test_pr_mission_needs_records(self) -> None:
        mission = make_mission("pr", 1)
        session = make_session("s1", [(100.0, 10)])
        self.assertEqual(MissionService.compute_updates(session, [], [mission]), [])
        updates = MissionService.compute_updates(session, [PR, PR], [mission])
        self.assertEqual(updates[0].delta, 2.0)
        self.assertEqual(updates[0].status, "completed")

    def test_consistency_counts_sessions(self) -> None:
        mission = make_mission("consistency", 12, current=3)
        updates = MissionService.compute_updates(
            make_session("s1", []), [], [mission]
        )
        self.assertEqual(updates[0].progress.current, 4.0)
        self.assertEqual(updates[0].status, "active")

    def test_rpe_target_is_inclusive_ceiling(self) -> None:
        mission = make_mission("rpe", 7.0)
        at_target = make_session("s1", [(100.0, 5), (100.0, 5)], rpe=7.0)
        above = make_session("s2", [(100.0, 5)], rpe=7.5)
        unrated = make_session("s3", [(100.0, 5)])
        self.assertEqual(
            MissionService.compute_updates(at_target, [], [mission])[0].delta, 1.0
        )
        self.assertEqual(MissionService.compute_updates(above, [], [mission]), [])
        self.assertEqual(MissionService.compute_updates(unrated, [], [mission]), [])

    def test_empty_session_skips_volume(self) -> None:
        mission = make_mission("volume", 10000)
        session = make_session("s1", [(0.0, 10)])
        self.assertEqual(MissionService.compute_updates(session, [], [mission]), [])

    def test_completed_mission_stays_completed(self) -> None:
        mission = make_mission("consistency", 2, current=5, status="completed")
        updates = MissionService.compute_updates(make_session("s1", []), [], [mission])
        self.assertEqual(updates[0].status, "completed")


class MissionServiceTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_missions.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.repo = MissionRepository(self.db_path)
        self.service = MissionService(self.repo)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_apply_session_is_idempotent(self) -> None:
        mission = self.service.create_mission(
            "user-1", "beginner-full-body", "volume", 10000
        )
        session = make_session("s1", [(100.0, 10)] * 6)
        applied = self.service.apply_session("user-1", session, [], today="2024-03-15")
        self.assertEqual(len(applied), 1)
        self.assertEqual(self.service.apply_session("user-1", session, []), [])
        stored = self.repo.fetch(mission.id)
        self.assertEqual(stored.progress.current, 6000.0)
        self.assertEqual(len(stored.progress.history), 1)
        self.assertTrue(self.repo.was_applied(mission.id, "s1"))

    def test_only_active_missions_of_program(self) -> None:
        other = self.service.create_mission("user-1", "other-program", "consistency", 5)
        done = make_mission("consistency", 1, current=1, status="completed", mid="done")
        self.repo.add(done)
        mine = self.service.create_mission(
            "user-1", "beginner-full-body", "consistency", 5
        )
        applied = self.service.apply_session("user-1", make_session("s1", []), [])
        self.assertEqual([u.mission_id for u in applied], [mine.id])
        self.assertEqual(self.repo.fetch(other.id).progress.current, 0.0)
        self.assertEqual(self.repo.fetch("done").progress.current, 1.0)

    def test_create_mission_rejects_non_positive_target(self) -> None:
        with self.assertRaises(ValueError):
            self.service.create_mission("user-1", "beginner-full-body", "volume", 0)

    def test_update_unknown_mission(self) -> None:
        with self.assertRaises(ValueError):
            self.repo.update_mission_progress("missing", MissionProgress(), "active")

    def test_default_missions(self) -> None:
        program = ProgramCatalog().fetch("beginner-full-body")
        created = self.service.create_default_missions("user-1", program)
        targets = {m.type: m.target.value for m in created}
        self.assertEqual(targets, {"consistency": 12, "pr": 1, "volume": 10000})
        self.assertEqual(len(self.service.missions_for_user("user-1")), 3)


if __name__ == "__main__":
    unittest.main()
