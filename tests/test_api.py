import os
import sys
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import EngineAPI


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_workout.db"
        self.yaml_path = "test_settings.yaml"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)
        self.api = EngineAPI(
            db_path=self.db_path, yaml_path=self.yaml_path, background_sync=False
        )
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)

    def _log_day(self, weight: float, reps: int) -> None:
        session = self.client.get("/sessions/active").json()
        for ei, logged in enumerate(session["exercises"]):
            for si in range(len(logged["sets"])):
                resp = self.client.patch(
                    f"/sessions/active/exercises/{ei}/sets/{si}",
                    json={"weight": weight, "reps": reps, "completed": True},
                )
                self.assertEqual(resp.status_code, 200)

    def test_health(self) -> None:
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_programs(self) -> None:
        resp = self.client.get("/programs")
        self.assertEqual(resp.status_code, 200)
        ids = [p["id"] for p in resp.json()]
        self.assertIn("beginner-full-body", ids)

        resp = self.client.get("/programs/beginner-full-body/next")
        self.assertEqual(resp.json()["day_index"], 0)
        self.assertEqual(resp.json()["week"], 1)
        self.assertEqual(self.client.get("/programs/missing/next").status_code, 404)

        resp = self.client.get(
            "/programs/recommend", params={"goal": "hypertrophy", "level": "intermediate"}
        )
        self.assertEqual(resp.json()["id"], "intermediate-upper-lower")

    def test_full_workflow(self) -> None:
        resp = self.client.post(
            "/programs/beginner-full-body/activate", params={"with_missions": True}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.json()["missions"]), 3)

        self.assertEqual(self.client.get("/sessions/active").status_code, 404)
        resp = self.client.post(
            "/sessions", params={"program_id": "beginner-full-body", "day_index": 0}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.json()["exercises"]), 3)

        self._log_day(100.0, 5)
        resp = self.client.post("/sessions/active/exercises/0/sets")
        self.assertEqual(len(resp.json()["exercises"][0]["sets"]), 4)
        resp = self.client.delete("/sessions/active/exercises/0/sets/3")
        self.assertEqual(len(resp.json()["exercises"][0]["sets"]), 3)

        resp = self.client.post("/sessions/active/complete")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["session"]["total_volume_kg"], 4500.0)
        self.assertEqual(len(body["prs"]), 3)

        self.assertEqual(
            self.client.get("/programs/beginner-full-body/next").json()["day_index"], 1
        )
        history = self.client.get("/history").json()
        self.assertEqual(len(history["sessions"]), 1)
        records = self.client.get("/records").json()
        self.assertEqual(len(records), 3)

        missions = {m["type"]: m for m in self.client.get("/missions").json()}
        self.assertEqual(missions["consistency"]["progress"]["current"], 1.0)
        self.assertEqual(missions["pr"]["status"], "completed")
        self.assertEqual(missions["volume"]["progress"]["current"], 4500.0)

        pending = [e["kind"] for e in self.client.get("/sync/pending").json()]
        self.assertEqual(pending, ["session", "personal_records", "notify"])

        progression = self.client.get(
            "/stats/progression/barbell-bench-press"
        ).json()
        self.assertEqual(progression[0]["estimated_1rm"], 116.7)
        streak = self.client.get("/stats/streak").json()
        self.assertEqual(streak["current"], 1)
        weekly = self.client.get("/stats/weekly-volume", params={"weeks": 2}).json()
        self.assertEqual(len(weekly["chest"]), 2)

    def test_quick_session(self) -> None:
        self.assertEqual(self.client.post("/sessions/quick", json=[]).status_code, 400)
        resp = self.client.post("/sessions/quick", json=["plank"])
        self.assertEqual(resp.json()["program_id"], "quick")
        resp = self.client.post(
            "/sessions/active/exercises", params={"exercise_id": "barbell-curl"}
        )
        self.assertEqual(len(resp.json()["exercises"]), 2)
        resp = self.client.delete("/sessions/active")
        self.assertEqual(resp.json(), {"status": "discarded"})
        self.assertEqual(self.client.delete("/sessions/active").status_code, 404)

    def test_invalid_requests(self) -> None:
        resp = self.client.post(
            "/sessions", params={"program_id": "beginner-full-body", "day_index": 8}
        )
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post("/sessions", params={"program_id": "x", "day_index": 0})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(
            self.client.patch(
                "/sessions/active/exercises/0/sets/0", json={"weight": 1}
            ).status_code,
            404,
        )
        self.client.post("/sessions/quick", json=["plank"])
        self.assertEqual(
            self.client.patch(
                "/sessions/active/exercises/5/sets/0", json={"weight": 1}
            ).status_code,
            400,
        )
        resp = self.client.post(
            "/missions",
            params={"program_id": "quick", "mission_type": "volume", "target": 0},
        )
        self.assertEqual(resp.status_code, 400)
        resp = self.client.get("/stats/one-rep-max", params={"weight": 100, "reps": -1})
        self.assertEqual(resp.status_code, 400)

    def test_one_rep_max(self) -> None:
        resp = self.client.get("/stats/one-rep-max", params={"weight": 100, "reps": 5})
        self.assertEqual(resp.json()["estimated_1rm"], 116.67)

    def test_exercises(self) -> None:
        resp = self.client.get("/exercises", params={"muscle": "chest"})
        ids = {e["id"] for e in resp.json()}
        self.assertIn("barbell-bench-press", ids)
        self.assertNotIn("barbell-row", ids)

    def test_reconcile_without_remote(self) -> None:
        resp = self.client.post("/sync/reconcile")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["failed"], 0)


if __name__ == "__main__":
    unittest.main()
