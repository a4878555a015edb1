import logging
import requests
from typing import Iterable, Optional
from models import BlockMission, MissionProgress, PersonalRecord, WorkoutSession

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Raised when the hosted database rejects or cannot receive a request."""


class RemoteClient:
    """Simple REST client for the hosted workout database.

    Writes use upsert semantics so replaying a request is harmless.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self, upsert: bool = False) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        if upsert:
            headers["Prefer"] = "resolution=merge-duplicates"
        return headers

    def _request(self, method: str, path: str, upsert: bool = False, **kwargs):
        logger.debug("%s %s%s", method, self.base_url, path)
        try:
            resp = requests.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(upsert),
                timeout=self.timeout,
                **kwargs,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise SyncError(f"{method} {path} failed: {e}") from e
        return resp

    def upsert_session(self, session: WorkoutSession, user_id: str) -> None:
        self._request(
            "POST",
            "/rest/v1/workout_sessions",
            upsert=True,
            json={
                "id": session.id,
                "user_id": user_id,
                "program_id": session.program_id,
                "training_day_index": session.training_day_index,
                "started_at": session.started_at,
                "completed_at": session.completed_at,
                "duration_seconds": session.duration_seconds,
                "exercises": [e.model_dump() for e in session.exercises],
                "total_volume_kg": session.total_volume_kg,
                "notes": session.notes,
            },
        )

    def upsert_personal_records(
        self, prs: Iterable[PersonalRecord], user_id: str
    ) -> None:
        rows = [
            {
                "user_id": user_id,
                "exercise_id": pr.exercise_id,
                "weight": pr.weight,
                "reps": pr.reps,
                "achieved_at": pr.achieved_at,
                "session_id": pr.session_id,
            }
            for pr in prs
        ]
        if not rows:
            return
        self._request(
            "POST",
            "/rest/v1/personal_records",
            upsert=True,
            params={"on_conflict": "user_id,exercise_id"},
            json=rows,
        )

    def list_active_missions(self, user_id: str, program_id: str) -> list[BlockMission]:
        resp = self._request(
            "GET",
            "/rest/v1/block_missions",
            params={
                "user_id": f"eq.{user_id}",
                "program_id": f"eq.{program_id}",
                "status": "eq.active",
            },
        )
        return [BlockMission.model_validate(row) for row in resp.json()]

    def update_mission_progress(
        self, mission_id: str, progress: MissionProgress, status: str
    ) -> None:
        self._request(
            "PATCH",
            "/rest/v1/block_missions",
            params={"id": f"eq.{mission_id}"},
            json={"progress": progress.model_dump(), "status": status},
        )

    def notify_friends(self, session_id: str) -> int:
        resp = self._request(
            "POST", "/api/notify-friends", json={"session_id": session_id}
        )
        try:
            return int(resp.json().get("sent", 0))
        except ValueError:
            return 0
