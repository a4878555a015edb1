import datetime
from typing import Callable, Dict, List, Optional
from fastapi import FastAPI, HTTPException, Body, APIRouter
from config import APP_VERSION, setup_logging
from db import (
    ActiveSessionRepository,
    AsyncHistoryRepository,
    ExerciseCatalogRepository,
    HistoryRepository,
    MissionRepository,
    ProgramCursorRepository,
    SettingsRepository,
    SyncOutboxRepository,
)
from client import RemoteClient
from gamification_service import MissionService
from program_service import ProgramCatalog, ProgramCursorService, recommend_program
from session_service import SessionService
from stats_service import StatisticsService
from sync_service import SyncService
from models import Program


class EngineAPI:
    """Provides REST endpoints for the workout session engine."""

    def __init__(
        self,
        db_path: str = "workout.db",
        yaml_path: str = "settings.yaml",
        programs_path: str | None = None,
        *,
        client: RemoteClient | None = None,
        background_sync: bool | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        setup_logging(self.settings.get_text("log_level", "INFO"))
        self.user_id = self.settings.get_text("user_id", "local")
        self.history = HistoryRepository(db_path)
        self.async_history = AsyncHistoryRepository(db_path)
        self.active_sessions = ActiveSessionRepository(db_path)
        self.cursors = ProgramCursorRepository(db_path)
        self.missions = MissionRepository(db_path)
        self.outbox = SyncOutboxRepository(db_path)
        self.exercise_catalog = ExerciseCatalogRepository(db_path)
        self.programs = ProgramCatalog(programs_path)
        self.cursor_service = ProgramCursorService(self.cursors, self.user_id)
        self.mission_service = MissionService(self.missions)
        self.statistics = StatisticsService(self.exercise_catalog)
        if client is None:
            client = self._remote_client()
        if background_sync is None:
            background_sync = self.settings.get_bool("sync_background", True)
        self.sync = SyncService(
            self.outbox,
            self.history,
            self.mission_service,
            client,
            limit=self.settings.get_int("outbox_limit", 500),
            background=background_sync,
        )
        self.session_service = SessionService(
            self.history,
            self.active_sessions,
            self.cursor_service,
            self.user_id,
            self.sync,
            adhoc_default_sets=self.settings.get_int("adhoc_default_sets", 3),
            clock=clock,
        )
        self.app = FastAPI(
            title="Workout Engine API",
            description="REST API for workout sessions, records and missions",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _remote_client(self) -> RemoteClient | None:
        if not self.settings.get_bool("sync_enabled", True):
            return None
        url = self.settings.get_text("remote_url", "")
        if not url:
            return None
        key = self.settings.get_text("remote_api_key", "") or None
        return RemoteClient(url, key)

    def _program(self, program_id: str) -> Program:
        program = self.programs.fetch(program_id)
        if program is None:
            raise HTTPException(status_code=404, detail="program not found")
        return program

    def _active_or_404(self):
        session = self.session_service.session
        if session is None:
            raise HTTPException(status_code=404, detail="no active session")
        return session

    def _setup_routes(self) -> None:
        programs_router = APIRouter(prefix="/programs", tags=["Programs"])
        sessions_router = APIRouter(prefix="/sessions", tags=["Sessions"])
        stats_router = APIRouter(prefix="/stats", tags=["Statistics"])
        missions_router = APIRouter(prefix="/missions", tags=["Missions"])
        sync_router = APIRouter(prefix="/sync", tags=["Sync"])

        @self.app.get("/health", summary="Health check")
        def health():
            try:
                self.history.session_dates(self.user_id)
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.get("/exercises", tags=["Exercises"])
        def list_exercises(muscle: Optional[str] = None):
            return [e.model_dump() for e in self.exercise_catalog.fetch_exercises(muscle)]

        @programs_router.get("")
        def list_programs():
            return [p.model_dump() for p in self.programs.fetch_all()]

        @programs_router.get("/recommend")
        def recommend(goal: str, level: str):
            program = recommend_program(goal, level, self.programs.fetch_all())
            if program is None:
                raise HTTPException(status_code=404, detail="no matching program")
            return program.model_dump()

        @programs_router.get("/{program_id}/next")
        def next_workout(program_id: str):
            nxt = self.cursor_service.get_next_workout(self._program(program_id))
            if nxt is None:
                raise HTTPException(status_code=404, detail="program has no days")
            return nxt.model_dump()

        @programs_router.post("/{program_id}/activate")
        def activate_program(program_id: str, with_missions: bool = False):
            program = self._program(program_id)
            state = self.cursor_service.activate(program.id)
            created = []
            if with_missions:
                created = self.mission_service.create_default_missions(
                    self.user_id, program
                )
            return {
                "cursor": state.model_dump(),
                "missions": [m.model_dump() for m in created],
            }

        @sessions_router.post("")
        def start_session(program_id: str, day_index: int):
            session = self.session_service.start(self._program(program_id), day_index)
            if session is None:
                raise HTTPException(status_code=400, detail="training day not found")
            return session.model_dump()

        @sessions_router.post("/quick")
        def start_quick_session(exercise_ids: List[str] = Body(...)):
            session = self.session_service.start_ad_hoc(exercise_ids)
            if session is None:
                raise HTTPException(status_code=400, detail="no exercises selected")
            return session.model_dump()

        @sessions_router.get("/active")
        def get_active_session():
            return self._active_or_404().model_dump()

        @sessions_router.delete("/active")
        def discard_session():
            self._active_or_404()
            self.session_service.discard()
            return {"status": "discarded"}

        @sessions_router.patch("/active/exercises/{exercise_index}/sets/{set_index}")
        def update_set(exercise_index: int, set_index: int, fields: Dict = Body(...)):
            self._active_or_404()
            session = self.session_service.update_set(exercise_index, set_index, fields)
            if session is None:
                raise HTTPException(status_code=400, detail="set not found")
            return session.model_dump()

        @sessions_router.post("/active/exercises/{exercise_index}/sets")
        def add_set(exercise_index: int):
            self._active_or_404()
            session = self.session_service.add_set(exercise_index)
            if session is None:
                raise HTTPException(status_code=400, detail="exercise not found")
            return session.model_dump()

        @sessions_router.delete("/active/exercises/{exercise_index}/sets/{set_index}")
        def remove_set(exercise_index: int, set_index: int):
            self._active_or_404()
            session = self.session_service.remove_set(exercise_index, set_index)
            if session is None:
                raise HTTPException(status_code=400, detail="set cannot be removed")
            return session.model_dump()

        @sessions_router.post("/active/exercises")
        def add_exercise(exercise_id: str):
            self._active_or_404()
            return self.session_service.add_exercise(exercise_id).model_dump()

        @sessions_router.post("/active/complete")
        def complete_session():
            session = self._active_or_404()
            program = self.programs.fetch(session.program_id)
            result = self.session_service.complete(program)
            return result.model_dump()

        @self.app.get("/history", tags=["History"])
        async def get_history():
            history = await self.async_history.read_user(self.user_id)
            return history.model_dump()

        @self.app.get("/records", tags=["History"])
        def get_records():
            return [
                pr.model_dump()
                for pr in self.history.fetch_personal_records(self.user_id)
            ]

        @stats_router.get("/one-rep-max")
        def one_rep_max(weight: float, reps: int):
            try:
                est = self.statistics.estimated_one_rep_max(weight, reps)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"weight": weight, "reps": reps, "estimated_1rm": round(est, 2)}

        @stats_router.get("/progression/{exercise_id}")
        def progression(exercise_id: str, max_points: Optional[int] = None):
            points = max_points or self.settings.get_int("progression_points", 12)
            history = self.history.read_user(self.user_id)
            return self.statistics.exercise_progression(exercise_id, history, points)

        @stats_router.get("/weekly-volume")
        def weekly_volume(weeks: Optional[int] = None):
            weeks = weeks or self.settings.get_int("volume_weeks", 4)
            history = self.history.read_user(self.user_id)
            return self.statistics.weekly_volume_by_muscle(history, weeks)

        @stats_router.get("/streak")
        def streak():
            dates = self.history.session_dates(self.user_id)
            return {
                "current": self.statistics.workout_streak(dates),
                "this_week": self.statistics.weekly_completion_count(
                    dates, self.statistics.week_start()
                ),
            }

        @missions_router.get("")
        def list_missions():
            return [
                m.model_dump() for m in self.mission_service.missions_for_user(self.user_id)
            ]

        @missions_router.post("")
        def create_mission(
            program_id: str,
            mission_type: str,
            target: float,
            description: str = "",
        ):
            try:
                mission = self.mission_service.create_mission(
                    self.user_id, program_id, mission_type, target, description
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return mission.model_dump()

        @sync_router.get("/pending")
        def pending():
            return [e.model_dump() for e in self.sync.pending()]

        @sync_router.post("/flush")
        def flush():
            return self.sync.flush()

        @sync_router.post("/reconcile")
        def reconcile():
            return self.sync.reconcile(self.user_id, self.settings)

        self.app.include_router(programs_router)
        self.app.include_router(sessions_router)
        self.app.include_router(stats_router)
        self.app.include_router(missions_router)
        self.app.include_router(sync_router)


api = EngineAPI()
app = api.app
