from __future__ import annotations
from typing import Literal, Optional
from pydantic import BaseModel, Field

QUICK_PROGRAM_ID = "quick"

MuscleGroup = Literal[
    "chest",
    "back",
    "shoulders",
    "biceps",
    "triceps",
    "quads",
    "hamstrings",
    "glutes",
    "calves",
    "core",
    "cardio",
]

MUSCLE_GROUPS: tuple[str, ...] = (
    "chest",
    "back",
    "shoulders",
    "biceps",
    "triceps",
    "quads",
    "hamstrings",
    "glutes",
    "calves",
    "core",
    "cardio",
)

MissionType = Literal["pr", "consistency", "volume", "rpe"]
MissionStatus = Literal["active", "completed"]


class Exercise(BaseModel):
    """Reference entry of the exercise library."""

    id: str
    name: str
    category: str = "strength"
    primary_muscles: list[str] = Field(default_factory=list)
    secondary_muscles: list[str] = Field(default_factory=list)


class SetScheme(BaseModel):
    sets: int = Field(ge=0)
    reps: str
    rest_seconds: int = 90
    rpe: Optional[float] = None


class ProgramExercise(BaseModel):
    exercise_id: str
    scheme: SetScheme
    notes: Optional[str] = None
    is_optional: bool = False


class TrainingDay(BaseModel):
    label: str
    type: str = "full-body"
    exercises: list[ProgramExercise] = Field(default_factory=list)


class Program(BaseModel):
    """Immutable training program template."""

    id: str
    name: str
    goal: str
    experience_level: str
    description: str = ""
    days_per_week: int = 3
    estimated_duration_weeks: int = 8
    schedule: list[TrainingDay] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class LoggedSet(BaseModel):
    set_number: int
    weight: float = Field(default=0.0, ge=0)
    reps: int = Field(default=0, ge=0)
    completed: bool = False
    rpe: Optional[float] = Field(default=None, ge=0, le=10)
    is_personal_record: bool = False
    timestamp: str = ""


class LoggedExercise(BaseModel):
    exercise_id: str
    sets: list[LoggedSet] = Field(default_factory=list)
    notes: Optional[str] = None


class WorkoutSession(BaseModel):
    id: str
    program_id: str
    training_day_index: int
    started_at: str
    completed_at: Optional[str] = None
    duration_seconds: Optional[int] = None
    exercises: list[LoggedExercise] = Field(default_factory=list)
    total_volume_kg: float = 0.0
    notes: Optional[str] = None

    @property
    def is_ad_hoc(self) -> bool:
        return self.program_id == QUICK_PROGRAM_ID


class PersonalRecord(BaseModel):
    exercise_id: str
    weight: float
    reps: int
    achieved_at: str
    session_id: str


class WorkoutHistory(BaseModel):
    sessions: list[WorkoutSession] = Field(default_factory=list)
    personal_records: list[PersonalRecord] = Field(default_factory=list)


class CursorState(BaseModel):
    day_index: int = 0
    week: int = 1


class NextWorkout(BaseModel):
    day: TrainingDay
    day_index: int
    week: int


class MissionTarget(BaseModel):
    metric: str = ""
    value: float
    unit: str = ""


class MissionHistoryEntry(BaseModel):
    date: str
    value: float


class MissionProgress(BaseModel):
    current: float = 0.0
    history: list[MissionHistoryEntry] = Field(default_factory=list)


class BlockMission(BaseModel):
    id: str
    user_id: str
    program_id: str
    type: MissionType
    description: str = ""
    target: MissionTarget
    progress: MissionProgress = Field(default_factory=MissionProgress)
    status: MissionStatus = "active"


class MissionUpdate(BaseModel):
    """Progress change computed for one mission by one session."""

    mission_id: str
    delta: float
    progress: MissionProgress
    status: MissionStatus


class CompletionResult(BaseModel):
    session: WorkoutSession
    prs: list[PersonalRecord] = Field(default_factory=list)


class OutboxEntry(BaseModel):
    id: int
    kind: str
    key: str
    payload: dict
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: str
