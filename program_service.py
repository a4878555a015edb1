from __future__ import annotations
import os
import yaml
from typing import Iterable
from db import ProgramCursorRepository
from models import CursorState, NextWorkout, Program


class ProgramCatalog:
    """Read-only program templates loaded from YAML."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path or os.path.join(os.path.dirname(__file__), "programs.yaml")
        self._programs: dict[str, Program] | None = None

    def _load(self) -> dict[str, Program]:
        if self._programs is None:
            if not os.path.exists(self.path):
                self._programs = {}
            else:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or []
                if not isinstance(data, list):
                    raise ValueError("program file must contain a list")
                programs = [Program.model_validate(item) for item in data]
                self._programs = {p.id: p for p in programs}
        return self._programs

    def fetch_all(self) -> list[Program]:
        return list(self._load().values())

    def fetch(self, program_id: str) -> Program | None:
        return self._load().get(program_id)


def recommend_program(
    goal: str, level: str, programs: Iterable[Program]
) -> Program | None:
    """Return the first program matching ``goal`` and experience ``level``."""
    for program in programs:
        if program.goal == goal and program.experience_level == level:
            return program
    return None


class ProgramCursorService:
    """Track which training day and week of a program comes next."""

    def __init__(self, cursor_repo: ProgramCursorRepository, user_id: str) -> None:
        self.cursors = cursor_repo
        self.user_id = user_id

    def read(self, program_id: str) -> CursorState:
        return self.cursors.read(self.user_id, program_id)

    def activate(self, program_id: str) -> CursorState:
        """Reset the cursor to day 0 of week 1."""
        state = CursorState(day_index=0, week=1)
        self.cursors.write(self.user_id, program_id, state)
        return state

    def get_next_workout(self, program: Program) -> NextWorkout | None:
        if not program.schedule:
            return None
        state = self.read(program.id)
        # a program edited to fewer days may leave a stale index behind
        idx = min(max(state.day_index, 0), len(program.schedule) - 1)
        return NextWorkout(day=program.schedule[idx], day_index=idx, week=state.week)

    def advance(self, program: Program) -> CursorState:
        """Move to the next training day, rolling over into a new week."""
        state = self.read(program.id)
        if not program.schedule:
            return state
        nxt = state.day_index + 1
        if nxt >= len(program.schedule):
            state = CursorState(day_index=0, week=state.week + 1)
        else:
            state = CursorState(day_index=nxt, week=state.week)
        self.cursors.write(self.user_id, program.id, state)
        return state
