import argparse
import json
import shutil

from algorithms import MathTools
from db import HistoryRepository
from rest_api import EngineAPI


def export_history(db_path: str, user_id: str, output_path: str) -> int:
    """Write the user's completed sessions and records to a JSON file."""
    history = HistoryRepository(db_path).read_user(user_id)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(history.model_dump(), f, indent=2)
    return len(history.sessions)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def reconcile(db_path: str, yaml_path: str) -> dict:
    api = EngineAPI(db_path=db_path, yaml_path=yaml_path, background_sync=False)
    return api.sync.reconcile(api.user_id, api.settings)


def demo_data(db_path: str, yaml_path: str) -> None:
    """Log one completed session of the first program if history is empty."""
    api = EngineAPI(db_path=db_path, yaml_path=yaml_path, background_sync=False)
    if api.history.fetch_sessions(api.user_id):
        print("Database already contains sessions")
        return
    program = api.programs.fetch_all()[0]
    nxt = api.cursor_service.get_next_workout(program)
    session = api.session_service.start(program, nxt.day_index)
    for ei, logged in enumerate(session.exercises):
        for si in range(len(logged.sets)):
            api.session_service.update_set(
                ei, si, {"weight": 60.0 + 5 * si, "reps": 8, "completed": True}
            )
    result = api.session_service.complete(program)
    print(
        f"Demo session {result.session.id} logged: "
        f"{result.session.total_volume_kg:.0f} kg, {len(result.prs)} PRs"
    )


def print_stats(db_path: str, yaml_path: str, exercise_id: str | None) -> None:
    api = EngineAPI(db_path=db_path, yaml_path=yaml_path, background_sync=False)
    history = api.history.read_user(api.user_id)
    dates = api.history.session_dates(api.user_id)
    print(f"Sessions: {len(history.sessions)}")
    print(f"Current streak: {api.statistics.workout_streak(dates)} days")
    weekly = api.statistics.weekly_volume_by_muscle(
        history, api.settings.get_int("volume_weeks", 4)
    )
    for muscle, volumes in weekly.items():
        if any(volumes):
            print(f"{muscle}: " + ", ".join(f"{v:.0f}" for v in volumes))
    if exercise_id:
        for point in api.statistics.exercise_progression(exercise_id, history):
            print(
                f"{point['date']}  max {point['max_weight_kg']} kg  "
                f"e1RM {point['estimated_1rm']} kg  sets {point['total_sets']}"
            )


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--db", default="workout.db")
    exp.add_argument("--user", default="local")
    exp.add_argument("--out", default="history.json")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="workout.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="workout.db")

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="workout.db")
    demo.add_argument("--yaml", default="settings.yaml")

    rec = sub.add_parser("reconcile")
    rec.add_argument("--db", default="workout.db")
    rec.add_argument("--yaml", default="settings.yaml")

    stats = sub.add_parser("stats")
    stats.add_argument("--db", default="workout.db")
    stats.add_argument("--yaml", default="settings.yaml")
    stats.add_argument("--exercise")

    orm = sub.add_parser("one_rep_max")
    orm.add_argument("--weight", type=float, required=True)
    orm.add_argument("--reps", type=int, required=True)

    args = parser.parse_args()

    if args.cmd == "export":
        count = export_history(args.db, args.user, args.out)
        print(f"Exported {count} sessions to {args.out}")
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "demo":
        demo_data(args.db, args.yaml)
    elif args.cmd == "reconcile":
        result = reconcile(args.db, args.yaml)
        print(json.dumps(result))
    elif args.cmd == "stats":
        print_stats(args.db, args.yaml, args.exercise)
    elif args.cmd == "one_rep_max":
        est = MathTools.estimated_one_rep_max(args.weight, args.reps)
        print(f"{args.weight} kg x {args.reps} = {est:.1f} kg estimated 1RM")


if __name__ == "__main__":
    main()
