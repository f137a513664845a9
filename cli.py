import argparse
import json
import logging
import shutil

from rest_api import FitAPI
from seed_exercises import seed


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def seed_catalog(db_path: str, yaml_path: str) -> None:
    api = FitAPI(db_path=db_path, yaml_path=yaml_path)
    count = seed(api.exercises)
    if count:
        print(f"Seeded {count} exercises")
    else:
        print("Exercise catalog already seeded")


def create_user(
    db_path: str,
    yaml_path: str,
    email: str,
    name: str | None,
    starting_weight: float,
    target_weight: float,
) -> None:
    api = FitAPI(db_path=db_path, yaml_path=yaml_path)
    uid = api.users.create(email, name, starting_weight, target_weight)
    code = api.bot.create_link_code(uid)
    print(f"Created user {uid}; Telegram link code {code}")


def run_job(db_path: str, yaml_path: str, job: str) -> dict:
    api = FitAPI(db_path=db_path, yaml_path=yaml_path)
    jobs = {
        "daily": api.notifications.run_daily,
        "rest-day": api.notifications.run_rest_day,
        "wearable-sync": api.notifications.run_wearable_sync,
        "weekly": api.notifications.run_weekly,
        "tick": api.notifications.run_tick,
    }
    result = jobs[job]()
    print(json.dumps(result))
    return result


def serve(db_path: str, yaml_path: str, host: str, port: int) -> None:
    import uvicorn

    api = FitAPI(db_path=db_path, yaml_path=yaml_path)
    uvicorn.run(api.app, host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(description="Accountability gym utilities")
    parser.add_argument("--db", default="gym.db")
    parser.add_argument("--yaml", default="settings.yaml")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("seed")

    usr = sub.add_parser("create-user")
    usr.add_argument("--email", required=True)
    usr.add_argument("--name")
    usr.add_argument("--starting-weight", type=float, default=82.0)
    usr.add_argument("--target-weight", type=float, default=75.0)

    for job in ("daily", "rest-day", "wearable-sync", "weekly", "tick"):
        sub.add_parser(job)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "seed":
        seed_catalog(args.db, args.yaml)
    elif args.cmd == "create-user":
        create_user(
            args.db,
            args.yaml,
            args.email,
            args.name,
            args.starting_weight,
            args.target_weight,
        )
    elif args.cmd in ("daily", "rest-day", "wearable-sync", "weekly", "tick"):
        run_job(args.db, args.yaml, args.cmd)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "serve":
        serve(args.db, args.yaml, args.host, args.port)


if __name__ == "__main__":
    main()
