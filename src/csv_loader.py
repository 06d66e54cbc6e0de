from __future__ import annotations

import argparse
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from config import LOG_LEVEL
from csv_validator import read_csv_or_fail, validate_instructors, validate_sessions
from db import get_con, init_db
from outcome import Outcome, failure
from parse_helpers import parse_optional_float, parse_optional_int, split_pipe
from timetable_service import add_session
from user_repo import get_user_by_email
from user_service import approve_instructor, register_instructor

logger = logging.getLogger(__name__)


@dataclass
class ImportReport:
    created: list = field(default_factory=list)
    # (row index, outcome) for rows the services turned down
    rejected: list[tuple[int, Outcome]] = field(default_factory=list)

    def summary(self) -> str:
        return f"{len(self.created)} imported, {len(self.rejected)} rejected"


def load_validated_frames(assets_dir: Path) -> tuple[pd.DataFrame, pd.DataFrame]:
    instructors = read_csv_or_fail(assets_dir / "instructors.csv")
    sessions = read_csv_or_fail(assets_dir / "sessions.csv")

    validate_instructors(instructors)
    validate_sessions(sessions, instructors)

    return instructors, sessions


def import_instructors(
    con: sqlite3.Connection, df: pd.DataFrame, approve_as: int | None = None
) -> ImportReport:
    """
    Registers every row (validate_instructors first). With approve_as set to
    an admin id, new instructors are approved straight away.
    """
    report = ImportReport()

    for idx, row in df.iterrows():
        res = register_instructor(
            con,
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            qualifications=split_pipe(row["qualifications"]),
            hourly_rate=parse_optional_float(row["hourly_rate"]),
            max_hours_per_week=parse_optional_float(row["max_hours_per_week"]),
            phone=row["phone"].strip() or None,
            slack_user_id=row["slack_user_id"].strip() or None,
        )
        if res.ok and approve_as is not None:
            res = approve_instructor(con, res.value.user_id, approve_as)

        if res.ok:
            report.created.append(res.value)
        else:
            logger.warning("instructors row %s rejected: %s", idx, res.message)
            report.rejected.append((idx, res))

    return report


def import_sessions(
    con: sqlite3.Connection, df: pd.DataFrame, template_id: int, admin_id: int
) -> ImportReport:
    """
    Adds every row to the template through add_session, so clashes come
    back as session_conflict outcomes rather than aborting the file.
    """
    report = ImportReport()

    for idx, row in df.iterrows():
        permanent_id = None
        email = row["permanent_instructor_email"].strip()
        if email:
            inst = get_user_by_email(con, email)
            if inst is None:
                logger.warning("sessions row %s: no instructor with email %s", idx, email)
                report.rejected.append((idx, failure("instructor_not_found")))
                continue
            permanent_id = inst.user_id

        res = add_session(
            con,
            template_id,
            admin_id,
            class_name=row["class_name"],
            day=int(row["day_of_week"]),
            start_time=row["start_time"],
            end_time=row["end_time"],
            venue=row["venue"],
            assignment_type=row["assignment_type"].strip(),
            permanent_instructor_id=permanent_id,
            required_qualifications=split_pipe(row["required_qualifications"]),
            description=row["description"].strip(),
            max_participants=parse_optional_int(row["max_participants"]),
        )
        if res.ok:
            report.created.append(res.value)
        else:
            logger.warning("sessions row %s rejected: %s", idx, res.message)
            report.rejected.append((idx, res))

    return report


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    ap = argparse.ArgumentParser(description="Import instructors and sessions from CSV.")
    ap.add_argument("--assets", type=Path, default=Path("assets"))
    ap.add_argument("--template-id", type=int, required=True)
    ap.add_argument("--admin-id", type=int, required=True)
    ap.add_argument("--approve", action="store_true", help="approve imported instructors")
    args = ap.parse_args()

    con = get_con()
    init_db(con)

    instructors_df, sessions_df = load_validated_frames(args.assets)

    people = import_instructors(con, instructors_df, approve_as=args.admin_id if args.approve else None)
    print(f"\nInstructors: {people.summary()}")

    sessions = import_sessions(con, sessions_df, args.template_id, args.admin_id)
    print(f"Sessions: {sessions.summary()}\n")

    for idx, res in people.rejected + sessions.rejected:
        print(f"  row {idx}: {res.message}")


if __name__ == "__main__":
    main()
