from __future__ import annotations

from pathlib import Path
import sys
import pandas as pd

from models import ASSIGNMENT_TYPES
from time_rules import HHMM_RE, hhmm_to_min

# data definitions
INSTRUCTORS_COLUMNS = [
    "email",
    "first_name",
    "last_name",
    "phone",
    "slack_user_id",
    "qualifications",
    "hourly_rate",
    "max_hours_per_week",
]

SESSIONS_COLUMNS = [
    "class_name",
    "description",
    "day_of_week",
    "start_time",
    "end_time",
    "venue",
    "max_participants",
    "assignment_type",
    "permanent_instructor_email",
    "required_qualifications",
]


def fail(msg: str) -> None:
    raise ValueError(msg)


def read_csv_or_fail(path: Path) -> pd.DataFrame:
    if not path.exists():
        fail(f"File not found: {path}")
    try:
        return pd.read_csv(path, dtype=str).fillna("")
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValueError(f"Could not read CSV '{path}': {e}") from e


def require_columns(df: pd.DataFrame, required: list[str], name: str) -> None:
    missing = [c for c in required if c not in df.columns]
    extra = [c for c in df.columns if c not in required]
    if missing:
        fail(f"{name}: missing required columns: {missing}")
    if extra:
        # fails if there's unexpected columns
        fail(f"{name}: unexpected extra columns: {extra}")


# checks to see if there's blank or duplicate values
def require_unique_nonempty(df: pd.DataFrame, col: str, name: str) -> None:
    values = df[col].str.strip().str.lower()
    if (values == "").any():
        bad = df.index[values == ""].tolist()[:10]
        fail(f"{name}: '{col}' contains blank values: {bad}")

    dupes = values[values.duplicated()].unique().tolist()
    if dupes:
        fail(f"{name}: '{col}' has duplicate values: {dupes}")


def require_nonempty(df: pd.DataFrame, col: str, name: str) -> None:
    blank = df.index[df[col].str.strip() == ""].tolist()
    if blank:
        fail(f"{name}: '{col}' contains blank values: {blank[:10]}")


def is_float(x: str) -> bool:
    try:
        float(x)
        return True
    except ValueError:
        return False


def is_int(x: str) -> bool:
    try:
        int(x)
        return True
    except ValueError:
        return False


def bad_optional(df: pd.DataFrame, col: str, check) -> list[str]:
    """Non-blank values in col that fail check."""
    vals = df[col].str.strip()
    return vals[(vals != "") & ~vals.apply(check)].unique().tolist()


# validates every row of instructors.csv
def validate_instructors(df: pd.DataFrame) -> None:
    require_columns(df, INSTRUCTORS_COLUMNS, "instructors")

    require_unique_nonempty(df, "email", "instructors")
    require_nonempty(df, "first_name", "instructors")
    require_nonempty(df, "last_name", "instructors")

    no_at = df.index[~df["email"].str.contains("@", regex=False)].tolist()
    if no_at:
        fail(f"instructors: email doesn't look like an address (row idx): {no_at[:10]}")

    bad_rate = bad_optional(df, "hourly_rate", lambda x: is_float(x) and float(x) >= 0)
    if bad_rate:
        fail(f"instructors: hourly_rate must be a number >= 0. Bad values: {bad_rate}")

    bad_hours = bad_optional(df, "max_hours_per_week", lambda x: is_float(x) and float(x) > 0)
    if bad_hours:
        fail(f"instructors: max_hours_per_week must be a positive number. Bad values: {bad_hours}")


# checks every session row against the timetable rules
def validate_sessions(df: pd.DataFrame, instructors_df: pd.DataFrame | None = None) -> None:
    require_columns(df, SESSIONS_COLUMNS, "sessions")
    require_nonempty(df, "class_name", "sessions")
    require_nonempty(df, "venue", "sessions")

    bad_day = (
        df.loc[~df["day_of_week"].str.strip().apply(lambda x: is_int(x) and 0 <= int(x) <= 6), "day_of_week"]
        .unique()
        .tolist()
    )
    if bad_day:
        fail(f"sessions: day_of_week must be int in 0..6 (0 = Sunday). Bad values: {bad_day}")

    for col in ("start_time", "end_time"):
        ok = df[col].str.strip().apply(lambda x: HHMM_RE.match(x) is not None)
        bad_time = df.loc[~ok, col].unique().tolist()
        if bad_time:
            fail(f"sessions: {col} must be HH:MM. Bad values: {bad_time}")

    start = df["start_time"].str.strip().apply(hhmm_to_min)
    end = df["end_time"].str.strip().apply(hhmm_to_min)
    if not (end > start).all():
        bad = df.index[~(end > start)].tolist()
        fail(f"sessions: end_time must be after start_time (bad row idx): {bad[:10]}")

    bad_type = (
        df.loc[~df["assignment_type"].str.strip().isin(ASSIGNMENT_TYPES), "assignment_type"]
        .unique()
        .tolist()
    )
    if bad_type:
        fail(
            f"sessions: invalid assignment_type values: {bad_type} (allowed: {sorted(ASSIGNMENT_TYPES)})"
        )

    bad_max = bad_optional(df, "max_participants", lambda x: is_int(x) and int(x) > 0)
    if bad_max:
        fail(f"sessions: max_participants must be a positive int. Bad values: {bad_max}")

    permanent = df["assignment_type"].str.strip() == "permanent"
    emails = df["permanent_instructor_email"].str.strip()
    if (emails[~permanent] != "").any():
        bad = df.index[~permanent & (emails != "")].tolist()
        fail(f"sessions: permanent_instructor_email set on non-permanent rows (row idx): {bad[:10]}")

    # permanent_instructor_email must exist if provided
    if instructors_df is not None:
        known = set(instructors_df["email"].str.strip().str.lower().tolist())
        bad_ref = (
            emails[(emails != "") & ~emails.str.lower().isin(known)].unique().tolist()
        )
        if bad_ref:
            fail(f"sessions: permanent_instructor_email references unknown instructor(s): {bad_ref}")


def main() -> None:
    assets = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("assets")
    instructors_path = assets / "instructors.csv"
    sessions_path = assets / "sessions.csv"

    instructors = read_csv_or_fail(instructors_path)
    sessions = read_csv_or_fail(sessions_path)

    validate_instructors(instructors)
    validate_sessions(sessions, instructors)

    print("\nCSVs loaded and validated\n")

    print(f"Instructors: {len(instructors)} rows")
    print(instructors.head(5).to_string(index=False))

    print("\n---\n")

    print(f"Sessions: {len(sessions)} rows")
    print(sessions.head(5).to_string(index=False))


if __name__ == "__main__":
    try:
        main()
    except ValueError as e:
        print(f"\nVALIDATION ERROR: {e}\n", file=sys.stderr)
        sys.exit(1)
