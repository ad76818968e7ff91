"""
JSON serialization for sessions and records.

Handles conversion between dataclasses and JSON-compatible dicts, and
parsing of the compact sets strings typed on the command line.
"""

import json
import re
from datetime import datetime
from typing import Any

from ..core.models import (
    Category,
    CategoryTrace,
    PersonalRecord,
    Session,
    SessionResult,
    SetEntry,
)


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_datetime(value: str) -> datetime:
    """
    Parse a date or date-time string.

    Accepts ``YYYY-MM-DD`` (midnight) and ISO ``YYYY-MM-DDTHH:MM[:SS]``.

    Raises:
        ValidationError: If the format is invalid
    """
    if not isinstance(value, str) or not re.match(r"^\d{4}-\d{2}-\d{2}", value):
        raise ValidationError(f"Invalid date: {value!r}. Expected YYYY-MM-DD or YYYY-MM-DDTHH:MM")
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}") from e


def validate_non_negative(value: int | float, name: str) -> int | float:
    """
    Validate that a value is non-negative.

    Raises:
        ValidationError: If value is negative
    """
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def validate_category(value: str) -> Category:
    try:
        return Category(value)
    except ValueError as e:
        valid = ", ".join(c.value for c in Category)
        raise ValidationError(f"Unknown category {value!r}. Valid: {valid}") from e


# =============================================================================
# SETS AND SESSIONS
# =============================================================================


def set_entry_to_dict(s: SetEntry) -> dict[str, Any]:
    """Convert SetEntry to a compact dict (defaults omitted)."""
    d: dict[str, Any] = {"reps": s.reps}
    if s.weight:
        d["weight"] = s.weight
    if s.duration is not None:
        d["duration"] = s.duration
    if s.band_color:
        d["band_color"] = s.band_color
    return d


def dict_to_set_entry(data: dict[str, Any]) -> SetEntry:
    """
    Convert dict to SetEntry.

    Raises:
        ValidationError: If data is invalid
    """
    reps = data.get("reps", 0)
    weight = data.get("weight", 0.0)
    duration = data.get("duration")
    validate_non_negative(reps, "reps")
    validate_non_negative(weight, "weight")
    if duration is not None:
        validate_non_negative(duration, "duration")

    return SetEntry(
        weight=float(weight),
        reps=int(reps),
        duration=int(duration) if duration is not None else None,
        band_color=data.get("band_color") or None,
    )


def session_to_dict(session: Session) -> dict[str, Any]:
    d: dict[str, Any] = {
        "session_id": session.session_id,
        "user_id": session.user_id,
        "exercise_id": session.exercise_id,
        "performed_at": session.performed_at.isoformat(),
        "sets": [set_entry_to_dict(s) for s in session.sets],
    }
    if session.logged_by:
        d["logged_by"] = session.logged_by
    if session.synthetic:
        d["synthetic"] = True
    return d


def dict_to_session(data: dict[str, Any]) -> Session:
    """
    Convert dict to Session.

    Raises:
        ValidationError: If a required field is missing or invalid
    """
    for name in ("session_id", "user_id", "exercise_id", "performed_at"):
        if not data.get(name):
            raise ValidationError(f"Session missing field: {name}")

    return Session(
        session_id=str(data["session_id"]),
        user_id=str(data["user_id"]),
        exercise_id=str(data["exercise_id"]),
        performed_at=validate_datetime(data["performed_at"]),
        sets=tuple(dict_to_set_entry(s) for s in data.get("sets", [])),
        logged_by=data.get("logged_by"),
        synthetic=bool(data.get("synthetic", False)),
    )


def session_to_json_line(session: Session) -> str:
    """Serialize a session to a single JSON line (no trailing newline)."""
    return json.dumps(session_to_dict(session), separators=(",", ":"))


def json_line_to_session(line: str) -> Session:
    """
    Deserialize a JSON line to a Session.

    Raises:
        ValidationError: If JSON is invalid or data validation fails
    """
    try:
        data = json.loads(line.strip())
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}") from e

    return dict_to_session(data)


# =============================================================================
# RECORDS
# =============================================================================


def record_to_dict(record: PersonalRecord) -> dict[str, Any]:
    return {
        "record_id": record.record_id,
        "user_id": record.user_id,
        "exercise_id": record.exercise_id,
        "category": record.category.value,
        "value": record.value,
        "key": record.key,
        "source_session_id": record.source_session_id,
        "achieved_at": record.achieved_at.isoformat(),
        "previous_record_id": record.previous_record_id,
        "previous_value": record.previous_value,
    }


def dict_to_record(data: dict[str, Any]) -> PersonalRecord:
    """
    Convert dict to PersonalRecord.

    Raises:
        ValidationError: If data is invalid
    """
    try:
        return PersonalRecord(
            record_id=str(data["record_id"]),
            user_id=str(data["user_id"]),
            exercise_id=str(data["exercise_id"]),
            category=validate_category(data["category"]),
            value=float(data["value"]),
            key=data.get("key"),
            source_session_id=str(data["source_session_id"]),
            achieved_at=validate_datetime(data["achieved_at"]),
            previous_record_id=data.get("previous_record_id"),
            previous_value=(
                float(data["previous_value"]) if data.get("previous_value") is not None else None
            ),
        )
    except KeyError as e:
        raise ValidationError(f"Record missing field: {e}") from e


def session_result_to_dict(result: SessionResult) -> dict[str, Any]:
    return {
        "session_id": result.session_id,
        "is_pr": result.is_pr,
        "pr_count": result.pr_count,
        "created_records": [record_to_dict(r) for r in result.created_records],
        "trace": [
            {
                "category": t.category.value,
                "key": t.key,
                "value": t.value,
                "is_pr": t.is_pr,
                "reason": t.reason,
            }
            for t in result.trace
        ],
    }


def dict_to_session_result(data: dict[str, Any]) -> SessionResult:
    """
    Convert dict to SessionResult.

    Raises:
        ValidationError: If data is invalid
    """
    if not data.get("session_id"):
        raise ValidationError("Session result missing field: session_id")

    trace = [
        CategoryTrace(
            category=validate_category(t["category"]),
            key=t.get("key"),
            value=float(t.get("value", 0.0)),
            is_pr=bool(t.get("is_pr", False)),
            reason=str(t.get("reason", "")),
        )
        for t in data.get("trace", [])
    ]
    records = [dict_to_record(r) for r in data.get("created_records", [])]
    return SessionResult(
        session_id=str(data["session_id"]),
        is_pr=bool(data.get("is_pr", bool(records))),
        pr_count=int(data.get("pr_count", len(records))),
        created_records=records,
        trace=trace,
    )


# =============================================================================
# SETS STRING PARSING
# =============================================================================

# value [s] [xN] [@weight] [#band]
_SET_TOKEN = re.compile(
    r"^(\d+)(s)?"
    r"(?:\s*[xX×]\s*(\d+))?"
    r"(?:\s*@\s*\+?(\d+(?:\.\d+)?))?"
    r"(?:\s*#\s*([A-Za-z][\w-]*))?$"
)


def parse_sets_string(sets_str: str) -> list[SetEntry]:
    """
    Parse a sets string.

    Comma-separated tokens:
        8@225      8 reps at 225
        10         10 reps, no load (or 10 m for cardio)
        5x3@135    5 reps at 135, three sets
        30s        30 second hold
        30s@25     30 second hold with 25 added
        12#red     12 reps with the red band

    Args:
        sets_str: Sets string to parse

    Returns:
        List of SetEntry in the order given

    Raises:
        ValidationError: If format is invalid
    """
    if not sets_str or not sets_str.strip():
        raise ValidationError("Sets string cannot be empty")

    sets: list[SetEntry] = []
    for part in (p.strip() for p in sets_str.split(",")):
        if not part:
            continue
        m = _SET_TOKEN.match(part)
        if not m:
            raise ValidationError(
                f"Invalid set format: '{part}'.\n"
                f"Use: reps@weight (e.g. 8@225), reps (e.g. 10), RxS@weight (e.g. 5x3@135),\n"
                f"     holds as 30s or 30s@25, bands as 12#red."
            )

        value = int(m.group(1))
        is_hold = m.group(2) is not None
        count = int(m.group(3)) if m.group(3) else 1
        weight = float(m.group(4)) if m.group(4) else 0.0
        band = m.group(5).lower() if m.group(5) else None

        if count < 1:
            raise ValidationError(f"Set count must be at least 1: '{part}'")

        entry = (
            SetEntry(weight=weight, duration=value, band_color=band)
            if is_hold
            else SetEntry(weight=weight, reps=value, band_color=band)
        )
        sets.extend([entry] * count)

    if not sets:
        raise ValidationError("No valid sets found in sets string")

    return sets
