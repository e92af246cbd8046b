"""
staffing/normalize.py -- Coercion of loosely-typed project input into domain values.

Project data arrives from two places: staff using the dashboard and external
clients filling in the public form. Both send numbers as strings now and then
and omit optional fields freely, so these helpers are lenient about shape and
strict only about what must be right (a name, a real deadline, enum values).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any, Optional

from core.errors import BadRequestError
from staffing.models import PROJECT_PRIORITIES, SKILL_PRIORITIES, RequiredSkill, SeniorityMix, TeamPreferences


def to_int(value: Any, default: int) -> int:
    """Best-effort integer parse; falls back to default for blanks and junk."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def parse_deadline(value: Any) -> str:
    """Return value as an ISO 8601 date string, or raise BadRequestError.

    Accepts a date, a datetime, "YYYY-MM-DD", or a full ISO 8601 timestamp
    (the time part is dropped).
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value or "").strip()
    if not text:
        raise BadRequestError("Invalid deadline date")
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError as exc:
        raise BadRequestError("Invalid deadline date") from exc


def check_priority(value: Optional[str]) -> str:
    priority = value or "Medium"
    if priority not in PROJECT_PRIORITIES:
        raise BadRequestError(f"priority must be one of {', '.join(PROJECT_PRIORITIES)}")
    return priority


def required_skills(raw: Optional[Iterable[Mapping]]) -> list[RequiredSkill]:
    """Normalize required-skill rows.

    Rows without a skill name are dropped first; a missing skill_id becomes
    "skill-<n>", n counting only the kept rows. Minimum experience defaults to
    0, priority to Must-have, weight to 50. An explicit weight of 0 is kept;
    weights are clamped to 0-100.
    """
    skills: list[RequiredSkill] = []
    rows = [row for row in raw or [] if row and str(row.get("skill_name") or "").strip()]
    for index, row in enumerate(rows):
        priority = row.get("priority") or "Must-have"
        if priority not in SKILL_PRIORITIES:
            raise BadRequestError(f"skill priority must be one of {', '.join(SKILL_PRIORITIES)}")
        skills.append(
            RequiredSkill(
                skill_id=str(row.get("skill_id") or f"skill-{index}"),
                skill_name=str(row["skill_name"]).strip(),
                minimum_experience=to_int(row.get("minimum_experience"), 0),
                priority=priority,
                weight=min(100, max(0, to_int(row.get("weight"), 50))),
            )
        )
    return skills


def team_preferences(team_size: Any = None, seniority_mix: Optional[Mapping] = None) -> TeamPreferences:
    """Team size is at least 1 (default 5); seniority mix defaults to 40/40/20."""
    mix = SeniorityMix()
    if seniority_mix:
        mix = SeniorityMix(
            junior=to_int(seniority_mix.get("junior"), mix.junior),
            mid=to_int(seniority_mix.get("mid"), mix.mid),
            senior=to_int(seniority_mix.get("senior"), mix.senior),
        )
    return TeamPreferences(team_size=max(1, to_int(team_size, 5)), seniority_mix=mix)
