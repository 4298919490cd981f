"""Schedule resolution: which schedule, rule and session apply to a date."""
import logging
from datetime import date
from typing import List, Optional

from .models import ClassSession, Schedule, ScheduleRule
from .timeutils import parse_date

logger = logging.getLogger(__name__)


def js_weekday(day: date) -> int:
    """Day of week with 0 = Sunday .. 6 = Saturday."""
    return (day.weekday() + 1) % 7


def get_schedule_for_date(day: date, schedules: List[Schedule]) -> Optional[Schedule]:
    """First date-ranged schedule (input order) whose inclusive range holds `day`.

    Schedules without both bounds are never matched here. A schedule whose
    bounds don't parse is skipped.
    """
    for schedule in schedules:
        if not schedule.start_date or not schedule.end_date:
            continue
        try:
            start = parse_date(schedule.start_date)
            end = parse_date(schedule.end_date)
        except (TypeError, ValueError):
            logger.error("Invalid date format in schedule %r: %s..%s",
                         schedule.id, schedule.start_date, schedule.end_date)
            continue
        if start <= day <= end:
            return schedule
    return None


def get_active_schedule(schedules: List[Schedule], reference: date) -> Optional[Schedule]:
    # UI context only: falls back to the first schedule, status derivation must not
    return get_schedule_for_date(reference, schedules) or (schedules[0] if schedules else None)


def get_rule_for_day(schedule: Schedule, day: date) -> Optional[ScheduleRule]:
    dow = js_weekday(day)
    for rule in schedule.rules:
        if rule.day_of_week == dow:
            return rule
    return None


def first_physical_session(rule: Optional[ScheduleRule]) -> Optional[ClassSession]:
    """Earliest-starting session that requires presence. HH:mm sorts chronologically."""
    if rule is None:
        return None
    physical = [c for c in rule.classes if not c.is_online]
    if not physical:
        return None
    return sorted(physical, key=lambda c: c.start_time)[0]


def required_session_for_date(day: date, schedules: List[Schedule]) -> Optional[ClassSession]:
    schedule = get_schedule_for_date(day, schedules)
    if schedule is None:
        return None
    return first_physical_session(get_rule_for_day(schedule, day))


def required_time_for_date(day: date, schedules: List[Schedule]) -> Optional[str]:
    session = required_session_for_date(day, schedules)
    return session.start_time if session else None


def is_working_day(day: date, schedules: List[Schedule], holiday_dates: set) -> bool:
    if day.isoformat() in holiday_dates:
        return False
    return required_session_for_date(day, schedules) is not None
