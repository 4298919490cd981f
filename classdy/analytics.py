"""Read-only projections over annotated logs for charts and summaries.

Nothing here introduces new rules: every status comes from
`calculations.get_status` and every lateness figure from
`calculations.calculate_lateness`.
"""
import calendar
import logging
import math
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .calculations import calculate_lateness, get_status, holiday_dates
from .models import AnnotatedLog, AttendanceStatus, Holiday, Schedule
from .schedules import get_rule_for_day, get_schedule_for_date, first_physical_session, required_session_for_date
from .timeutils import minutes_to_time, parse_date, time_to_minutes

logger = logging.getLogger(__name__)

PERIODS = ("week", "month", "all", "custom")

STATUS_LABELS = {
    AttendanceStatus.ON_TIME: "On Time",
    AttendanceStatus.LATE: "Late",
    AttendanceStatus.EARLY: "Early",
    AttendanceStatus.DAY_OFF: "Day Off",
    AttendanceStatus.ABSENT: "Absent",
    AttendanceStatus.HOLIDAY: "Holiday",
    AttendanceStatus.NO_ENTRY: "No Entry",
    AttendanceStatus.NO_SCHEDULE: "No Schedule",
}

ARRIVAL_STATUSES = (AttendanceStatus.ON_TIME, AttendanceStatus.LATE, AttendanceStatus.EARLY)
COUNTED_STATUSES = ARRIVAL_STATUSES + (AttendanceStatus.ABSENT,)
# Rendered dimmed on the heatmap and as short bars on the weekly overview
MUTED_STATUSES = (AttendanceStatus.DAY_OFF, AttendanceStatus.NO_ENTRY)
PLACEHOLDER_STATUSES = MUTED_STATUSES + (AttendanceStatus.NO_SCHEDULE,)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def _short_label(day: date) -> str:
    return f"{day:%b} {day.day}"


def _safe_date(date_str: str) -> Optional[date]:
    try:
        return parse_date(date_str)
    except (TypeError, ValueError):
        logger.warning("Skipping log with invalid date %r", date_str)
        return None


def filter_logs_by_period(logs: List[AnnotatedLog], period: str, start: Optional[str] = None,
                          end: Optional[str] = None, today: Optional[date] = None) -> List[AnnotatedLog]:
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}")
    if period == "all":
        return list(logs)

    today = today or date.today()
    if period == "custom":
        if not start or not end:
            return []
        try:
            range_start, range_end = parse_date(start), parse_date(end)
        except ValueError:
            return []
    else:
        range_start = _week_start(today) if period == "week" else today.replace(day=1)
        range_end = today

    filtered = []
    for log in logs:
        day = _safe_date(log.date)
        if day is not None and range_start <= day <= range_end:
            filtered.append(log)
    return filtered


def _status_series(logs: List[AnnotatedLog]) -> pd.Series:
    return pd.Series([AttendanceStatus(log.status).value for log in logs], dtype="object")


def status_counts(logs: List[AnnotatedLog]) -> Dict[str, int]:
    counts = _status_series(logs).value_counts()
    return {s.value: int(counts.get(s.value, 0)) for s in AttendanceStatus}


def punctuality_breakdown(logs: List[AnnotatedLog]) -> List[Dict[str, Any]]:
    counts = status_counts(logs)
    data = [
        {"name": "On Time & Early", "value": counts["ON_TIME"] + counts["EARLY"]},
        {"name": "Late", "value": counts["LATE"]},
        {"name": "Absent", "value": counts["ABSENT"]},
    ]
    return [d for d in data if d["value"] > 0]


def lateness_trend(logs: List[AnnotatedLog], schedules: List[Schedule], grace_period: int) -> Dict[str, Any]:
    """Average lateness per week (Monday start) over LATE logs only."""
    rows = []
    for log in logs:
        if log.status != AttendanceStatus.LATE:
            continue
        day = _safe_date(log.date)
        if day is None:
            continue
        rows.append({
            "week_start": _week_start(day),
            "lateness": calculate_lateness(log, schedules, grace_period),
        })

    if not rows:
        return {"trend": [], "overall_average": 0}

    df = pd.DataFrame(rows)
    weeks = df.groupby("week_start")["lateness"].agg(["sum", "count"]).sort_index()
    trend = [
        {
            "week_start": week_start.isoformat(),
            "name": _short_label(week_start),
            "avg_lateness": _round_half_up(row["sum"] / row["count"]),
        }
        for week_start, row in weeks.iterrows()
    ]
    overall = _round_half_up(df["lateness"].sum() / len(df))
    return {"trend": trend, "overall_average": overall}


def summary_stats(logs: List[AnnotatedLog]) -> Dict[str, Any]:
    minutes = []
    for log in logs:
        if log.arrival_time and log.status in ARRIVAL_STATUSES:
            try:
                minutes.append(time_to_minutes(log.arrival_time))
            except ValueError:
                logger.warning("Skipping invalid arrival %r on %s", log.arrival_time, log.date)

    if not minutes:
        return {
            "avg_arrival_time": "--:--",
            "on_time_percentage": "N/A",
            "earliest_arrival": "--:--",
            "latest_arrival": "--:--",
        }

    arrivals = pd.Series(minutes)
    counts = status_counts(logs)
    on_time = counts["ON_TIME"] + counts["EARLY"]
    total = sum(counts[s.value] for s in COUNTED_STATUSES)
    percentage = (on_time / total) * 100 if total else 0

    return {
        "avg_arrival_time": minutes_to_time(float(arrivals.mean())),
        "on_time_percentage": f"{_round_half_up(percentage)}%",
        "earliest_arrival": minutes_to_time(int(arrivals.min())),
        "latest_arrival": minutes_to_time(int(arrivals.max())),
    }


def arrival_chart_data(logs: List[AnnotatedLog], schedules: List[Schedule], grace_period: int) -> List[Dict[str, Any]]:
    points = []
    for log in logs:
        if not log.arrival_time or log.status not in ARRIVAL_STATUSES:
            continue
        day = _safe_date(log.date)
        if day is None:
            continue
        session = required_session_for_date(day, schedules)
        if session is None:
            continue
        try:
            required = time_to_minutes(session.start_time)
            arrival = time_to_minutes(log.arrival_time)
        except ValueError:
            logger.warning("Skipping unparseable times on %s", log.date)
            continue
        points.append({
            "date": log.date,
            "name": _short_label(day),
            "arrival_time": arrival,
            "required_time": required,
            "grace_time": required + grace_period,
            "status": log.status,
            "lateness": calculate_lateness(log, schedules, grace_period) if log.status == AttendanceStatus.LATE else 0,
        })
    return sorted(points, key=lambda p: p["date"])


def heatmap_months(period: str, logs: List[AnnotatedLog], start: Optional[str] = None,
                   end: Optional[str] = None, today: Optional[date] = None) -> List[Tuple[int, int]]:
    """(year, month) pairs covered by a period, oldest first."""
    today = today or date.today()
    try:
        if period == "week":
            range_start = _week_start(today)
            range_end = range_start + timedelta(days=6)
        elif period == "month":
            range_start = range_end = today
        elif period == "custom":
            range_start, range_end = parse_date(start), parse_date(end)
        else:
            dates = [d for d in (_safe_date(log.date) for log in logs) if d is not None]
            range_start = min(dates) if dates else today - timedelta(days=90)
            range_end = today
    except (TypeError, ValueError):
        range_start = range_end = today

    months = []
    year, month = range_start.year, range_start.month
    while (year, month) <= (range_end.year, range_end.month):
        months.append((year, month))
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return months


def month_heatmap(year: int, month: int, logs: List[AnnotatedLog], schedules: List[Schedule],
                  grace_period: int, holidays: List[Holiday], today: Optional[date] = None) -> Dict[str, Any]:
    logs_by_date = {log.date: log for log in logs}
    first = date(year, month, 1)
    num_days = calendar.monthrange(year, month)[1]

    days = []
    for offset in range(num_days):
        day = first + timedelta(days=offset)
        date_str = day.isoformat()
        log = logs_by_date.get(date_str)
        status = get_status(date_str, log.arrival_time if log else None, schedules, grace_period,
                            holidays, log.status_tag if log else None, today=today)
        days.append({
            "date": date_str,
            "day": day.day,
            "status": status,
            "label": f"{_short_label(day)}: {STATUS_LABELS[status]}",
            "muted": status in MUTED_STATUSES,
        })

    return {
        "month": f"{year:04d}-{month:02d}",
        "title": f"{first:%B %Y}",
        "padding": first.weekday(),  # Monday-first grid
        "days": days,
    }


def weekly_overview(logs: List[AnnotatedLog], schedules: List[Schedule], holidays: List[Holiday],
                    today: Optional[date] = None) -> List[Dict[str, Any]]:
    today = today or date.today()
    status_by_date = {log.date: log.status for log in logs}
    off_dates = holiday_dates(holidays)
    start = _week_start(today)

    week = []
    for offset in range(7):
        day = start + timedelta(days=offset)
        date_str = day.isoformat()
        if date_str in off_dates:
            status = AttendanceStatus.HOLIDAY
        elif date_str in status_by_date:
            status = AttendanceStatus(status_by_date[date_str])
        else:
            schedule = get_schedule_for_date(day, schedules)
            if schedule is None:
                status = AttendanceStatus.NO_SCHEDULE
            elif first_physical_session(get_rule_for_day(schedule, day)) is None:
                status = AttendanceStatus.DAY_OFF
            else:
                status = AttendanceStatus.ABSENT if day < today else AttendanceStatus.NO_ENTRY

        week.append({
            "date": date_str,
            "name": f"{day:%a}",
            "status": status,
            "value": 10 if status in PLACEHOLDER_STATUSES else 100,
        })
    return week
