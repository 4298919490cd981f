from datetime import date, timedelta

from classdy.calculations import annotate_logs
from classdy.models import AttendanceLog, Holiday, Schedule, ScheduleRule
from classdy.streak import MAX_STREAK_DAYS, calculate_on_time_streak

from conftest import make_session

GRACE = 10


def streak(semester, entries, today, holidays=()):
    """entries: {date: arrival or tag}"""
    logs = []
    for day, value in entries.items():
        if value in ("Absent", "Holiday"):
            logs.append(AttendanceLog(date=day, status_tag=value))
        else:
            logs.append(AttendanceLog(date=day, arrival_time=value))
    annotated = annotate_logs(logs, [semester], GRACE, list(holidays), today=today)
    return calculate_on_time_streak(annotated, [semester], list(holidays), today=today)


# Scenario 5
def test_late_day_breaks_streak(semester):
    entries = {
        "2025-06-12": "09:05",  # Thu on time
        "2025-06-13": "09:05",  # Fri on time
        "2025-06-16": "09:30",  # Mon late
        "2025-06-18": "09:20",  # Wed early (required 09:30)
        "2025-06-19": "09:05",  # Thu on time
    }
    assert streak(semester, entries, today=date(2025, 6, 19)) == 2


def test_weekends_and_remote_days_are_skipped(semester):
    entries = {
        "2025-06-16": "09:30",  # Mon late
        "2025-06-18": "09:00",  # Wed early
        "2025-06-19": "08:55",  # Thu early
        "2025-06-20": "09:10",  # Fri on time
        "2025-06-23": "09:01",  # Mon on time
    }
    # Sat, Sun and the remote-only Tuesday neither count nor break
    assert streak(semester, entries, today=date(2025, 6, 23)) == 4


def test_holiday_without_log_is_skipped(semester):
    entries = {
        "2025-06-18": "09:00",
        "2025-06-20": "09:00",
    }
    holidays = [Holiday(date="2025-06-19", name="Sports Day")]
    assert streak(semester, entries, today=date(2025, 6, 20), holidays=holidays) == 2


# Scenario 4
def test_missing_past_log_breaks_streak(semester):
    entries = {
        "2025-06-18": "09:00",  # Wed, before the gap
        "2025-06-20": "09:00",  # Fri today
    }
    # Thu 19th has no log
    assert streak(semester, entries, today=date(2025, 6, 20)) == 1


def test_unlogged_today_ends_count(semester):
    entries = {"2025-06-18": "09:00", "2025-06-19": "09:00"}
    assert streak(semester, entries, today=date(2025, 6, 20)) == 0
    assert streak(semester, entries, today=date(2025, 6, 19)) == 2


def test_absent_tag_breaks_streak(semester):
    entries = {"2025-06-18": "09:00", "2025-06-19": "Absent", "2025-06-20": "09:00"}
    assert streak(semester, entries, today=date(2025, 6, 20)) == 1


def test_holiday_tag_on_working_day_stops(semester):
    entries = {"2025-06-18": "09:00", "2025-06-19": "Holiday", "2025-06-20": "09:00"}
    assert streak(semester, entries, today=date(2025, 6, 20)) == 1


def test_no_schedule_means_no_streak():
    assert calculate_on_time_streak([], [], [], today=date(2025, 6, 20)) == 0


def test_streak_is_capped():
    everyday = Schedule(
        id="all-year",
        name="All year",
        start_date="2023-01-01",
        end_date="2026-12-31",
        rules=[ScheduleRule(day_of_week=d, classes=[make_session(f"d{d}", "09:00")]) for d in range(7)],
    )
    today = date(2025, 6, 20)
    logs = [AttendanceLog(date=(today - timedelta(days=i)).isoformat(), arrival_time="08:30")
            for i in range(MAX_STREAK_DAYS + 50)]
    annotated = annotate_logs(logs, [everyday], 0, [], today=today)
    assert calculate_on_time_streak(annotated, [everyday], [], today=today) == MAX_STREAK_DAYS
