from datetime import date

from classdy.models import Schedule, ScheduleRule
from classdy.schedules import (first_physical_session, get_active_schedule, get_rule_for_day,
                               get_schedule_for_date, js_weekday, required_time_for_date)

from conftest import make_session


def ranged(schedule_id, start, end):
    return Schedule(id=schedule_id, name=schedule_id, start_date=start, end_date=end)


def test_js_weekday_starts_on_sunday():
    assert js_weekday(date(2025, 6, 8)) == 0  # Sunday
    assert js_weekday(date(2025, 6, 9)) == 1  # Monday
    assert js_weekday(date(2025, 6, 14)) == 6  # Saturday


def test_range_is_inclusive_on_both_ends(semester):
    assert get_schedule_for_date(date(2025, 6, 9), [semester]) is semester
    assert get_schedule_for_date(date(2025, 10, 10), [semester]) is semester
    assert get_schedule_for_date(date(2025, 6, 8), [semester]) is None
    assert get_schedule_for_date(date(2025, 10, 11), [semester]) is None


def test_unranged_schedule_is_never_matched():
    open_ended = Schedule(id="default", name="Default")
    half = Schedule(id="half", name="Half", start_date="2025-01-01")
    assert get_schedule_for_date(date(2025, 6, 9), [open_ended, half]) is None


def test_malformed_range_is_skipped():
    broken = ranged("broken", "2025-06-XX", "2025-10-10")
    good = ranged("good", "2025-06-01", "2025-06-30")
    assert get_schedule_for_date(date(2025, 6, 9), [broken, good]) is good


def test_inverted_range_matches_nothing():
    assert get_schedule_for_date(date(2025, 6, 9), [ranged("x", "2025-07-01", "2025-06-01")]) is None


def test_overlapping_ranges_resolve_in_input_order():
    a = ranged("a", "2025-06-01", "2025-06-30")
    b = ranged("b", "2025-06-09", "2025-07-31")
    d = date(2025, 6, 15)
    assert get_schedule_for_date(d, [a, b]) is a
    assert get_schedule_for_date(d, [b, a]) is b


def test_active_schedule_falls_back_to_first():
    open_ended = Schedule(id="default", name="Default")
    summer = ranged("summer", "2025-04-01", "2025-05-31")
    assert get_active_schedule([open_ended, summer], date(2025, 5, 1)) is summer
    assert get_active_schedule([open_ended, summer], date(2025, 9, 1)) is open_ended
    assert get_active_schedule([], date(2025, 9, 1)) is None


def test_missing_rule_is_none(semester):
    assert get_rule_for_day(semester, date(2025, 6, 15)) is None  # Sunday
    assert get_rule_for_day(semester, date(2025, 6, 14)).classes == []


def test_first_physical_session_skips_remote_and_sorts():
    rule = ScheduleRule(day_of_week=3, classes=[
        make_session("late", "13:00"),
        make_session("remote", "07:00", online=True),
        make_session("early", "08:30"),
    ])
    assert first_physical_session(rule).id == "early"


def test_first_physical_session_none_when_all_remote_or_empty():
    assert first_physical_session(None) is None
    assert first_physical_session(ScheduleRule(day_of_week=1, classes=[])) is None
    remote = ScheduleRule(day_of_week=1, classes=[make_session("r", "08:00", online=True)])
    assert first_physical_session(remote) is None


def test_required_time_for_date(semester):
    assert required_time_for_date(date(2025, 6, 9), [semester]) == "09:00"
    assert required_time_for_date(date(2025, 6, 11), [semester]) == "09:30"
    assert required_time_for_date(date(2025, 6, 10), [semester]) is None
    assert required_time_for_date(date(2025, 12, 1), [semester]) is None
