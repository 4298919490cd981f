import pytest
from fastapi.testclient import TestClient

from classdy.config import settings
from classdy.models import ClassSession, Schedule, ScheduleRule


def make_session(session_id, start, end=None, online=False, subject="Mathematics"):
    return ClassSession(id=session_id, subject=subject, start_time=start,
                        end_time=end or start, is_online=online)


@pytest.fixture
def semester():
    """2025-06-09 (Mon) .. 2025-10-10 (Fri).

    Mon: physical 09:00 after a remote 08:00 -> required 09:00
    Tue: remote only -> day off
    Wed: physical 10:00 and 09:30, listed out of order -> required 09:30
    Thu/Fri: physical 09:00
    Sat: empty rule, Sun: no rule
    """
    return Schedule(
        id="sem1",
        name="Semester 1",
        start_date="2025-06-09",
        end_date="2025-10-10",
        rules=[
            ScheduleRule(day_of_week=1, classes=[
                make_session("mon-0", "08:00", "08:45", online=True, subject="History"),
                make_session("mon-1", "09:00", "10:30"),
            ]),
            ScheduleRule(day_of_week=2, classes=[
                make_session("tue-1", "08:15", "09:45", online=True, subject="History"),
            ]),
            ScheduleRule(day_of_week=3, classes=[
                make_session("wed-2", "10:00", "11:20", subject="Physics"),
                make_session("wed-1", "09:30", "09:55"),
            ]),
            ScheduleRule(day_of_week=4, classes=[make_session("thu-1", "09:00", "10:30")]),
            ScheduleRule(day_of_week=5, classes=[make_session("fri-1", "09:00", "10:30")]),
            ScheduleRule(day_of_week=6, classes=[]),
        ],
    )


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_NAME", str(tmp_path / "classdy-test.db"))
    from classdy.main import app
    with TestClient(app) as c:
        yield c
