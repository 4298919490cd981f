from datetime import date, timedelta
from typing import List, Optional

from .calculations import holiday_dates
from .models import AnnotatedLog, AttendanceStatus, Holiday, Schedule
from .schedules import is_working_day

MAX_STREAK_DAYS = 365

STREAK_STATUSES = (AttendanceStatus.ON_TIME, AttendanceStatus.EARLY)


def calculate_on_time_streak(logs: List[AnnotatedLog], schedules: List[Schedule],
                             holidays: List[Holiday], today: Optional[date] = None) -> int:
    """
    Consecutive on-time/early working days, walking back from today.
    Non-working days are skipped. The first working day that is unlogged,
    late, absent or anything else ends the count.
    """
    logs_by_date = {log.date: log for log in logs}
    off_dates = holiday_dates(holidays)
    current = today or date.today()
    streak = 0

    for _ in range(MAX_STREAK_DAYS):
        if not is_working_day(current, schedules, off_dates):
            current -= timedelta(days=1)
            continue

        log = logs_by_date.get(current.isoformat())
        # Missing log: a past day breaks the streak, today just isn't counted yet
        if log is None or log.status not in STREAK_STATUSES:
            return streak

        streak += 1
        current -= timedelta(days=1)

    return streak
