import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional

from .models import AnnotatedLog, AttendanceLog, AttendanceStatus, Holiday, Schedule
from .schedules import first_physical_session, get_rule_for_day, get_schedule_for_date, required_time_for_date
from .timeutils import combine_date_time, parse_date

logger = logging.getLogger(__name__)


def holiday_dates(holidays: Iterable[Holiday]) -> set:
    return {h.date for h in holidays}


def get_status(date_str: str, arrival_time: Optional[str], schedules: List[Schedule],
               grace_period: int, holidays: List[Holiday],
               status_tag: Optional[str] = None, today: Optional[date] = None) -> AttendanceStatus:
    """
    First match wins:
    no schedule > holiday > 'Absent' tag > 'Holiday' tag > day off > no arrival > timing.
    Arriving exactly at the required time counts as EARLY.
    """
    try:
        day = parse_date(date_str)
        schedule = get_schedule_for_date(day, schedules)

        if schedule is None:
            return AttendanceStatus.NO_SCHEDULE

        if date_str in holiday_dates(holidays):
            return AttendanceStatus.HOLIDAY

        if status_tag == 'Absent':
            return AttendanceStatus.ABSENT
        if status_tag == 'Holiday':
            return AttendanceStatus.HOLIDAY

        first_class = first_physical_session(get_rule_for_day(schedule, day))
        if first_class is None:
            return AttendanceStatus.DAY_OFF

        if not arrival_time:
            # Past working day without an entry is an absence, today/future is just pending
            today = today or date.today()
            return AttendanceStatus.ABSENT if day < today else AttendanceStatus.NO_ENTRY

        arrival = combine_date_time(date_str, arrival_time)
        required = combine_date_time(date_str, first_class.start_time)
        grace = required + timedelta(minutes=grace_period)

        if arrival > grace:
            return AttendanceStatus.LATE
        if arrival <= required:
            return AttendanceStatus.EARLY
        return AttendanceStatus.ON_TIME
    except (TypeError, ValueError) as e:
        logger.error("Error calculating status for %s: %s", date_str, e)
        return AttendanceStatus.NO_SCHEDULE


def calculate_lateness(log: AttendanceLog, schedules: List[Schedule], grace_period: int = 0) -> int:
    """Minutes past required time + grace. 0 if on-time, early, or not applicable."""
    if not log.arrival_time:
        return 0
    try:
        required_time = required_time_for_date(parse_date(log.date), schedules)
        if required_time is None:
            return 0

        arrival = combine_date_time(log.date, log.arrival_time)
        deadline = combine_date_time(log.date, required_time) + timedelta(minutes=grace_period)
        diff = int((arrival - deadline).total_seconds() // 60)
        return max(0, diff)
    except (TypeError, ValueError) as e:
        logger.error("Error calculating lateness for %s: %s", log.date, e)
        return 0


def annotate_logs(logs: List[AttendanceLog], schedules: List[Schedule], grace_period: int,
                  holidays: List[Holiday], today: Optional[date] = None) -> List[AnnotatedLog]:
    annotated = []
    for log in logs:
        status = get_status(log.date, log.arrival_time, schedules, grace_period, holidays,
                            log.status_tag, today=today)
        annotated.append(AnnotatedLog(**log.model_dump(), status=status))
    return annotated
