import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from fastapi import Body, FastAPI, HTTPException, Query
from pydantic import ValidationError

from . import db
from .analytics import (STATUS_LABELS, arrival_chart_data, filter_logs_by_period, heatmap_months,
                        lateness_trend, month_heatmap, punctuality_breakdown, status_counts,
                        summary_stats, weekly_overview)
from .calculations import annotate_logs, calculate_lateness, get_status
from .config import settings
from .db import get_db_connection, init_db
from .models import (AttendanceLog, DataExport, Holiday, LogEntryRequest, LogResponse, Schedule,
                     SettingsUpdate, StatusTag, SubjectStyle, Task, UserSettings)
from .schedules import get_active_schedule, get_schedule_for_date, required_time_for_date
from .streak import calculate_on_time_streak
from .timeutils import parse_date, time_to_minutes

logger = logging.getLogger(__name__)

Period = Literal["week", "month", "all", "custom"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.LOG_LEVEL)
    init_db()
    yield

app = FastAPI(title="Classdy API", lifespan=lifespan)

# --- Helpers ---

def validate_time(value: Optional[str], field: str) -> Optional[str]:
    if not value:
        return None
    try:
        time_to_minutes(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field} must be HH:mm, got '{value}'.")
    return value

def validate_date(value: str, field: str = "date") -> date:
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"{field} must be YYYY-MM-DD, got '{value}'.")

def check_schedules(schedules: List[Schedule]):
    """Editor boundary: ranges complete, well-formed and ordered; one rule per weekday; HH:mm times."""
    for schedule in schedules:
        if bool(schedule.start_date) != bool(schedule.end_date):
            raise HTTPException(status_code=400, detail="Provide both start and end date, or neither.")
        if schedule.start_date:
            start = validate_date(schedule.start_date, "startDate")
            end = validate_date(schedule.end_date, "endDate")
            if end < start:
                raise HTTPException(status_code=400, detail="endDate must not be before startDate.")
        for rule in schedule.rules:
            if not 0 <= rule.day_of_week <= 6:
                raise HTTPException(status_code=400, detail="dayOfWeek must be between 0 (Sunday) and 6 (Saturday).")
            for session in rule.classes:
                validate_time(session.start_time, "startTime")
                validate_time(session.end_time, "endTime")
        if len({r.day_of_week for r in schedule.rules}) != len(schedule.rules):
            raise HTTPException(status_code=400, detail="At most one rule per day of week.")

def load_context(conn):
    return db.load_schedules(conn), db.load_holidays(conn), db.load_settings(conn)

def annotated_logs(conn, today: Optional[date] = None):
    schedules, holidays, user_settings = load_context(conn)
    logs = annotate_logs(db.load_logs(conn), schedules, user_settings.grace_period, holidays, today=today)
    return logs, schedules, holidays, user_settings

def to_response(log, schedules, grace_period: int) -> LogResponse:
    return LogResponse(**log.model_dump(), lateness=calculate_lateness(log, schedules, grace_period))

# --- Settings ---

@app.get("/settings", response_model=UserSettings)
def get_settings():
    conn = get_db_connection()
    try:
        return db.load_settings(conn)
    finally:
        conn.close()

@app.post("/settings", response_model=UserSettings)
def update_settings(req: SettingsUpdate):
    conn = get_db_connection()
    try:
        current = db.load_settings(conn)
        merged = current.model_copy(update=req.model_dump(exclude_none=True))
        db.save_settings(conn, merged)
        conn.commit()
        return merged
    finally:
        conn.close()

# --- Subjects ---

@app.get("/subjects", response_model=Dict[str, SubjectStyle])
def get_subjects():
    conn = get_db_connection()
    try:
        return db.load_subject_meta(conn)
    finally:
        conn.close()

@app.put("/subjects", response_model=Dict[str, SubjectStyle])
def replace_subjects(meta: Dict[str, SubjectStyle]):
    conn = get_db_connection()
    try:
        db.replace_subject_meta(conn, meta)
        conn.commit()
        return meta
    finally:
        conn.close()

# --- Schedules ---

@app.get("/schedules", response_model=List[Schedule])
def list_schedules():
    conn = get_db_connection()
    try:
        return db.load_schedules(conn)
    finally:
        conn.close()

@app.post("/schedules", response_model=Schedule)
def save_schedule(schedule: Schedule):
    check_schedules([schedule])
    conn = get_db_connection()
    try:
        db.upsert_schedule(conn, schedule)
        conn.commit()
        return schedule
    finally:
        conn.close()

@app.put("/schedules", response_model=List[Schedule])
def replace_schedules(schedules: List[Schedule]):
    check_schedules(schedules)
    conn = get_db_connection()
    try:
        db.replace_schedules(conn, schedules)
        conn.commit()
        return db.load_schedules(conn)
    finally:
        conn.close()

@app.get("/schedules/active", response_model=Optional[Schedule])
def active_schedule():
    conn = get_db_connection()
    try:
        schedules = db.load_schedules(conn)
        logs = db.load_logs(conn)
    finally:
        conn.close()

    # Reference is the most recent log, else today
    reference = date.today()
    if logs:
        try:
            reference = parse_date(logs[0].date)
        except ValueError:
            logger.warning("Latest log has invalid date %r, using today", logs[0].date)
    return get_active_schedule(schedules, reference)

@app.get("/schedules/for-date", response_model=Optional[Schedule])
def schedule_for_date(day: date = Query(..., alias="date")):
    conn = get_db_connection()
    try:
        return get_schedule_for_date(day, db.load_schedules(conn))
    finally:
        conn.close()

@app.get("/schedules/{schedule_id}", response_model=Schedule)
def get_schedule(schedule_id: str):
    conn = get_db_connection()
    try:
        schedule = db.get_schedule(conn, schedule_id)
    finally:
        conn.close()
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found.")
    return schedule

@app.delete("/schedules/{schedule_id}")
def delete_schedule(schedule_id: str):
    conn = get_db_connection()
    try:
        if not db.delete_schedule(conn, schedule_id):
            raise HTTPException(status_code=404, detail="Schedule not found.")
        conn.commit()
    finally:
        conn.close()
    logger.info("Deleted schedule %s", schedule_id)
    return {"status": "deleted"}

@app.put("/schedules/{schedule_id}/days/{day_of_week}/classes/{class_id}/tasks", response_model=Schedule)
def update_class_tasks(schedule_id: str, day_of_week: int, class_id: str, tasks: List[Task]):
    conn = get_db_connection()
    try:
        schedule = db.get_schedule(conn, schedule_id)
        if not schedule:
            raise HTTPException(status_code=404, detail="Schedule not found.")

        session = next((c for r in schedule.rules if r.day_of_week == day_of_week
                        for c in r.classes if c.id == class_id), None)
        if session is None:
            raise HTTPException(status_code=404, detail="Class not found for that day.")
        session.tasks = tasks

        db.upsert_schedule(conn, schedule)
        conn.commit()
        return schedule
    finally:
        conn.close()

# --- Logs ---

@app.get("/logs", response_model=List[LogResponse])
def list_logs():
    conn = get_db_connection()
    try:
        logs, schedules, _, user_settings = annotated_logs(conn)
    finally:
        conn.close()
    return [to_response(log, schedules, user_settings.grace_period) for log in logs]

@app.post("/logs", response_model=LogResponse)
def add_or_update_log(req: LogEntryRequest):
    arrival = validate_time(req.arrival_time, "arrivalTime")
    departure = validate_time(req.departure_time, "departureTime")

    # 1. Tagged days carry no times
    if req.status_tag and (arrival or departure):
        raise HTTPException(status_code=400, detail=f"Cannot log times on a day tagged '{req.status_tag}'. Clear the times or the tag.")

    # 2. Time logic: out > in
    if arrival and departure and time_to_minutes(departure) <= time_to_minutes(arrival):
        raise HTTPException(status_code=400, detail="Departure must be after arrival.")

    log = AttendanceLog(date=req.date.isoformat(), arrival_time=arrival,
                        departure_time=departure, status_tag=req.status_tag)

    conn = get_db_connection()
    try:
        db.upsert_log(conn, log)
        conn.commit()
        schedules, holidays, user_settings = load_context(conn)
    finally:
        conn.close()

    annotated = annotate_logs([log], schedules, user_settings.grace_period, holidays)[0]
    return to_response(annotated, schedules, user_settings.grace_period)

@app.put("/logs", response_model=List[AttendanceLog])
def replace_logs(logs: List[AttendanceLog]):
    # Last entry wins for duplicate dates
    by_date = {log.date: log for log in logs}
    conn = get_db_connection()
    try:
        db.replace_logs(conn, list(by_date.values()))
        conn.commit()
        return db.load_logs(conn)
    finally:
        conn.close()

@app.delete("/logs/{log_date}")
def delete_log(log_date: str):
    conn = get_db_connection()
    try:
        if not db.delete_log(conn, log_date):
            raise HTTPException(status_code=404, detail="No log for that date.")
        conn.commit()
    finally:
        conn.close()
    return {"status": "deleted"}

# --- Holidays ---

@app.get("/holidays", response_model=List[Holiday])
def list_holidays():
    conn = get_db_connection()
    try:
        return db.load_holidays(conn)
    finally:
        conn.close()

@app.post("/holidays", response_model=Holiday)
def add_holiday(holiday: Holiday):
    validate_date(holiday.date)
    conn = get_db_connection()
    try:
        db.upsert_holiday(conn, holiday)
        conn.commit()
        return holiday
    finally:
        conn.close()

@app.delete("/holidays/{holiday_date}")
def delete_holiday(holiday_date: str):
    conn = get_db_connection()
    try:
        if not db.delete_holiday(conn, holiday_date):
            raise HTTPException(status_code=404, detail="Holiday not found.")
        conn.commit()
    finally:
        conn.close()
    return {"status": "deleted"}

# --- Status & Streak ---

@app.get("/status")
def evaluate_status(day: date = Query(..., alias="date"),
                    arrival_time: Optional[str] = Query(None, alias="arrivalTime"),
                    status_tag: Optional[StatusTag] = Query(None, alias="statusTag")):
    arrival = validate_time(arrival_time, "arrivalTime")
    conn = get_db_connection()
    try:
        schedules, holidays, user_settings = load_context(conn)
    finally:
        conn.close()

    date_str = day.isoformat()
    status = get_status(date_str, arrival, schedules, user_settings.grace_period, holidays, status_tag)
    probe = AttendanceLog(date=date_str, arrival_time=arrival)
    return {
        "date": date_str,
        "status": status,
        "label": STATUS_LABELS[status],
        "requiredTime": required_time_for_date(day, schedules),
        "lateness": calculate_lateness(probe, schedules, user_settings.grace_period),
    }

@app.get("/streak")
def get_streak():
    conn = get_db_connection()
    try:
        logs, schedules, holidays, _ = annotated_logs(conn)
    finally:
        conn.close()
    return {"streak": calculate_on_time_streak(logs, schedules, holidays)}

@app.get("/today")
def get_today():
    today = date.today()
    today_str = today.isoformat()
    conn = get_db_connection()
    try:
        logs, schedules, holidays, user_settings = annotated_logs(conn, today=today)
    finally:
        conn.close()

    today_log = next((log for log in logs if log.date == today_str), None)
    if today_log:
        status = today_log.status
        lateness = calculate_lateness(today_log, schedules, user_settings.grace_period)
    else:
        status = get_status(today_str, None, schedules, user_settings.grace_period, holidays, today=today)
        lateness = 0

    return {
        "date": today_str,
        "log": today_log,
        "status": status,
        "label": STATUS_LABELS[status],
        "requiredTime": required_time_for_date(today, schedules),
        "lateness": lateness,
        "streak": calculate_on_time_streak(logs, schedules, holidays, today=today),
    }

# --- Analytics ---

def _period_logs(period: str, start: Optional[str], end: Optional[str]):
    conn = get_db_connection()
    try:
        logs, schedules, holidays, user_settings = annotated_logs(conn)
    finally:
        conn.close()
    return filter_logs_by_period(logs, period, start, end), logs, schedules, holidays, user_settings

@app.get("/analytics/summary")
def analytics_summary(period: Period = "month", start: Optional[str] = None, end: Optional[str] = None):
    filtered, *_ = _period_logs(period, start, end)
    return summary_stats(filtered)

@app.get("/analytics/punctuality")
def analytics_punctuality(period: Period = "month", start: Optional[str] = None, end: Optional[str] = None):
    filtered, *_ = _period_logs(period, start, end)
    return {"breakdown": punctuality_breakdown(filtered), "counts": status_counts(filtered)}

@app.get("/analytics/lateness-trend")
def analytics_lateness_trend(period: Period = "month", start: Optional[str] = None, end: Optional[str] = None):
    filtered, _, schedules, _, user_settings = _period_logs(period, start, end)
    return lateness_trend(filtered, schedules, user_settings.grace_period)

@app.get("/analytics/arrivals")
def analytics_arrivals(period: Period = "month", start: Optional[str] = None, end: Optional[str] = None):
    filtered, _, schedules, _, user_settings = _period_logs(period, start, end)
    return arrival_chart_data(filtered, schedules, user_settings.grace_period)

@app.get("/analytics/heatmap")
def analytics_heatmap(year: Optional[int] = Query(None, ge=1, le=9999), month: Optional[int] = Query(None, ge=1, le=12),
                      period: Period = "month", start: Optional[str] = None, end: Optional[str] = None):
    _, logs, schedules, holidays, user_settings = _period_logs("all", None, None)
    if year and month:
        months = [(year, month)]
    else:
        months = heatmap_months(period, logs, start, end)
    return [month_heatmap(y, m, logs, schedules, user_settings.grace_period, holidays) for y, m in months]

@app.get("/analytics/week")
def analytics_week():
    conn = get_db_connection()
    try:
        logs, schedules, holidays, _ = annotated_logs(conn)
    finally:
        conn.close()
    return weekly_overview(logs, schedules, holidays)

# --- Import / Export ---

@app.get("/export", response_model=DataExport)
def export_data():
    conn = get_db_connection()
    try:
        return DataExport(
            settings=db.load_settings(conn),
            schedules=db.load_schedules(conn),
            logs=db.load_logs(conn),
            subject_meta=db.load_subject_meta(conn),
        )
    finally:
        conn.close()

@app.post("/import")
def import_data(payload: Dict[str, Any] = Body(...)):
    # Validate every section first so a bad file changes nothing
    try:
        update = SettingsUpdate.model_validate(payload["settings"]) if isinstance(payload.get("settings"), dict) else None
        schedules = [Schedule.model_validate(s) for s in payload["schedules"]] if isinstance(payload.get("schedules"), list) else None
        logs = [AttendanceLog.model_validate(entry) for entry in payload["logs"]] if isinstance(payload.get("logs"), list) else None
        meta = {k: SubjectStyle.model_validate(v) for k, v in payload["subjectMeta"].items()} if isinstance(payload.get("subjectMeta"), dict) else None
    except ValidationError as e:
        logger.error("Failed to import data: %s", e)
        raise HTTPException(status_code=400, detail="Failed to import data. Please check the file format.")
    if schedules is not None:
        check_schedules(schedules)

    conn = get_db_connection()
    try:
        if update is not None:
            merged = db.load_settings(conn).model_copy(update=update.model_dump(exclude_none=True))
            db.save_settings(conn, merged)
        if schedules is not None:
            db.replace_schedules(conn, schedules)
        if meta is not None:
            db.replace_subject_meta(conn, meta)
        if logs is not None:
            db.replace_logs(conn, list({log.date: log for log in logs}.values()))
        conn.commit()
    finally:
        conn.close()

    imported = [name for name, value in (("settings", update), ("schedules", schedules),
                                         ("subjectMeta", meta), ("logs", logs)) if value is not None]
    logger.info("Imported sections: %s", ", ".join(imported) or "none")
    return {"status": "imported", "sections": imported}
