import json
import sqlite3
from typing import Dict, List, Optional

from .config import settings
from .models import AttendanceLog, Holiday, Schedule, SubjectStyle, UserSettings


def get_db_connection():
    conn = sqlite3.connect(settings.DB_NAME)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn

def init_db():
    conn = get_db_connection()
    c = conn.cursor()

    # Single row, id is always 1
    c.execute("""
    CREATE TABLE IF NOT EXISTS settings (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        grace_period INTEGER NOT NULL,
        theme TEXT CHECK (theme IN ('light', 'dark', 'system')) DEFAULT 'system',
        accent_color TEXT DEFAULT '#007AFF',
        notifications_enabled INTEGER DEFAULT 0,
        assistant_name TEXT,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """)
    c.execute("INSERT OR IGNORE INTO settings (id, grace_period, assistant_name) VALUES (1, ?, 'Bros')",
              (settings.DEFAULT_GRACE_PERIOD,))

    # Order matters: date resolution picks the first matching schedule
    c.execute("""
    CREATE TABLE IF NOT EXISTS schedules (
        id TEXT PRIMARY KEY,
        position INTEGER NOT NULL,
        name TEXT NOT NULL,
        start_date TEXT,
        end_date TEXT,
        rules TEXT NOT NULL DEFAULT '[]'
    );
    """)

    c.execute("""
    CREATE TABLE IF NOT EXISTS attendance_logs (
        date TEXT PRIMARY KEY,
        arrival_time TEXT,
        departure_time TEXT,
        status_tag TEXT CHECK (status_tag IN ('Absent', 'Holiday')),
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """)

    c.execute("""
    CREATE TABLE IF NOT EXISTS holidays (
        date TEXT PRIMARY KEY,
        name TEXT NOT NULL
    );
    """)

    c.execute("""
    CREATE TABLE IF NOT EXISTS subject_meta (
        subject TEXT PRIMARY KEY,
        color TEXT NOT NULL,
        icon TEXT
    );
    """)

    conn.commit()
    conn.close()


# --- Settings ---
def load_settings(conn) -> UserSettings:
    row = conn.execute("SELECT * FROM settings WHERE id = 1").fetchone()
    if not row:
        return UserSettings(grace_period=settings.DEFAULT_GRACE_PERIOD)
    return UserSettings(
        grace_period=row['grace_period'],
        theme=row['theme'],
        accent_color=row['accent_color'],
        notifications_enabled=bool(row['notifications_enabled']),
        assistant_name=row['assistant_name'],
    )

def save_settings(conn, user_settings: UserSettings):
    conn.execute("""
        INSERT INTO settings (id, grace_period, theme, accent_color, notifications_enabled, assistant_name)
        VALUES (1, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            grace_period=excluded.grace_period,
            theme=excluded.theme,
            accent_color=excluded.accent_color,
            notifications_enabled=excluded.notifications_enabled,
            assistant_name=excluded.assistant_name,
            updated_at=CURRENT_TIMESTAMP
    """, (user_settings.grace_period, user_settings.theme, user_settings.accent_color,
          int(user_settings.notifications_enabled), user_settings.assistant_name))


# --- Schedules ---
def _row_to_schedule(row) -> Schedule:
    return Schedule(
        id=row['id'],
        name=row['name'],
        start_date=row['start_date'],
        end_date=row['end_date'],
        rules=json.loads(row['rules']),
    )

def _rules_json(schedule: Schedule) -> str:
    return json.dumps([r.model_dump(by_alias=True) for r in schedule.rules], ensure_ascii=False)

def load_schedules(conn) -> List[Schedule]:
    rows = conn.execute("SELECT * FROM schedules ORDER BY position").fetchall()
    return [_row_to_schedule(r) for r in rows]

def get_schedule(conn, schedule_id: str) -> Optional[Schedule]:
    row = conn.execute("SELECT * FROM schedules WHERE id = ?", (schedule_id,)).fetchone()
    return _row_to_schedule(row) if row else None

def upsert_schedule(conn, schedule: Schedule):
    exists = conn.execute("SELECT position FROM schedules WHERE id = ?", (schedule.id,)).fetchone()
    if exists:
        conn.execute("UPDATE schedules SET name = ?, start_date = ?, end_date = ?, rules = ? WHERE id = ?",
                     (schedule.name, schedule.start_date, schedule.end_date, _rules_json(schedule), schedule.id))
        return
    # New schedules go last
    position = conn.execute("SELECT COALESCE(MAX(position), -1) + 1 FROM schedules").fetchone()[0]
    conn.execute("INSERT INTO schedules (id, position, name, start_date, end_date, rules) VALUES (?, ?, ?, ?, ?, ?)",
                 (schedule.id, position, schedule.name, schedule.start_date, schedule.end_date, _rules_json(schedule)))

def replace_schedules(conn, schedules: List[Schedule]):
    conn.execute("DELETE FROM schedules")
    for position, schedule in enumerate(schedules):
        conn.execute("INSERT OR REPLACE INTO schedules (id, position, name, start_date, end_date, rules) VALUES (?, ?, ?, ?, ?, ?)",
                     (schedule.id, position, schedule.name, schedule.start_date, schedule.end_date, _rules_json(schedule)))

def delete_schedule(conn, schedule_id: str) -> bool:
    cur = conn.execute("DELETE FROM schedules WHERE id = ?", (schedule_id,))
    return cur.rowcount > 0


# --- Logs ---
def _row_to_log(row) -> AttendanceLog:
    return AttendanceLog(
        date=row['date'],
        arrival_time=row['arrival_time'],
        departure_time=row['departure_time'],
        status_tag=row['status_tag'],
    )

def load_logs(conn) -> List[AttendanceLog]:
    # Newest first
    rows = conn.execute("SELECT * FROM attendance_logs ORDER BY date DESC").fetchall()
    return [_row_to_log(r) for r in rows]

def get_log(conn, date_str: str) -> Optional[AttendanceLog]:
    row = conn.execute("SELECT * FROM attendance_logs WHERE date = ?", (date_str,)).fetchone()
    return _row_to_log(row) if row else None

def upsert_log(conn, log: AttendanceLog):
    conn.execute("""
        INSERT INTO attendance_logs (date, arrival_time, departure_time, status_tag)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(date) DO UPDATE SET
            arrival_time=excluded.arrival_time,
            departure_time=excluded.departure_time,
            status_tag=excluded.status_tag,
            updated_at=CURRENT_TIMESTAMP
    """, (log.date, log.arrival_time, log.departure_time, log.status_tag))

def replace_logs(conn, logs: List[AttendanceLog]):
    conn.execute("DELETE FROM attendance_logs")
    for log in logs:
        upsert_log(conn, log)

def delete_log(conn, date_str: str) -> bool:
    cur = conn.execute("DELETE FROM attendance_logs WHERE date = ?", (date_str,))
    return cur.rowcount > 0


# --- Holidays ---
def load_holidays(conn) -> List[Holiday]:
    rows = conn.execute("SELECT * FROM holidays ORDER BY date").fetchall()
    return [Holiday(date=r['date'], name=r['name']) for r in rows]

def upsert_holiday(conn, holiday: Holiday):
    conn.execute("INSERT INTO holidays (date, name) VALUES (?, ?) ON CONFLICT(date) DO UPDATE SET name=excluded.name",
                 (holiday.date, holiday.name))

def delete_holiday(conn, date_str: str) -> bool:
    cur = conn.execute("DELETE FROM holidays WHERE date = ?", (date_str,))
    return cur.rowcount > 0


# --- Subject metadata ---
def load_subject_meta(conn) -> Dict[str, SubjectStyle]:
    rows = conn.execute("SELECT * FROM subject_meta ORDER BY subject").fetchall()
    return {r['subject']: SubjectStyle(color=r['color'], icon=r['icon']) for r in rows}

def replace_subject_meta(conn, meta: Dict[str, SubjectStyle]):
    conn.execute("DELETE FROM subject_meta")
    for subject, style in meta.items():
        conn.execute("INSERT INTO subject_meta (subject, color, icon) VALUES (?, ?, ?)",
                     (subject, style.color, style.icon))
