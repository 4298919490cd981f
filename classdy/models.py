from enum import Enum
from typing import Dict, List, Literal, Optional
from datetime import date

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .timeutils import parse_date


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire (both accepted on input)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- SCHEDULE MODELS ---
class Task(CamelModel):
    id: str
    text: str
    completed: bool = False

class ClassSession(CamelModel):
    id: str
    subject: str
    start_time: str  # HH:mm
    end_time: str  # HH:mm
    tasks: List[Task] = []
    is_online: bool = False  # flipped/remote, no physical attendance required

class ScheduleRule(CamelModel):
    day_of_week: int  # 0 = Sunday .. 6 = Saturday
    classes: List[ClassSession] = []

class Schedule(CamelModel):
    id: str
    name: str
    rules: List[ScheduleRule] = []
    start_date: Optional[str] = None  # YYYY-MM-DD
    end_date: Optional[str] = None  # YYYY-MM-DD
# -------------------

class AttendanceStatus(str, Enum):
    ON_TIME = "ON_TIME"
    LATE = "LATE"
    EARLY = "EARLY"
    DAY_OFF = "DAY_OFF"
    ABSENT = "ABSENT"
    HOLIDAY = "HOLIDAY"
    NO_ENTRY = "NO_ENTRY"
    NO_SCHEDULE = "NO_SCHEDULE"


StatusTag = Literal['Absent', 'Holiday']
Theme = Literal['light', 'dark', 'system']


class AttendanceLog(CamelModel):
    id: Optional[str] = None  # always the date
    date: str  # YYYY-MM-DD
    arrival_time: Optional[str] = None  # HH:mm
    departure_time: Optional[str] = None
    status_tag: Optional[StatusTag] = None

    @field_validator("date")
    @classmethod
    def _iso_date(cls, value: str) -> str:
        # Logs are keyed by the date string, so only one spelling is allowed
        parse_date(value)
        return value

    @model_validator(mode="after")
    def _id_is_date(self):
        self.id = self.date
        return self

class AnnotatedLog(AttendanceLog):
    status: AttendanceStatus

class LogResponse(AnnotatedLog):
    lateness: int = 0

class Holiday(CamelModel):
    date: str  # YYYY-MM-DD
    name: str


class UserSettings(CamelModel):
    grace_period: int = 5  # minutes
    theme: Theme = 'system'
    accent_color: str = '#007AFF'
    notifications_enabled: bool = False
    assistant_name: Optional[str] = 'Bros'

class SettingsUpdate(CamelModel):
    grace_period: Optional[int] = None
    theme: Optional[Theme] = None
    accent_color: Optional[str] = None
    notifications_enabled: Optional[bool] = None
    assistant_name: Optional[str] = None


class SubjectStyle(CamelModel):
    color: str
    icon: Optional[str] = None

SubjectMeta = Dict[str, SubjectStyle]


# --- REQUEST MODELS ---
class LogEntryRequest(CamelModel):
    date: date
    arrival_time: Optional[str] = None
    departure_time: Optional[str] = None
    status_tag: Optional[StatusTag] = None

class DataExport(CamelModel):
    settings: UserSettings
    schedules: List[Schedule]
    logs: List[AttendanceLog]
    subject_meta: Dict[str, SubjectStyle] = {}
