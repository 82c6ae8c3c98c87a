import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

import config

# Weekday codes in calendar order, Sunday first
DAY_CODES = ["SU", "MO", "TU", "WE", "TH", "FR", "SA"]
DAY_NAMES = {
    "SU": "Sunday",
    "MO": "Monday",
    "TU": "Tuesday",
    "WE": "Wednesday",
    "TH": "Thursday",
    "FR": "Friday",
    "SA": "Saturday",
}
WEEKDAY_CODES = ["MO", "TU", "WE", "TH", "FR"]
WEEKEND_CODES = ["SU", "SA"]

_DAY_ALIASES = {}
for _code, _name in DAY_NAMES.items():
    _lower = _name.lower()
    for _alias in (_code.lower(), _lower[:3], _lower[:4], _lower):
        _DAY_ALIASES[_alias] = _code
_DAY_ALIASES.update({"tues": "TU", "thur": "TH", "thurs": "TH", "weds": "WE"})

ScheduleType = Literal["one-day", "routine", "specific-days"]
Priority = Literal["low", "medium", "high"]


class ActionType(str, Enum):
    CREATE_TASK = "create_task"
    SCHEDULE_MEETING = "schedule_meeting"


class DialogueState(str, Enum):
    COLLECTING_FIELDS = "collecting_fields"
    ROUTINE_CONFIRMING = "routine_confirming"
    ROUTINE_SCHEDULE_CHOOSING = "routine_schedule_choosing"
    SPECIFIC_DAYS_COLLECTING = "specific_days_collecting"
    CONFIRMING = "confirming"


class ActionTag(str, Enum):
    NEEDS_INFO = "needs_info"
    NEEDS_ROUTINE_CONFIRMATION = "needs_routine_confirmation"
    NEEDS_ROUTINE_SCHEDULE = "needs_routine_schedule"
    NEEDS_SPECIFIC_DAYS = "needs_specific_days"
    CONFIRM_ACTION = "confirm_action"
    CREATE_TASK_SUCCESS = "create_task_success"
    SCHEDULE_MEETING_SUCCESS = "schedule_meeting_success"
    ACTION_CANCELLED = "action_cancelled"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CREATION_FAILED = "creation_failed"


# Flag-shaped pending actions resolve to the first flag set, in this order.
# missingFields is checked last.
LEGACY_FLAG_PRECEDENCE = [
    ("needsRoutineConfirmation", DialogueState.ROUTINE_CONFIRMING),
    ("needsRoutineSchedule", DialogueState.ROUTINE_SCHEDULE_CHOOSING),
    ("needsSpecificDays", DialogueState.SPECIFIC_DAYS_COLLECTING),
    ("confirmationNeeded", DialogueState.CONFIRMING),
]


def normalize_day_code(value: Any) -> Optional[str]:
    """Map a weekday name, abbreviation or 0-6 index (0=Sunday) to its two-letter code."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return DAY_CODES[value] if 0 <= value <= 6 else None
    key = str(value).strip().lower().rstrip(".")
    return _DAY_ALIASES.get(key)


def order_days(codes) -> list[str]:
    """Deduplicate day codes and return them in calendar order."""
    found = set(codes)
    return [code for code in DAY_CODES if code in found]


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp, accepting a trailing Z for UTC."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


class ScheduleTime(BaseModel):
    # When both are present, fixed_time is the one that applies
    fixed_time: Optional[str] = None  # 24h clock, HH:MM
    minutes_before_start: Optional[int] = Field(default=None, ge=0)

    @field_validator("fixed_time")
    @classmethod
    def _normalize_clock(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        parts = value.strip().split(":")
        if len(parts) < 2:
            raise ValueError(f"fixed_time must be HH:MM, got {value!r}")
        hour, minute = int(parts[0]), int(parts[1][:2])
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"fixed_time out of range: {value!r}")
        return f"{hour:02d}:{minute:02d}"


class SlotSet(BaseModel):
    """The item being built up over the conversation."""
    title: Optional[str] = None
    description: Optional[str] = None
    schedule_type: ScheduleType = "one-day"
    start_date_iso: Optional[str] = None
    schedule_days: list[str] = Field(default_factory=list)
    schedule_time: ScheduleTime = Field(default_factory=ScheduleTime)
    is_routine: bool = False

    @field_validator("title", "description")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("start_date_iso")
    @classmethod
    def _check_iso(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        parse_iso(value)
        return value.strip()

    @field_validator("schedule_days", mode="before")
    @classmethod
    def _normalize_days(cls, value: Any) -> list[str]:
        if value is None:
            return []
        codes = []
        for item in value:
            code = normalize_day_code(item)
            if code is None:
                raise ValueError(f"unknown weekday: {item!r}")
            codes.append(code)
        return order_days(codes)

    @model_validator(mode="after")
    def _mirror_schedule_type(self):
        self._normalize()
        return self

    def _normalize(self):
        if self.schedule_type == "one-day" and self.is_routine:
            self.schedule_type = "routine"
        if self.schedule_type == "specific-days" and not self.schedule_days:
            self.schedule_type = "routine"
        if self.schedule_type == "routine" and not self.schedule_days:
            self.schedule_days = list(DAY_CODES)
        if self.schedule_type == "one-day":
            self.schedule_days = []
        self.is_routine = self.schedule_type != "one-day"

    def required_fields(self) -> list[str]:
        if self.schedule_type == "one-day":
            return ["title", "start_date_iso"]
        return ["title"]

    def missing_fields(self) -> list[str]:
        return [name for name in self.required_fields() if getattr(self, name) is None]

    def is_complete(self) -> bool:
        return not self.missing_fields()

    def start_datetime(self) -> Optional[datetime]:
        return parse_iso(self.start_date_iso)

    def reminder_minutes(self) -> Optional[int]:
        return self.schedule_time.minutes_before_start


class TaskSlots(SlotSet):
    kind: Literal["create_task"] = "create_task"
    priority: Priority = "medium"

    def reminder_minutes(self) -> Optional[int]:
        """Lead time the task will be stored with; none for fixed-time tasks."""
        if self.schedule_time.fixed_time:
            return None
        minutes = self.schedule_time.minutes_before_start
        return config.TASK_DEFAULT_LEAD_MINUTES if minutes is None else minutes


class MeetingSlots(SlotSet):
    kind: Literal["schedule_meeting"] = "schedule_meeting"
    duration: int = Field(default=config.MEETING_DEFAULT_DURATION, gt=0)
    location: Optional[str] = None
    attendees: list[str] = Field(default_factory=list)
    is_recurring: bool = False

    def _normalize(self):
        super()._normalize()
        if self.is_routine:
            self.is_recurring = True

    def required_fields(self) -> list[str]:
        # Meetings always need an anchor time, recurring or not
        return ["title", "start_date_iso"]

    def reminder_minutes(self) -> Optional[int]:
        minutes = self.schedule_time.minutes_before_start
        return config.MEETING_DEFAULT_LEAD_MINUTES if minutes is None else minutes


Slots = Annotated[Union[TaskSlots, MeetingSlots], Field(discriminator="kind")]

SLOT_MODELS = {
    ActionType.CREATE_TASK: TaskSlots,
    ActionType.SCHEDULE_MEETING: MeetingSlots,
}


def slots_for(action_type: ActionType, data: Optional[dict] = None) -> SlotSet:
    """Build the slot model matching an action type from a loose field dict."""
    payload = {k: v for k, v in (data or {}).items() if v is not None and k != "kind"}
    return SLOT_MODELS[action_type].model_validate(payload)


def merge_slots(slots: SlotSet, updates: dict) -> SlotSet:
    """
    Merge field updates into a slot set without discarding existing values.

    None values are ignored. schedule_time is merged field by field, except
    that fixed_time and minutes_before_start replace each other: setting only
    one of them clears the other.
    Changing only one of schedule_type / is_routine re-derives the other.
    """
    current = slots.model_dump()
    updates = {k: v for k, v in updates.items() if v is not None and k != "kind"}

    if "schedule_type" in updates and "is_routine" not in updates:
        current["is_routine"] = False
    if "is_routine" in updates and "schedule_type" not in updates and not updates["is_routine"]:
        current["schedule_type"] = "one-day"

    for key, value in updates.items():
        if key == "schedule_time" and isinstance(value, dict):
            value = {k: v for k, v in value.items() if v is not None}
            merged = dict(current.get("schedule_time") or {})
            if "fixed_time" in value and "minutes_before_start" not in value:
                merged["minutes_before_start"] = None
            if "minutes_before_start" in value and "fixed_time" not in value:
                merged["fixed_time"] = None
            merged.update(value)
            current["schedule_time"] = merged
        else:
            current[key] = value
    return type(slots).model_validate(current)


class PendingAction(BaseModel):
    """In-flight action for one user, plus the dialogue state it is waiting in."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: ActionType
    state: DialogueState
    data: Slots
    missing_fields: list[str] = Field(default_factory=list)
    prompt: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _collapse_legacy_flags(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        values = dict(values)
        if "missingFields" in values:
            values.setdefault("missing_fields", values.pop("missingFields") or [])
        if not values.get("state"):
            for flag, state in LEGACY_FLAG_PRECEDENCE:
                if values.get(flag):
                    values["state"] = state
                    break
            else:
                if values.get("missing_fields"):
                    values["state"] = DialogueState.COLLECTING_FIELDS
                else:
                    raise ValueError("pending action has no active dialogue state")
        for flag, _ in LEGACY_FLAG_PRECEDENCE:
            values.pop(flag, None)
        data = values.get("data")
        if isinstance(data, dict) and "kind" not in data and values.get("type"):
            values["data"] = {**data, "kind": ActionType(values["type"]).value}
        return values

    @model_validator(mode="after")
    def _confirm_only_when_complete(self):
        missing = self.data.missing_fields()
        if self.state == DialogueState.CONFIRMING and missing:
            self.state = DialogueState.COLLECTING_FIELDS
            self.missing_fields = missing
        elif self.state == DialogueState.COLLECTING_FIELDS and not self.missing_fields:
            self.missing_fields = missing
        if self.state != DialogueState.COLLECTING_FIELDS:
            self.missing_fields = []
        return self


class Message(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class Conversation(BaseModel):
    user_id: str
    messages: list[Message] = Field(default_factory=list)
    pending_action: Optional[PendingAction] = None
    version: int = 0  # 0 means never persisted


class Task(BaseModel):
    id: str
    user_id: str
    action_id: str
    title: str
    description: str = ""
    schedule_type: ScheduleType = "one-day"
    start_date_iso: Optional[str] = None
    schedule_days: list[str] = Field(default_factory=list)
    fixed_time: Optional[str] = None
    minutes_before_start: Optional[int] = None
    is_routine: bool = False
    priority: Priority = "medium"
    is_completed: bool = False
    created_at: str  # ISO format datetime string


class Meeting(BaseModel):
    id: str
    user_id: str
    action_id: str
    title: str
    description: str = ""
    start_time: str
    end_time: str
    duration: int
    minutes_before_start: Optional[int] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = None
    location: str = ""
    attendees: list[str] = Field(default_factory=list)
    created_at: str


class ChatRequest(BaseModel):
    user_id: str = Field(min_length=1)
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    success: bool = True
    response: str
    action: Optional[ActionTag] = None
    data: dict = Field(default_factory=dict)
