"""User-facing wording: clarifying questions and confirmation summaries."""
from datetime import datetime
from typing import Optional

from models import (
    DAY_CODES,
    DAY_NAMES,
    WEEKDAY_CODES,
    WEEKEND_CODES,
    ActionType,
    MeetingSlots,
    SlotSet,
)

FIELD_LABELS = {
    "title": "title",
    "start_date_iso": "date and time",
    "duration": "duration",
    "description": "description",
}

CANCELLED_MESSAGE = "Okay, I won't create that. Is there anything else I can help with?"
UNCLEAR_CONFIRMATION_MESSAGE = (
    'Should I go ahead with this? Reply "yes" to confirm, "no" to cancel, '
    "or tell me what you'd like to change."
)
ROUTINE_SCHEDULE_QUESTION = (
    "Should this routine happen every day, or only on specific days of the week?"
)
SPECIFIC_DAYS_QUESTION = (
    'Which days should it repeat on? For example "Monday and Thursday", "weekdays" or "weekends".'
)


def join_words(items: list[str]) -> str:
    """["a", "b", "c"] -> "a, b and c"."""
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return ", ".join(items[:-1]) + " and " + items[-1]


def format_date(dt: datetime) -> str:
    return f"{dt:%a, %b} {dt.day}, {dt.year}"


def format_when(dt: datetime) -> str:
    return f"{format_date(dt)} at {dt:%H:%M}"


def describe_days(days: list[str]) -> str:
    found = set(days)
    if found == set(DAY_CODES):
        return "every day"
    if found == set(WEEKDAY_CODES):
        return "every weekday"
    if found == set(WEEKEND_CODES):
        return "every weekend"
    return "every " + join_words([DAY_NAMES[code] for code in days])


def describe_schedule(slots: SlotSet) -> str:
    start = slots.start_datetime()
    fixed_time = slots.schedule_time.fixed_time
    if slots.schedule_type == "one-day":
        return f"on {format_when(start)}" if start else ""

    text = describe_days(slots.schedule_days)
    if fixed_time:
        text += f" at {fixed_time}"
    if start:
        text += f", starting {format_date(start)}"
    return text


def describe_reminder(slots: SlotSet) -> str:
    minutes = slots.reminder_minutes()
    if minutes is None:
        return ""
    return f", with a reminder {minutes} minutes before"


def known_values(slots: SlotSet) -> list[str]:
    known = []
    if slots.title:
        known.append(f"Title: {slots.title}")
    start = slots.start_datetime()
    if start:
        known.append(f"Date: {format_when(start)}")
    elif slots.is_routine:
        known.append(f"Repeats: {describe_days(slots.schedule_days)}")
    if isinstance(slots, MeetingSlots) and slots.duration:
        known.append(f"Duration: {slots.duration} minutes")
    return known


def missing_fields_question(missing: list[str], slots: SlotSet) -> str:
    """Ask for the missing fields, repeating what is already known."""
    labels = [f"the {FIELD_LABELS.get(field, field.replace('_', ' '))}" for field in missing]
    message = ""
    known = known_values(slots)
    if known:
        message += f"I have {', '.join(known)}. "
    message += f"I need a few more details to create this. Could you please provide {join_words(labels)}?"
    return message


def _details(slots: SlotSet) -> str:
    description = slots.description
    if not description or (slots.title and description.strip().lower() == slots.title.strip().lower()):
        return ""
    return f" Details: {description}."


def render_summary(action_type: ActionType, slots: SlotSet) -> str:
    """Deterministic confirmation text for a complete slot set."""
    schedule = describe_schedule(slots)
    schedule = f" {schedule}" if schedule else ""
    reminder = describe_reminder(slots)

    if action_type == ActionType.SCHEDULE_MEETING:
        extras = f" for {slots.duration} minutes"
        if slots.location:
            extras += f" at {slots.location}"
        if slots.attendees:
            extras += f" with {join_words(slots.attendees)}"
        if slots.is_recurring and slots.schedule_type == "one-day":
            extras += " (repeats weekly)"
        text = f'I\'ll schedule a meeting "{slots.title}"{schedule}{extras}{reminder}.'
    else:
        text = f'I\'ll create a task "{slots.title}"{schedule}{reminder}.'
        if slots.priority != "medium":
            text += f" Priority: {slots.priority}."

    return text + _details(slots) + " Is that correct?"


def success_message(action_type: ActionType, title: str) -> str:
    if action_type == ActionType.SCHEDULE_MEETING:
        return f'✅ Meeting "{title}" has been scheduled!'
    return f'✅ Task "{title}" has been created!'


def failure_message(error: Optional[Exception]) -> str:
    return f"Sorry, I couldn't create that. {error}" if error else "Sorry, I couldn't create that."


def routine_question(title: str) -> str:
    return f'Is "{title}" something you do regularly? Would you like to make it a routine?'
