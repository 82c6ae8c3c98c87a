"""
Routine follow-up for tasks: offer to make a task recurring, then settle
whether it runs daily or on specific weekdays.
"""
import logging
import re
from typing import Optional

from confirmation import quick_answer, request_confirmation
from errors import GatewayError
from models import (
    DAY_CODES,
    WEEKDAY_CODES,
    WEEKEND_CODES,
    ActionTag,
    ActionType,
    ChatResponse,
    DialogueState,
    PendingAction,
    SlotSet,
    merge_slots,
    normalize_day_code,
    order_days,
)
from responses import ROUTINE_SCHEDULE_QUESTION, SPECIFIC_DAYS_QUESTION, routine_question

logger = logging.getLogger(__name__)

_EVERY_DAY_RE = re.compile(r"\b(every\s?day|daily|each day)\b", re.IGNORECASE)
_WEEKDAYS_RE = re.compile(r"\bweek\s?days?\b", re.IGNORECASE)
_WEEKENDS_RE = re.compile(r"\bweek\s?ends?\b", re.IGNORECASE)


def parse_day_codes(text: str) -> list[str]:
    """
    Find weekdays named in free text.

    Understands full names and plurals, three/four letter abbreviations, upper-case
    two-letter codes ("MO, WE"), "weekdays", "weekends" and "every day".
    """
    if _EVERY_DAY_RE.search(text):
        return list(DAY_CODES)
    codes = []
    if _WEEKDAYS_RE.search(text):
        codes.extend(WEEKDAY_CODES)
    if _WEEKENDS_RE.search(text):
        codes.extend(WEEKEND_CODES)
    for token in re.findall(r"[A-Za-z]+", text):
        # Lower-case two-letter words ("we", "th") are too ambiguous to count
        if len(token) == 2 and not token.isupper():
            continue
        code = normalize_day_code(token)
        if code is None and token.lower().endswith("s"):
            code = normalize_day_code(token[:-1])
        if code:
            codes.append(code)
    return order_days(codes)


def routine_eligible(pending: PendingAction) -> bool:
    return pending.type == ActionType.CREATE_TASK and not pending.data.is_routine


def apply_routine_days(data: SlotSet, schedule_type: str, days: list[str]) -> SlotSet:
    updates = {"schedule_type": schedule_type, "schedule_days": days, "is_routine": True}
    start = data.start_datetime()
    if start and not data.schedule_time.fixed_time:
        # Keep the time of day the one-off task was set for
        updates["schedule_time"] = {"fixed_time": f"{start:%H:%M}"}
    return merge_slots(data, updates)


def _ask(pending: PendingAction, state: DialogueState, question: str, action: ActionTag):
    updated = pending.model_copy(update={"state": state, "missing_fields": [], "prompt": question})
    return updated, ChatResponse(response=question, action=action, data=pending.data.model_dump())


async def offer_routine(gateway, pending: PendingAction) -> Optional[tuple]:
    """Ask whether the task should become a routine, if the gateway thinks it likely is one."""
    data = pending.data
    try:
        check = await gateway.check_routine(data.title, data.description)
    except GatewayError as e:
        logger.warning("Routine check failed, skipping routine offer: %s", e)
        return None
    if not check.likely_routine:
        return None
    question = check.question or routine_question(data.title)
    return _ask(pending, DialogueState.ROUTINE_CONFIRMING, question, ActionTag.NEEDS_ROUTINE_CONFIRMATION)


async def handle_routine_confirmation(gateway, pending: PendingAction, message: str):
    answer = quick_answer(message)
    if answer is None:
        try:
            result = await gateway.classify_confirmation(message, pending.data, pending.type)
            answer = result.intent
        except GatewayError as e:
            logger.warning("Routine answer classification failed: %s", e)
            answer = "unclear"

    if answer == "confirm":
        return _ask(
            pending,
            DialogueState.ROUTINE_SCHEDULE_CHOOSING,
            ROUTINE_SCHEDULE_QUESTION,
            ActionTag.NEEDS_ROUTINE_SCHEDULE,
        )
    if answer == "reject":
        data = merge_slots(pending.data, {"schedule_type": "one-day", "is_routine": False})
        return request_confirmation(pending, data)

    question = pending.prompt or routine_question(pending.data.title)
    return _ask(pending, DialogueState.ROUTINE_CONFIRMING, question, ActionTag.NEEDS_ROUTINE_CONFIRMATION)


async def handle_schedule_choice(gateway, pending: PendingAction, message: str):
    try:
        choice = await gateway.choose_routine_schedule(message)
    except GatewayError as e:
        logger.warning("Routine schedule choice failed, asking again: %s", e)
        choice = None

    if choice is None or choice.schedule_type == "unclear":
        return _ask(
            pending,
            DialogueState.ROUTINE_SCHEDULE_CHOOSING,
            ROUTINE_SCHEDULE_QUESTION,
            ActionTag.NEEDS_ROUTINE_SCHEDULE,
        )

    if choice.schedule_type == "daily":
        return request_confirmation(pending, apply_routine_days(pending.data, "routine", list(DAY_CODES)))

    if choice.days:
        return request_confirmation(pending, apply_routine_days(pending.data, "specific-days", choice.days))
    return _ask(
        pending,
        DialogueState.SPECIFIC_DAYS_COLLECTING,
        SPECIFIC_DAYS_QUESTION,
        ActionTag.NEEDS_SPECIFIC_DAYS,
    )


async def handle_specific_days(gateway, pending: PendingAction, message: str):
    try:
        days = (await gateway.extract_days(message)).days
    except GatewayError as e:
        logger.warning("Day extraction failed, parsing locally: %s", e)
        days = parse_day_codes(message)

    if not days:
        return _ask(
            pending,
            DialogueState.SPECIFIC_DAYS_COLLECTING,
            SPECIFIC_DAYS_QUESTION,
            ActionTag.NEEDS_SPECIFIC_DAYS,
        )
    return request_confirmation(pending, apply_routine_days(pending.data, "specific-days", days))
