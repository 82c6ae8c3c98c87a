"""
Confirmation turn: summarize a complete slot set, then act on the user's
confirm / reject / modify / unclear reply.
"""
import logging
import re
from typing import Optional

from errors import GatewayError, StorageError
from executor import execute_action
from models import (
    ActionTag,
    ChatResponse,
    DialogueState,
    PendingAction,
    SlotSet,
    merge_slots,
)
from responses import (
    CANCELLED_MESSAGE,
    UNCLEAR_CONFIRMATION_MESSAGE,
    failure_message,
    missing_fields_question,
    render_summary,
    success_message,
)

logger = logging.getLogger(__name__)

AFFIRMATIVE_RE = re.compile(
    r"^(yes|yeah|yep|sure|ok|okay|confirm|yup|y|go ahead|do it|create|schedule)[.!]*$",
    re.IGNORECASE,
)
NEGATIVE_RE = re.compile(
    r"^(no|nope|nah|cancel|stop|don't|do not|never mind|forget it)[.!]*$",
    re.IGNORECASE,
)


def quick_answer(message: str) -> Optional[str]:
    """Recognise one-word yes/no replies without asking the gateway."""
    text = message.strip()
    if AFFIRMATIVE_RE.match(text):
        return "confirm"
    if NEGATIVE_RE.match(text):
        return "reject"
    return None


def request_confirmation(pending: PendingAction, data: SlotSet):
    """
    Move to the confirmation step with data.

    Falls back to asking for missing fields if data is not complete, since
    confirmation is only offered on a complete slot set.
    """
    missing = data.missing_fields()
    if missing:
        question = missing_fields_question(missing, data)
        updated = pending.model_copy(update={
            "state": DialogueState.COLLECTING_FIELDS,
            "data": data,
            "missing_fields": missing,
            "prompt": question,
        })
        return updated, ChatResponse(
            response=question,
            action=ActionTag.NEEDS_INFO,
            data={"missing_fields": missing},
        )

    summary = render_summary(pending.type, data)
    updated = pending.model_copy(update={
        "state": DialogueState.CONFIRMING,
        "data": data,
        "missing_fields": [],
        "prompt": summary,
    })
    return updated, ChatResponse(
        response=summary,
        action=ActionTag.CONFIRM_ACTION,
        data=data.model_dump(),
    )


async def handle_confirmation_reply(gateway, pending: PendingAction, message: str, user_id: str):
    decision = quick_answer(message)
    modifications = {}
    if decision is None:
        try:
            result = await gateway.classify_confirmation(message, pending.data, pending.type)
            decision = result.intent
            modifications = result.modifications.fields()
        except GatewayError as e:
            logger.warning("Confirmation classification failed, treating as unclear: %s", e)
            decision = "unclear"

    if decision == "confirm":
        try:
            record = execute_action(pending, user_id)
        except StorageError as e:
            logger.error("Could not commit %s for user %s: %s", pending.type.value, user_id, e)
            return pending, ChatResponse(
                success=False,
                response=failure_message(e),
                action=ActionTag.CREATION_FAILED,
            )
        return None, ChatResponse(
            response=success_message(pending.type, record.title),
            action=ActionTag(f"{pending.type.value}_success"),
            data=record.model_dump(),
        )

    if decision == "reject":
        return None, ChatResponse(response=CANCELLED_MESSAGE, action=ActionTag.ACTION_CANCELLED)

    if decision == "modify" and modifications:
        logger.info("Applying modifications %s", sorted(modifications))
        return request_confirmation(pending, merge_slots(pending.data, modifications))

    return pending, ChatResponse(
        response=UNCLEAR_CONFIRMATION_MESSAGE,
        action=ActionTag.AWAITING_CONFIRMATION,
        data=pending.data.model_dump(),
    )
