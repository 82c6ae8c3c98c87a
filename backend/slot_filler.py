import logging

from confirmation import request_confirmation
from errors import GatewayError
from models import ActionTag, ChatResponse, PendingAction, merge_slots
from responses import missing_fields_question

logger = logging.getLogger(__name__)


async def fill_slots(gateway, pending: PendingAction, message: str):
    """
    Extract the still-missing fields from message and merge them into the slot set.

    Moves on to confirmation once nothing required is missing; otherwise asks
    again for whatever is left.
    """
    missing = pending.missing_fields or pending.data.missing_fields()
    extracted = {}
    try:
        result = await gateway.extract_fields(message, missing, pending.data, pending.type)
        extracted = result.extracted_data.fields()
    except GatewayError as e:
        logger.warning("Field extraction failed, asking again: %s", e)

    data = merge_slots(pending.data, extracted) if extracted else pending.data
    remaining = data.missing_fields()
    if not remaining:
        return request_confirmation(pending, data)

    question = missing_fields_question(remaining, data)
    updated = pending.model_copy(update={
        "data": data,
        "missing_fields": remaining,
        "prompt": question,
    })
    return updated, ChatResponse(
        response=question,
        action=ActionTag.NEEDS_INFO,
        data={"missing_fields": remaining, "extracted_fields": extracted},
    )
