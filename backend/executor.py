import logging
from typing import Union

import database
from models import ActionType, Meeting, PendingAction, Task

logger = logging.getLogger(__name__)


def execute_action(pending: PendingAction, user_id: str) -> Union[Task, Meeting]:
    """
    Persist the confirmed slot set as a task or meeting owned by user_id.

    The pending action id is the idempotency key: replaying the same action
    returns the record created the first time. StorageError propagates.
    """
    slots = pending.data
    missing = slots.missing_fields()
    if missing:
        raise ValueError(f"Cannot commit {pending.type.value}: missing {', '.join(missing)}")

    lead = slots.reminder_minutes()
    if pending.type == ActionType.SCHEDULE_MEETING:
        record = database.create_meeting_db(slots, user_id, pending.id, minutes_before_start=lead)
    else:
        record = database.create_task_db(slots, user_id, pending.id, minutes_before_start=lead)

    logger.info("Committed %s %s for user %s", pending.type.value, record.id, user_id)
    return record
