"""
Dialogue controller: one chat turn in, one response out.

All state between turns lives in the stored Conversation. A turn loads it,
dispatches on the pending action's state (or detects a new intent when there
is none), and writes it back exactly once at the end. If anything raises
before that write, the stored conversation is left as it was.
"""
import logging

import config
import database
import routine_flow
from confirmation import handle_confirmation_reply, request_confirmation
from errors import GatewayError
from models import (
    ActionTag,
    ChatResponse,
    Conversation,
    DialogueState,
    Message,
    PendingAction,
    slots_for,
)
from prompts import CHAT_SYSTEM_PROMPT
from responses import missing_fields_question
from slot_filler import fill_slots

logger = logging.getLogger(__name__)


def new_conversation(user_id: str) -> Conversation:
    system_prompt = CHAT_SYSTEM_PROMPT.format(assistant_name=config.ASSISTANT_NAME)
    return Conversation(user_id=user_id, messages=[Message(role="system", content=system_prompt)])


class DialogueController:
    def __init__(self, gateway):
        self.gateway = gateway

    async def handle_turn(self, user_id: str, message: str) -> ChatResponse:
        conversation = database.get_conversation(user_id) or new_conversation(user_id)
        conversation.messages.append(Message(role="user", content=message))

        if conversation.pending_action is not None:
            pending, response = await self.continue_action(conversation.pending_action, message, user_id)
        else:
            pending, response = await self.start_action(conversation, message)

        conversation.pending_action = pending
        conversation.messages.append(Message(role="assistant", content=response.response))
        database.save_conversation(conversation)
        return response

    async def continue_action(self, pending: PendingAction, message: str, user_id: str):
        state = pending.state
        logger.debug("Continuing %s %s in state %s", pending.type.value, pending.id, state.value)

        if state == DialogueState.ROUTINE_CONFIRMING:
            return await routine_flow.handle_routine_confirmation(self.gateway, pending, message)
        if state == DialogueState.ROUTINE_SCHEDULE_CHOOSING:
            return await routine_flow.handle_schedule_choice(self.gateway, pending, message)
        if state == DialogueState.SPECIFIC_DAYS_COLLECTING:
            return await routine_flow.handle_specific_days(self.gateway, pending, message)
        if state == DialogueState.CONFIRMING:
            return await handle_confirmation_reply(self.gateway, pending, message, user_id)
        return await fill_slots(self.gateway, pending, message)

    async def start_action(self, conversation: Conversation, message: str):
        try:
            detection = await self.gateway.detect_intent(message)
        except GatewayError as e:
            logger.warning("Intent detection failed, replying conversationally: %s", e)
            detection = None

        action_type = None
        if detection is not None and detection.confidence >= config.CONFIDENCE_THRESHOLD:
            action_type = detection.action_type
        if action_type is None:
            # A failed reply fails the whole turn
            reply = await self.gateway.reply(conversation.messages)
            return None, ChatResponse(response=reply)

        data = slots_for(action_type, detection.data.fields())
        logger.info("Detected %s (confidence %s)", action_type.value, detection.confidence)

        missing = data.missing_fields()
        if missing:
            question = missing_fields_question(missing, data)
            pending = PendingAction(
                type=action_type,
                state=DialogueState.COLLECTING_FIELDS,
                data=data,
                missing_fields=missing,
                prompt=question,
            )
            return pending, ChatResponse(
                response=question,
                action=ActionTag.NEEDS_INFO,
                data={"missing_fields": missing},
            )

        pending = PendingAction(type=action_type, state=DialogueState.CONFIRMING, data=data)
        if routine_flow.routine_eligible(pending):
            offer = await routine_flow.offer_routine(self.gateway, pending)
            if offer is not None:
                return offer
        return request_confirmation(pending, data)
