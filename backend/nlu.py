"""
NLU gateway: turns free text into validated, typed results using Claude.

Each public method sends one prompt and validates the JSON reply against a
pydantic schema. Transport errors, non-JSON replies and payloads that fail
validation all surface as GatewayError; callers decide the fallback.
"""
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Literal, Optional

import anthropic
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

import config
from errors import GatewayError
from models import (
    ActionType,
    Message,
    Priority,
    ScheduleTime,
    ScheduleType,
    SlotSet,
    normalize_day_code,
    order_days,
    parse_iso,
)
from prompts import (
    CONFIRMATION_PROMPT,
    DAY_EXTRACTION_PROMPT,
    EXTRACTION_PROMPT,
    INTENT_PROMPT,
    ROUTINE_CHECK_PROMPT,
    ROUTINE_SCHEDULE_PROMPT,
)

logger = logging.getLogger(__name__)

ACTION_LABELS = {
    ActionType.CREATE_TASK: "task",
    ActionType.SCHEDULE_MEETING: "meeting",
}


def _day_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [part for part in re.split(r"[\s,]+", value) if part]
    codes = []
    for item in value:
        code = normalize_day_code(item)
        if code is None:
            raise ValueError(f"unknown weekday: {item!r}")
        codes.append(code)
    return order_days(codes)


class SlotUpdate(BaseModel):
    """Partial slot set as returned by the model. Unknown keys are dropped."""
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    schedule_type: Optional[ScheduleType] = None
    start_date_iso: Optional[str] = None
    schedule_days: Optional[list[str]] = None
    schedule_time: Optional[ScheduleTime] = None
    is_routine: Optional[bool] = None
    priority: Optional[Priority] = None
    duration: Optional[int] = Field(default=None, gt=0)
    location: Optional[str] = None
    attendees: Optional[list[str]] = None
    is_recurring: Optional[bool] = None

    @field_validator("start_date_iso")
    @classmethod
    def _check_iso(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        parse_iso(value)
        return value.strip()

    @field_validator("schedule_days", mode="before")
    @classmethod
    def _check_days(cls, value: Any) -> Optional[list[str]]:
        if value is None:
            return None
        return _day_list(value)

    def fields(self) -> dict:
        """Only the fields the model actually supplied."""
        data = self.model_dump(exclude_none=True)
        if not data.get("schedule_time"):
            data.pop("schedule_time", None)
        return data


def _empty_if_null(value: Any) -> Any:
    return {} if value is None else value


class IntentResult(BaseModel):
    intent: Literal["task", "meeting", "none"]
    data: SlotUpdate = Field(default_factory=SlotUpdate)
    missing_fields: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0, ge=0, le=100)

    @field_validator("data", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return _empty_if_null(value)

    @field_validator("missing_fields", mode="before")
    @classmethod
    def _null_to_no_fields(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def action_type(self) -> Optional[ActionType]:
        if self.intent == "task":
            return ActionType.CREATE_TASK
        if self.intent == "meeting":
            return ActionType.SCHEDULE_MEETING
        return None


class ExtractionResult(BaseModel):
    extracted_data: SlotUpdate = Field(default_factory=SlotUpdate)
    all_fields_filled: bool = False
    remaining_fields: list[str] = Field(default_factory=list)

    @field_validator("extracted_data", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return _empty_if_null(value)

    @field_validator("remaining_fields", mode="before")
    @classmethod
    def _null_to_no_fields(cls, value: Any) -> Any:
        return [] if value is None else value


class ConfirmationResult(BaseModel):
    intent: Literal["confirm", "reject", "modify", "unclear"]
    modifications: SlotUpdate = Field(default_factory=SlotUpdate)
    confidence: float = Field(default=0, ge=0, le=100)

    @field_validator("modifications", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return _empty_if_null(value)


class RoutineCheck(BaseModel):
    likely_routine: bool
    confidence: float = Field(default=0, ge=0, le=100)
    question: Optional[str] = None


class RoutineScheduleChoice(BaseModel):
    schedule_type: Literal["daily", "specific-days", "unclear"]
    days: list[str] = Field(default_factory=list)

    @field_validator("days", mode="before")
    @classmethod
    def _check_days(cls, value: Any) -> list[str]:
        return _day_list(value)


class DayExtraction(BaseModel):
    days: list[str] = Field(default_factory=list)

    @field_validator("days", mode="before")
    @classmethod
    def _check_days(cls, value: Any) -> list[str]:
        return _day_list(value)


def parse_json_payload(text: str) -> dict:
    """Parse a JSON object out of a model reply, tolerating markdown fences and chatter."""
    text = (text or "").strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if not match:
            raise GatewayError("NLU response is not JSON")
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise GatewayError(f"NLU response is not JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise GatewayError("NLU response is not a JSON object")
    return parsed


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _describe(slots: SlotSet) -> str:
    return json.dumps(slots.model_dump(exclude={"kind"}), indent=2)


class NLUGateway:
    def __init__(self, client=None, model: str = config.NLU_MODEL, max_tokens: int = config.NLU_MAX_TOKENS):
        self.client = client or anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY)
        self.model = model
        self.max_tokens = max_tokens

    async def _complete(self, system: str, messages: list[dict]) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=messages,
            )
        except anthropic.APIError as e:
            raise GatewayError(f"API error: {e}") from e

        if not response.content:
            raise GatewayError("NLU response is empty")
        return response.content[0].text

    async def _ask(self, system: str, user_text: str, schema: type[BaseModel]):
        raw = await self._complete(system, [{"role": "user", "content": user_text}])
        logger.debug("NLU %s response: %s", schema.__name__, raw)
        payload = parse_json_payload(raw)
        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            raise GatewayError(f"{schema.__name__} payload failed validation: {e}") from e

    async def detect_intent(self, message: str, now: Optional[str] = None) -> IntentResult:
        system = INTENT_PROMPT.format(now=now or _now_iso())
        return await self._ask(system, message, IntentResult)

    async def extract_fields(
        self,
        message: str,
        missing_fields: list[str],
        existing: SlotSet,
        action_type: ActionType,
    ) -> ExtractionResult:
        system = EXTRACTION_PROMPT.format(
            action=ACTION_LABELS[action_type],
            missing_fields=", ".join(missing_fields),
            existing_data=_describe(existing),
            now=_now_iso(),
        )
        return await self._ask(system, message, ExtractionResult)

    async def classify_confirmation(
        self, message: str, existing: SlotSet, action_type: ActionType
    ) -> ConfirmationResult:
        system = CONFIRMATION_PROMPT.format(
            action=ACTION_LABELS[action_type],
            existing_data=_describe(existing),
            now=_now_iso(),
        )
        return await self._ask(system, message, ConfirmationResult)

    async def check_routine(self, title: str, description: Optional[str]) -> RoutineCheck:
        system = ROUTINE_CHECK_PROMPT.format(title=title, description=description or "")
        return await self._ask(system, f"Task: {title}", RoutineCheck)

    async def choose_routine_schedule(self, message: str) -> RoutineScheduleChoice:
        return await self._ask(ROUTINE_SCHEDULE_PROMPT.format(), message, RoutineScheduleChoice)

    async def extract_days(self, message: str) -> DayExtraction:
        return await self._ask(DAY_EXTRACTION_PROMPT.format(), message, DayExtraction)

    async def reply(self, messages: list[Message]) -> str:
        """Plain conversational answer over the stored history."""
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        history = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]
        text = await self._complete(system, history)
        return text.strip()
