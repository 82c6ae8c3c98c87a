# Prompts for the NLU gateway. Every prompt except CHAT_SYSTEM_PROMPT asks for
# a single JSON object; field names match the slot models in models.py.
# Dates: ISO 8601 with offset (YYYY-MM-DDTHH:MM:SSZ). Weekdays: SU MO TU WE TH FR SA.

CHAT_SYSTEM_PROMPT = """You are {assistant_name}, a helpful AI assistant for a personal productivity app.
Your main functions are:
1. Answer general questions helpfully and concisely
2. Help users create tasks and meetings
3. Provide productivity tips and suggestions

When creating tasks or meetings, you should:
- Ask for any missing information (title, time, date, etc.)
- Confirm details before creating
- Be friendly and professional in all responses"""

SLOT_FIELDS_DOC = """Slot fields (omit or use null for anything the user did not say):
- "title": short task or meeting title, capitalized (e.g. "Call John")
- "description": extra detail beyond the title
- "schedule_type": "one-day" | "routine" | "specific-days"
- "start_date_iso": absolute start timestamp, e.g. "2025-01-21T17:00:00Z"
- "schedule_days": list of weekday codes for routines, e.g. ["MO", "WE", "FR"]
- "schedule_time": {{"fixed_time": "HH:MM" (24h) or null, "minutes_before_start": integer or null}}
- "is_routine": true if the task repeats daily or on fixed weekdays
- "priority": "low" | "medium" | "high" (tasks only)
- "duration": meeting length in minutes (meetings only)
- "location": meeting location (meetings only)
- "attendees": list of attendee names (meetings only)
- "is_recurring": true for recurring meetings (meetings only)"""

INTENT_PROMPT = """You classify chat messages for a scheduling assistant and extract what the user wants to create.

Intents:
- "task": the user wants to create a task, todo or reminder
- "meeting": the user wants to schedule a meeting, call, appointment or event
- "none": anything else (questions, small talk, unrelated requests)

""" + SLOT_FIELDS_DOC + """

Convert relative dates like "today", "tomorrow", "next Monday" to absolute timestamps.
Convert times to 24-hour format, e.g. "3pm" -> "15:00", "9:30am" -> "09:30".
For a routine like "daily standup at 9am" use schedule_type "routine", the days it runs, and schedule_time.fixed_time.
List in "missing_fields" any of "title", "start_date_iso" you could not determine.
"confidence" is how sure you are of the intent, 0-100.

Current time (UTC): {now}

Respond with this exact JSON format:
{{
    "intent": "task" | "meeting" | "none",
    "data": {{ slot fields }},
    "missing_fields": ["field", ...],
    "confidence": integer 0-100
}}

Only respond with valid JSON, no other text."""

EXTRACTION_PROMPT = """You fill in missing details for a {action} the user is creating.

""" + SLOT_FIELDS_DOC + """

Fields still missing: {missing_fields}
Details already known:
{existing_data}

Extract values for the missing fields from the user's reply. You may also correct known fields if the user changes them.
Convert relative dates to absolute timestamps. Current time (UTC): {now}

Respond with this exact JSON format:
{{
    "extracted_data": {{ slot fields }},
    "all_fields_filled": true | false,
    "remaining_fields": ["field", ...]
}}

Only respond with valid JSON, no other text."""

CONFIRMATION_PROMPT = """The assistant asked the user to confirm a {action} with these details:
{existing_data}

Classify the user's reply:
- "confirm": the user agrees to go ahead
- "reject": the user wants to cancel
- "modify": the user wants to change some details; put only the changed fields in "modifications"
- "unclear": anything else

""" + SLOT_FIELDS_DOC + """

When the user changes only the time, keep the existing date in start_date_iso.
Current time (UTC): {now}

Respond with this exact JSON format:
{{
    "intent": "confirm" | "reject" | "modify" | "unclear",
    "modifications": {{ changed slot fields }},
    "confidence": integer 0-100
}}

Only respond with valid JSON, no other text."""

ROUTINE_CHECK_PROMPT = """Decide whether this task is likely something the user does routinely (every day or on fixed weekdays).

Title: {title}
Description: {description}

If it is likely a routine, write a short friendly yes/no question asking whether the user wants to make it a routine.

Respond with this exact JSON format:
{{
    "likely_routine": true | false,
    "confidence": integer 0-100,
    "question": "question for the user"
}}

Only respond with valid JSON, no other text."""

ROUTINE_SCHEDULE_PROMPT = """The user was asked whether a routine should run every day or on specific days of the week.

Classify the reply:
- "daily": every day
- "specific-days": only some days; list any days the user named
- "unclear": anything else

"weekdays" means MO TU WE TH FR; "weekends" means SA SU.

Respond with this exact JSON format:
{{
    "schedule_type": "daily" | "specific-days" | "unclear",
    "days": ["MO", ...]
}}

Only respond with valid JSON, no other text."""

DAY_EXTRACTION_PROMPT = """Extract the days of the week named in the user's message.

Accept full names, abbreviations ("Mon", "Thurs"), "weekdays" (MO TU WE TH FR) and "weekends" (SA SU).
Return an empty list if no day is named.

Respond with this exact JSON format:
{{
    "days": ["MO", ...]
}}

Only respond with valid JSON, no other text."""
