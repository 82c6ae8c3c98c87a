import os
from dotenv import load_dotenv

load_dotenv()

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
NLU_MODEL = os.getenv("NLU_MODEL", "claude-sonnet-4-5")
NLU_MAX_TOKENS = int(os.getenv("NLU_MAX_TOKENS", "512"))

DATABASE_PATH = os.getenv("DATABASE_PATH", "assistant.db")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
ASSISTANT_NAME = os.getenv("ASSISTANT_NAME", "Bela")

# Intent detections scoring below this are treated as "none"
CONFIDENCE_THRESHOLD = 50

TASK_DEFAULT_LEAD_MINUTES = 15
MEETING_DEFAULT_LEAD_MINUTES = 10
MEETING_DEFAULT_DURATION = 30


def api_key_configured() -> bool:
    return bool(ANTHROPIC_API_KEY) and ANTHROPIC_API_KEY != "your-api-key-here"
