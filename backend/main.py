from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
import database
from dialogue import DialogueController
from errors import ConcurrentUpdateError
from models import ChatRequest, ChatResponse, Meeting, Task
from nlu import NLUGateway

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    database.init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_gateway: Optional[NLUGateway] = None


def get_controller() -> Optional[DialogueController]:
    """Controller backed by Claude, or None if no API key is configured."""
    global _gateway
    if not config.api_key_configured():
        return None
    if _gateway is None:
        _gateway = NLUGateway()
    return DialogueController(_gateway)


@app.post("/chat", response_model=ChatResponse)
async def chat(chat_request: ChatRequest, controller: Optional[DialogueController] = Depends(get_controller)):
    """Run one dialogue turn for the user."""
    if controller is None:
        return ChatResponse(success=False, response="API key not configured")

    try:
        return await controller.handle_turn(chat_request.user_id, chat_request.message)
    except ConcurrentUpdateError as e:
        logger.warning("Concurrent turn rejected: %s", e)
        return JSONResponse(status_code=409, content={
            "success": False,
            "response": "Another message is still being processed. Please try again.",
        })
    except Exception:
        logger.exception("Error in chat turn for user %s", chat_request.user_id)
        return JSONResponse(status_code=500, content={
            "success": False,
            "response": "Error processing your request",
        })


@app.get("/conversation")
def get_conversation_endpoint(user_id: str) -> dict:
    """Get saved conversation history and any in-flight action."""
    conversation = database.get_conversation(user_id)
    if not conversation:
        return {"messages": [], "pending_action": None}
    return {
        "messages": [m.model_dump() for m in conversation.messages],
        "pending_action": conversation.pending_action.model_dump(mode="json") if conversation.pending_action else None,
    }


@app.delete("/conversation")
def delete_conversation_endpoint(user_id: str) -> dict:
    database.delete_conversation(user_id)
    return {"success": True, "message": "Conversation cleared"}


@app.get("/tasks")
def get_tasks(user_id: str) -> list[Task]:
    return database.get_tasks(user_id)


@app.get("/meetings")
def get_meetings(user_id: str) -> list[Meeting]:
    return database.get_meetings(user_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
