from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
import logging
from pydantic import BaseModel, Field

from chatbot.service import ChatService, build_chat_service
from config.settings import get_settings


settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="[%(asctime)s] %(levelname)s - %(message)s",
)
logger = logging.getLogger("countrybot")

app = FastAPI(title="Country Chatbot", version="1.0.0")

# CORS: allow local frontend during development
if settings.app_env.lower() in {"dev", "development", "local"}:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


class ChatRequest(BaseModel):
    message: str = Field(..., description="User's latest message")
    session_id: Optional[str] = Field(
        None, description="Conversation identifier; omitted on the first message"
    )
    user_id: Optional[str] = Field(None, description="Optional identifier of the user")


@lru_cache(maxsize=1)
def get_chat_service() -> ChatService:
    return build_chat_service(get_settings())


@app.post("/chat")
def chat(req: ChatRequest, service: ChatService = Depends(get_chat_service)) -> Dict[str, Any]:
    try:
        logger.info(
            "Incoming chat: session_id=%s user_id=%s message_len=%s",
            req.session_id,
            req.user_id,
            len(req.message or ""),
        )
        reply = service.handle_message(req.message, session_id=req.session_id, user_id=req.user_id)
        return reply.model_dump(mode="json")
    except Exception as e:
        logger.exception("Chat processing failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/conversations/{session_id}")
def get_conversation(session_id: str, service: ChatService = Depends(get_chat_service)) -> Dict[str, Any]:
    transcript = service.transcripts.find_by_session(session_id)
    if transcript is None:
        raise HTTPException(status_code=404, detail=f"No conversation for session {session_id}")
    return transcript.model_dump(mode="json")


@app.get("/countries")
def list_countries(
    prefix: Optional[str] = Query(None, description="Case-insensitive name prefix"),
    service: ChatService = Depends(get_chat_service),
) -> Dict[str, Any]:
    if prefix:
        names = service.resolver.list_by_prefix(prefix)
    else:
        names = service.resolver.list_all()
    return {"countries": names}


@app.get("/countries/{name}")
def get_country(name: str, service: ChatService = Depends(get_chat_service)) -> Dict[str, Any]:
    record = service.resolver.resolve(name)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Country not found: {name}")
    return record.model_dump(mode="json", by_alias=True)


@app.get("/countries/{name}/properties/{key}")
def get_country_property(
    name: str, key: str, service: ChatService = Depends(get_chat_service)
) -> Dict[str, Any]:
    if service.resolver.resolve(name) is None:
        raise HTTPException(status_code=404, detail=f"Country not found: {name}")
    return {"country": name, "property": key, "value": service.resolver.get_property(name, key)}


@app.get("/health")
def health():
    return {"status": "ok"}
