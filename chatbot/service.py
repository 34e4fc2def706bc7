from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from pydantic import BaseModel

from chatbot.core.cache import TTLCache
from chatbot.core.retry import RetryPolicy
from chatbot.core.state import ConversationStep, SessionRegistry
from chatbot.countries.remote import RestCountriesClient
from chatbot.countries.resolver import CountryResolver
from chatbot.countries.store import CountryStore
from chatbot.engine import DialogueEngine
from chatbot.transcripts import InMemoryTranscriptStore, SqliteTranscriptStore, TranscriptStore
from config.settings import Settings, get_settings


logger = logging.getLogger(__name__)


class ChatReply(BaseModel):
    response: str
    session_id: str
    step: ConversationStep
    selected_country: Optional[str] = None
    detailed_mode: bool = False
    ended: bool = False


class ChatService:
    """Runs one inbound message through the engine and records the exchange."""

    def __init__(
        self,
        engine: DialogueEngine,
        transcripts: TranscriptStore,
        sessions: Optional[SessionRegistry] = None,
    ):
        self.engine = engine
        self.transcripts = transcripts
        self.sessions = sessions if sessions is not None else SessionRegistry()

    @property
    def resolver(self) -> CountryResolver:
        return self.engine.resolver

    def handle_message(
        self,
        message: str,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ChatReply:
        session_id = session_id or uuid.uuid4().hex
        purged = self.sessions.purge_expired()
        if purged:
            logger.info("Purged %s idle sessions", purged)
        entry = self.sessions.acquire(session_id)

        # messages of one session must not interleave
        with entry.lock:
            response, state = self.engine.respond(message, entry.state)
            reply = ChatReply(
                response=response,
                session_id=session_id,
                step=state.current_step,
                selected_country=state.selected_country,
                detailed_mode=state.detailed_mode,
                ended=state.current_step == ConversationStep.EXIT,
            )
            context = state.get_state_summary()
            logger.info("Session %s: %s", session_id, context)

        if reply.ended:
            self.sessions.discard(session_id)

        self._save_exchange(session_id, user_id, message, response, context)
        return reply

    def _save_exchange(
        self,
        session_id: str,
        user_id: Optional[str],
        message: str,
        response: str,
        context: Dict[str, Any],
    ):
        try:
            self.transcripts.append(session_id, user_id, "user", message)
            self.transcripts.append(session_id, user_id, "bot", response, context=context)
        except Exception as exc:
            logger.exception("Failed to persist transcript for session %s: %s", session_id, exc)


def build_resolver(settings: Settings) -> CountryResolver:
    store = CountryStore(settings.local_country_data_path)
    store.load_or_empty()

    remote = None
    if settings.countries_api_url:
        remote = RestCountriesClient(settings.countries_api_url, timeout=settings.api_timeout_seconds)
    else:
        logger.info("COUNTRIES_API_URL not configured; using local country data only")

    return CountryResolver(
        store,
        remote,
        record_cache=TTLCache(settings.country_cache_ttl_seconds),
        names_cache=TTLCache(settings.country_list_cache_ttl_seconds),
        retry_policy=RetryPolicy(
            max_attempts=settings.api_retry_attempts,
            initial_delay=settings.api_retry_delay_seconds,
            multiplier=settings.api_retry_multiplier,
        ),
    )


def build_chat_service(settings: Optional[Settings] = None) -> ChatService:
    settings = settings or get_settings()
    transcripts: TranscriptStore
    if settings.transcript_db_path:
        transcripts = SqliteTranscriptStore(settings.transcript_db_path)
    else:
        transcripts = InMemoryTranscriptStore()
    return ChatService(
        DialogueEngine(build_resolver(settings)),
        transcripts,
        SessionRegistry(settings.session_timeout_seconds),
    )
