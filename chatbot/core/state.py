from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional

from pydantic import BaseModel, Field


class ConversationStep(str, Enum):
    """Conversation step"""
    WELCOME = "WELCOME"
    SELECT_COUNTRY = "SELECT_COUNTRY"
    CHOOSE_OPTION = "CHOOSE_OPTION"
    EXIT = "EXIT"


class ConversationState(BaseModel):
    """Per-session conversation context, mutated only by the dialogue engine."""
    session_id: str
    selected_country: Optional[str] = None
    current_step: ConversationStep = Field(default=ConversationStep.WELCOME)
    detailed_mode: bool = False
    interaction_count: int = 0
    last_query: Optional[str] = None

    def record_input(self, message: str):
        """Track one inbound message"""
        self.interaction_count += 1
        self.last_query = message

    def is_first_interaction(self) -> bool:
        return self.current_step == ConversationStep.WELCOME

    def select_country(self, country: str):
        self.selected_country = country
        self.current_step = ConversationStep.CHOOSE_OPTION

    def reset_to_selection(self):
        """Return to country selection, dropping the selected country"""
        self.selected_country = None
        self.current_step = ConversationStep.SELECT_COUNTRY

    def get_state_summary(self) -> Dict[str, object]:
        return {
            "session_id": self.session_id,
            "step": self.current_step.value,
            "selected_country": self.selected_country,
            "detailed_mode": self.detailed_mode,
            "interaction_count": self.interaction_count,
        }


@dataclass
class SessionEntry:
    state: ConversationState
    last_seen: float
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionRegistry:
    """Owns conversation state per session id.

    Each session carries its own lock so callers can serialize messages of
    the same session; different sessions never contend.
    """

    def __init__(self, timeout_seconds: float = 1800, *, clock: Callable[[], float] = time.monotonic):
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._sessions: Dict[str, SessionEntry] = {}
        self._lock = threading.Lock()

    def acquire(self, session_id: str) -> SessionEntry:
        """Get the live entry for a session, starting a fresh one if needed."""
        now = self._clock()
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None or now - entry.last_seen > self.timeout_seconds:
                entry = SessionEntry(state=ConversationState(session_id=session_id), last_seen=now)
                self._sessions[session_id] = entry
            else:
                entry.last_seen = now
            return entry

    def get(self, session_id: str) -> Optional[ConversationState]:
        with self._lock:
            entry = self._sessions.get(session_id)
            return entry.state if entry else None

    def discard(self, session_id: str):
        with self._lock:
            self._sessions.pop(session_id, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [
                sid for sid, entry in self._sessions.items()
                if now - entry.last_seen > self.timeout_seconds
            ]
            for sid in expired:
                del self._sessions[sid]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
