from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    role: str = Field(..., description="'user' or 'bot'")
    content: str
    timestamp: datetime = Field(default_factory=_now)


class Transcript(BaseModel):
    """Complete message history of one chat session.

    ``context`` is the latest conversation state summary (step, selected
    country, detailed mode, interaction count) saved with the exchange.
    """
    session_id: str
    user_id: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_now)
    last_updated: datetime = Field(default_factory=_now)


class TranscriptStore(Protocol):
    def find_by_session(self, session_id: str) -> Optional[Transcript]:
        ...

    def find_latest_by_user(self, user_id: str) -> Optional[Transcript]:
        ...

    def append(
        self,
        session_id: str,
        user_id: Optional[str],
        role: str,
        content: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> Transcript:
        ...

    def find_by_selected_country(self, country: str) -> List[Transcript]:
        ...

    def delete_older_than(self, cutoff: datetime) -> int:
        ...


class InMemoryTranscriptStore:
    """Process-local transcripts; nothing survives a restart."""

    def __init__(self) -> None:
        self._transcripts: Dict[str, Transcript] = {}
        self._lock = threading.Lock()

    def find_by_session(self, session_id: str) -> Optional[Transcript]:
        with self._lock:
            transcript = self._transcripts.get(session_id)
            return transcript.model_copy(deep=True) if transcript else None

    def find_latest_by_user(self, user_id: str) -> Optional[Transcript]:
        with self._lock:
            candidates = [
                (t.last_updated, order, t)
                for order, t in enumerate(self._transcripts.values())
                if t.user_id == user_id
            ]
            if not candidates:
                return None
            return max(candidates, key=lambda c: c[:2])[2].model_copy(deep=True)

    def find_by_selected_country(self, country: str) -> List[Transcript]:
        wanted = (country or "").strip().lower()
        with self._lock:
            return [
                t.model_copy(deep=True)
                for t in self._transcripts.values()
                if str(t.context.get("selected_country") or "").lower() == wanted
            ]

    def append(
        self,
        session_id: str,
        user_id: Optional[str],
        role: str,
        content: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> Transcript:
        with self._lock:
            transcript = self._transcripts.get(session_id)
            if transcript is None:
                transcript = Transcript(session_id=session_id, user_id=user_id)
                self._transcripts[session_id] = transcript
            if user_id:
                transcript.user_id = user_id
            if context is not None:
                transcript.context = dict(context)
            message = ChatMessage(role=role, content=content)
            transcript.messages.append(message)
            transcript.last_updated = message.timestamp
            return transcript.model_copy(deep=True)

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            stale = [sid for sid, t in self._transcripts.items() if t.last_updated < cutoff]
            for sid in stale:
                del self._transcripts[sid]
            return len(stale)


class SqliteTranscriptStore:
    """Transcripts kept in a local SQLite database (one connection per call)."""

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_db()

    def get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        conn = self.get_conn()
        try:
            cur = conn.cursor()
            cur.execute("""
                CREATE TABLE IF NOT EXISTS transcripts (
                    session_id TEXT PRIMARY KEY,
                    user_id TEXT,
                    created_at TEXT,
                    last_updated TEXT,
                    context TEXT,
                    selected_country TEXT
                )
            """)
            # databases created before context was stored
            columns = {r["name"] for r in cur.execute("PRAGMA table_info(transcripts)").fetchall()}
            for column in ("context", "selected_country"):
                if column not in columns:
                    cur.execute(f"ALTER TABLE transcripts ADD COLUMN {column} TEXT")
            cur.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT,
                    role TEXT,
                    content TEXT,
                    timestamp TEXT
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def _load(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Transcript:
        messages = conn.execute(
            "SELECT role, content, timestamp FROM messages WHERE session_id = ? ORDER BY id",
            (row["session_id"],),
        ).fetchall()
        return Transcript(
            session_id=row["session_id"],
            user_id=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            last_updated=datetime.fromisoformat(row["last_updated"]),
            context=json.loads(row["context"]) if row["context"] else {},
            messages=[
                ChatMessage(
                    role=m["role"],
                    content=m["content"],
                    timestamp=datetime.fromisoformat(m["timestamp"]),
                )
                for m in messages
            ],
        )

    def find_by_session(self, session_id: str) -> Optional[Transcript]:
        conn = self.get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM transcripts WHERE session_id = ?", (session_id,)
            ).fetchone()
            return self._load(conn, row) if row else None
        finally:
            conn.close()

    def find_latest_by_user(self, user_id: str) -> Optional[Transcript]:
        conn = self.get_conn()
        try:
            row = conn.execute(
                """
                SELECT * FROM transcripts
                WHERE user_id = ?
                ORDER BY last_updated DESC, rowid DESC
                LIMIT 1
                """,
                (user_id,),
            ).fetchone()
            return self._load(conn, row) if row else None
        finally:
            conn.close()

    def find_by_selected_country(self, country: str) -> List[Transcript]:
        conn = self.get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM transcripts
                WHERE lower(selected_country) = ?
                ORDER BY last_updated DESC
                """,
                ((country or "").strip().lower(),),
            ).fetchall()
            return [self._load(conn, row) for row in rows]
        finally:
            conn.close()

    def append(
        self,
        session_id: str,
        user_id: Optional[str],
        role: str,
        content: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> Transcript:
        now = _now().isoformat()
        context_json = json.dumps(context, default=str) if context is not None else None
        selected = context.get("selected_country") if context is not None else None
        conn = self.get_conn()
        try:
            cur = conn.cursor()
            cur.execute("""
                INSERT INTO transcripts (session_id, user_id, created_at, last_updated, context, selected_country)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    user_id = COALESCE(excluded.user_id, transcripts.user_id),
                    last_updated = excluded.last_updated,
                    selected_country = CASE
                        WHEN excluded.context IS NULL THEN transcripts.selected_country
                        ELSE excluded.selected_country
                    END,
                    context = COALESCE(excluded.context, transcripts.context)
            """, (session_id, user_id, now, now, context_json, selected))
            cur.execute("""
                INSERT INTO messages (session_id, role, content, timestamp)
                VALUES (?, ?, ?, ?)
            """, (session_id, role, content, now))
            conn.commit()
            row = conn.execute(
                "SELECT * FROM transcripts WHERE session_id = ?", (session_id,)
            ).fetchone()
            return self._load(conn, row)
        finally:
            conn.close()

    def delete_older_than(self, cutoff: datetime) -> int:
        conn = self.get_conn()
        try:
            cur = conn.cursor()
            stale = [
                r["session_id"]
                for r in cur.execute(
                    "SELECT session_id FROM transcripts WHERE last_updated < ?",
                    (cutoff.isoformat(),),
                ).fetchall()
            ]
            for sid in stale:
                cur.execute("DELETE FROM messages WHERE session_id = ?", (sid,))
                cur.execute("DELETE FROM transcripts WHERE session_id = ?", (sid,))
            conn.commit()
            return len(stale)
        finally:
            conn.close()
