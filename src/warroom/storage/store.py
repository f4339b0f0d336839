"""
SessionStore -- durable persistence for sessions and their records.

Every call opens a short-lived SQLite connection, does its work and closes
it. sqlite3 errors are wrapped in StorageError so callers only deal with the
orchestrator's error taxonomy.

Usage:
    store = SessionStore(Path("data/warroom.db"))
    store.create_session(session)
    store.save_message(message)
    snapshot = store.load(session.id)   # SessionSnapshot | None
    store.search_sessions("pricing")    # problem or transcript mentions
    store.delete_session(session.id)    # cascades to child records
"""

import json
import logging
import sqlite3
from pathlib import Path

from ..orchestration.errors import StorageError
from ..orchestration.models import (
    Escalation,
    FileRef,
    HumanInterjection,
    Message,
    Session,
    SessionSnapshot,
    utc_now,
)
from .schema import dict_from_row, get_connection, initialize_schema

logger = logging.getLogger(__name__)


def _like_pattern(text: str) -> str:
    """Substring LIKE pattern with %, _ and the escape character escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SessionStore:
    """SQLite-backed session store."""

    def __init__(self, db_path: Path):
        self._db_path = db_path
        try:
            initialize_schema(db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot initialize store at {db_path}: {e}") from e

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _execute(self, sql: str, params: tuple) -> int:
        """Run a single write statement and return the affected row count."""
        try:
            conn = get_connection(self._db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open store: {e}") from e
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def _query(self, sql: str, params: tuple = ()) -> list[dict]:
        try:
            conn = get_connection(self._db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open store: {e}") from e
        try:
            return [dict_from_row(r) for r in conn.execute(sql, params).fetchall()]
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    # =========================================================================
    # SESSIONS
    # =========================================================================

    def create_session(self, session: Session) -> Session:
        files = [
            {"name": f.name, "size": f.size, "mime_type": f.mime_type, "text": f.text}
            for f in session.files
        ]
        self._execute(
            """INSERT INTO sessions
               (id, problem, phase_index, active, files_json,
                created_at, updated_at, finished_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                session.id,
                session.problem,
                session.phase_index,
                int(session.active),
                json.dumps(files),
                session.created_at,
                session.updated_at,
                session.finished_at,
            ),
        )
        logger.debug(f"[SessionStore] Created session {session.id}")
        return session

    def update_session(self, session: Session) -> None:
        """Persist the mutable session fields (phase, active, timestamps)."""
        self._execute(
            """UPDATE sessions
               SET phase_index = ?, active = ?, updated_at = ?, finished_at = ?
               WHERE id = ?""",
            (
                session.phase_index,
                int(session.active),
                session.updated_at,
                session.finished_at,
                session.id,
            ),
        )

    def get_session(self, session_id: str) -> Session | None:
        rows = self._query("SELECT * FROM sessions WHERE id = ?", (session_id,))
        return self._row_to_session(rows[0]) if rows else None

    def list_sessions(self, limit: int = 100) -> list[Session]:
        """Sessions, newest first."""
        rows = self._query(
            "SELECT * FROM sessions ORDER BY created_at DESC LIMIT ?", (limit,)
        )
        return [self._row_to_session(r) for r in rows]

    def delete_session(self, session_id: str) -> bool:
        deleted = self._execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        if deleted:
            logger.info(f"[SessionStore] Deleted session {session_id}")
        return deleted > 0

    def search_sessions(self, query: str, limit: int = 20) -> list[Session]:
        """Sessions whose problem or any message contains `query`, newest first."""
        pattern = _like_pattern(query)
        rows = self._query(
            """SELECT * FROM sessions
               WHERE problem LIKE ? ESCAPE '\\'
                  OR id IN (SELECT session_id FROM messages
                            WHERE content LIKE ? ESCAPE '\\')
               ORDER BY created_at DESC LIMIT ?""",
            (pattern, pattern, limit),
        )
        return [self._row_to_session(r) for r in rows]

    def finish_interrupted(self) -> int:
        """Mark sessions still flagged active as finished. Returns how many."""
        now = utc_now()
        count = self._execute(
            """UPDATE sessions
               SET active = 0, updated_at = ?, finished_at = COALESCE(finished_at, ?)
               WHERE active = 1""",
            (now, now),
        )
        if count:
            logger.warning(f"[SessionStore] Closed {count} interrupted session(s)")
        return count

    # =========================================================================
    # CHILD RECORDS
    # =========================================================================

    def save_message(self, message: Message) -> Message:
        self._execute(
            """INSERT INTO messages
               (id, session_id, agent_id, content, phase, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                message.id,
                message.session_id,
                message.agent_id,
                message.content,
                message.phase,
                message.created_at,
            ),
        )
        return message

    def save_escalation(self, escalation: Escalation) -> Escalation:
        self._execute(
            """INSERT INTO escalations
               (id, session_id, agent_id, question, answer, status,
                created_at, answered_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                escalation.id,
                escalation.session_id,
                escalation.agent_id,
                escalation.question,
                escalation.answer,
                escalation.status,
                escalation.created_at,
                escalation.answered_at,
            ),
        )
        return escalation

    def update_escalation(self, escalation: Escalation) -> None:
        self._execute(
            """UPDATE escalations SET answer = ?, status = ?, answered_at = ?
               WHERE id = ? AND session_id = ?""",
            (
                escalation.answer,
                escalation.status,
                escalation.answered_at,
                escalation.id,
                escalation.session_id,
            ),
        )

    def escalations_for(self, session_id: str) -> list[Escalation]:
        rows = self._query(
            """SELECT * FROM escalations WHERE session_id = ?
               ORDER BY created_at, rowid""",
            (session_id,),
        )
        return [Escalation(**r) for r in rows]

    def messages_for(
        self,
        session_id: str,
        agent_id: str | None = None,
        phase: str | None = None,
    ) -> list[Message]:
        """Messages of a session in creation order, optionally filtered."""
        sql = "SELECT * FROM messages WHERE session_id = ?"
        params: list = [session_id]
        if agent_id is not None:
            sql += " AND agent_id = ?"
            params.append(agent_id)
        if phase is not None:
            sql += " AND phase = ?"
            params.append(phase)
        rows = self._query(sql + " ORDER BY created_at, rowid", tuple(params))
        return [Message(**m) for m in rows]

    def save_interjection(self, interjection: HumanInterjection) -> HumanInterjection:
        self._execute(
            """INSERT INTO human_messages (id, session_id, content, created_at)
               VALUES (?, ?, ?, ?)""",
            (
                interjection.id,
                interjection.session_id,
                interjection.content,
                interjection.created_at,
            ),
        )
        return interjection

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    def load(self, session_id: str) -> SessionSnapshot | None:
        """Session plus all child records, each list in creation order."""
        session = self.get_session(session_id)
        if session is None:
            return None

        interjections = self._query(
            """SELECT * FROM human_messages WHERE session_id = ?
               ORDER BY created_at, rowid""",
            (session_id,),
        )
        return SessionSnapshot(
            session=session,
            messages=self.messages_for(session_id),
            escalations=self.escalations_for(session_id),
            interjections=[HumanInterjection(**h) for h in interjections],
        )

    def _row_to_session(self, d: dict) -> Session:
        files = [FileRef(**f) for f in d.get("files", []) if isinstance(f, dict)]
        return Session(
            id=d["id"],
            problem=d["problem"],
            files=files,
            phase_index=d["phase_index"],
            active=bool(d["active"]),
            created_at=d["created_at"],
            updated_at=d["updated_at"],
            finished_at=d.get("finished_at"),
        )
