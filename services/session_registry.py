"""
SessionRegistry — owns every piece of per-session state.

One Session exists per participant connection. A session moves
OPEN → CLOSING → CLOSED: closing rejects new work immediately, lets in-flight
generation tasks finish (their results are discarded), and releases the
buffer and dedup set once nothing is in flight.

Registry methods never await, so on a single event loop they are serialized.
Work inside a session that does await (append + evaluate + publish, dedup +
emit) is serialized by ``Session.lock``.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Set

from domain.models import SessionSnapshot, SessionState, Suggestion, utc_now
from services.transcript_buffer import TranscriptBuffer
from shared_utils.constants import LogScope
from shared_utils.error_handler import DuplicateSessionError, SessionNotFoundError
from shared_utils.logging_utils import ContextualLogger
from shared_utils.validation import InputValidator


logger = ContextualLogger(scope=LogScope.REGISTRY)


class Session:
    """Mutable state of one meeting connection."""

    def __init__(self, session_id: str, meeting_id: Optional[str] = None) -> None:
        self.session_id = session_id
        self.meeting_id = meeting_id
        self.created_at: datetime = utc_now()
        self.state = SessionState.OPEN
        self.transcript = TranscriptBuffer()
        self.dedup_keys: List[str] = []
        self.suggestions: List[Suggestion] = []
        self.lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def track(self, task: asyncio.Task) -> None:
        """Keep a reference to an in-flight generation until it finishes."""
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if self.state == SessionState.CLOSING and not self._pending:
            self._finalize()

    def begin_close(self) -> None:
        if self.state != SessionState.OPEN:
            return
        self.state = SessionState.CLOSING
        if not self._pending:
            self._finalize()

    def _finalize(self) -> None:
        self.state = SessionState.CLOSED
        self.transcript.clear()
        self.dedup_keys.clear()
        logger.info("session_closed", session_id=self.session_id)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            created_at=self.created_at,
            meeting_id=self.meeting_id,
            state=self.state,
            utterance_count=len(self.transcript),
            suggestion_count=len(self.suggestions),
            pending_generations=self.pending_count,
        )


class SessionRegistry:
    """Maps session ids to their Session."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def open(self, session_id: str, meeting_id: Optional[str] = None) -> Session:
        """Create a session.

        Raises:
            DuplicateSessionError: The id is already registered.
            ValidationError: The id is malformed.
        """
        InputValidator.validate_session_id(session_id)
        if session_id in self._sessions:
            raise DuplicateSessionError(session_id)

        session = Session(session_id, meeting_id=meeting_id)
        self._sessions[session_id] = session
        logger.info("session_opened", session_id=session_id, meeting_id=meeting_id)
        return session

    def get(self, session_id: str) -> Session:
        """Return the open session.

        Raises:
            SessionNotFoundError: Unknown or closed id.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def bind_meeting(self, session_id: str, meeting_id: str) -> Session:
        """Record the meeting the host platform confirmed for this session."""
        session = self.get(session_id)
        session.meeting_id = meeting_id
        logger.info("session_meeting_bound", session_id=session_id, meeting_id=meeting_id)
        return session

    def close(self, session_id: str) -> None:
        """Release the session; closing an unknown id is a no-op."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            logger.debug("session_close_ignored", session_id=session_id)
            return
        logger.info(
            "session_closing",
            session_id=session_id,
            pending_generations=session.pending_count,
        )
        session.begin_close()

    def session_ids(self) -> List[str]:
        return list(self._sessions)
