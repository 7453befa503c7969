"""Per-conversation chat sessions held in memory."""

from datetime import UTC, datetime, timedelta

from aurora.models.session import ChatSession, TurnState
from aurora.utils.logging import get_logger

logger = get_logger(__name__)


class InMemorySessionManager:
    """Keeps one ``ChatSession`` per conversation id.

    Idle sessions expire after the timeout. A session mid-turn (waiting on the model or on
    a confirmation) is kept until its turn ends, and one holding an unreviewed extraction
    until it is processed or dismissed.
    """

    def __init__(self, session_timeout_minutes: int = 60):
        """Initialize session manager.

        Args:
            session_timeout_minutes: Minutes of inactivity before an idle session is dropped
        """
        self.sessions: dict[str, ChatSession] = {}
        self.session_timeout = timedelta(minutes=session_timeout_minutes)

    def get_or_create_session(self, conversation_id: str) -> ChatSession:
        """Get the conversation's session, creating an idle one if needed."""
        self._cleanup_expired_sessions()

        session = self.sessions.get(conversation_id)
        if session is not None:
            session.update_activity()
            return session

        session = ChatSession(conversation_id=conversation_id)
        self.sessions[conversation_id] = session
        return session

    def get_session(self, conversation_id: str) -> ChatSession | None:
        """Get existing session by conversation ID.

        Returns:
            Session if found and not expired, None otherwise
        """
        self._cleanup_expired_sessions()
        return self.sessions.get(conversation_id)

    def delete_session(self, conversation_id: str) -> bool:
        """Delete a session.

        Returns:
            True if session was deleted, False if not found
        """
        if conversation_id in self.sessions:
            del self.sessions[conversation_id]
            return True
        return False

    def _cleanup_expired_sessions(self) -> None:
        """Remove expired idle sessions from memory."""
        current_time = datetime.now(UTC)
        expired_sessions = [
            conversation_id
            for conversation_id, session in self.sessions.items()
            if session.state == TurnState.IDLE
            and session.pending_extraction is None
            and current_time - session.last_activity > self.session_timeout
        ]

        for conversation_id in expired_sessions:
            logger.debug(f"Expiring idle session for conversation {conversation_id}")
            del self.sessions[conversation_id]

    def get_session_count(self) -> int:
        """Get current number of active sessions."""
        self._cleanup_expired_sessions()
        return len(self.sessions)

    def get_pending_confirmation_count(self) -> int:
        """Get current number of sessions waiting on a tool confirmation."""
        self._cleanup_expired_sessions()
        return sum(1 for session in self.sessions.values() if session.state == TurnState.AWAITING_CONFIRMATION)


session_manager = InMemorySessionManager()
