"""
JSONL-based history storage for logged sessions.

Handles reading, writing, and managing the session history file.
"""

from pathlib import Path

from ..core.models import Session
from .serializers import ValidationError, json_line_to_session, session_to_json_line


class HistoryStore:
    """
    Manages session history stored in JSONL format.

    One session per line, kept in chronological order.  Sessions are never
    edited in place; a correction is logged as a new session.
    """

    def __init__(self, history_path: str | Path):
        """
        Initialize the history store.

        Args:
            history_path: Path to the JSONL history file
        """
        self.history_path = Path(history_path)
        self.records_path = self.history_path.parent / "records.jsonl"

    def exists(self) -> bool:
        """Check if the history file exists."""
        return self.history_path.exists()

    def init(self) -> None:
        """
        Initialize empty history file if it doesn't exist.

        Creates parent directories if needed.
        """
        self.history_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.history_path.exists():
            self.history_path.touch()

    def load_history(self) -> list[Session]:
        """
        Load all sessions from the history file.

        Returns:
            List of Session, sorted by performed_at

        Raises:
            FileNotFoundError: If history file doesn't exist
            ValidationError: If a line cannot be parsed
        """
        if not self.history_path.exists():
            raise FileNotFoundError(
                f"History file not found: {self.history_path}. Run 'init' first."
            )

        sessions: list[Session] = []

        with open(self.history_path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    sessions.append(json_line_to_session(line))
                except ValidationError as e:
                    raise ValidationError(
                        f"Error parsing line {line_num} in {self.history_path}: {e}"
                    ) from e

        sessions.sort(key=lambda s: (s.performed_at, s.session_id))
        return sessions

    def append_session(self, session: Session) -> None:
        """
        Add a session to the history file.

        Maintains chronological order by inserting at the correct position.

        Raises:
            FileNotFoundError: If history file doesn't exist
            ValidationError: If a session with the same id is already stored
        """
        sessions = self.load_history()

        if any(s.session_id == session.session_id for s in sessions):
            raise ValidationError(f"Session {session.session_id} is already logged")

        insert_idx = len(sessions)
        for i, existing in enumerate(sessions):
            if session.performed_at < existing.performed_at:
                insert_idx = i
                break
        sessions.insert(insert_idx, session)

        self._write_sessions(sessions)

    def _write_sessions(self, sessions: list[Session]) -> None:
        with open(self.history_path, "w", encoding="utf-8") as f:
            for session in sessions:
                f.write(session_to_json_line(session) + "\n")

    def get_session(self, session_id: str) -> Session | None:
        """Return the session with the given id, or None."""
        for session in self.load_history():
            if session.session_id == session_id:
                return session
        return None

    def sessions_for(self, user_id: str, exercise_id: str | None = None) -> list[Session]:
        """A user's sessions, optionally for one exercise, oldest first."""
        return [
            s for s in self.load_history()
            if s.user_id == user_id and (exercise_id is None or s.exercise_id == exercise_id)
        ]


def get_default_history_path() -> Path:
    """
    Get the default history file path.

    Returns:
        ~/.pr-tracker/history.jsonl
    """
    return Path.home() / ".pr-tracker" / "history.jsonl"
