"""Exceptions raised by the PR detection engine."""


class PRDetectionError(Exception):
    """Base class for recoverable PR detection failures.

    Raised only for problems that prevent PR attribution; the session that
    triggered detection is already stored when this is raised.
    """

    pass


class StaleRecordError(PRDetectionError):
    """The current bests changed between snapshot and commit."""

    pass


class RecordConflictError(PRDetectionError):
    """Commit still conflicted after retrying against fresh bests."""

    def __init__(self, user_id: str, exercise_id: str, session_id: str):
        self.user_id = user_id
        self.exercise_id = exercise_id
        self.session_id = session_id
        super().__init__(
            f"Could not commit records for session {session_id} "
            f"({user_id}/{exercise_id}): concurrent update conflict"
        )


class RecordStoreError(PRDetectionError):
    """The record store could not be read or written."""

    pass
