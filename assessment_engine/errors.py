"""
Exceptions raised by the assessment engine.

Business conditions (insufficient data, low confidence) are never raised;
they are represented in the shape of the returned results.
"""


class AssessmentError(Exception):
    """Base class for engine errors surfaced to callers."""

    code = "assessment_error"

    def to_dict(self) -> dict:
        return {"error": self.code, "message": str(self)}


class InvalidInputError(AssessmentError):
    """Input that cannot be used at all, e.g. a missing question id."""

    code = "invalid_input"


class InvalidStateError(AssessmentError):
    """Operation attempted on a session that is not in the required state."""

    code = "invalid_state"

    def __init__(self, session_id: str, status: str, operation: str):
        self.session_id = session_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} session {session_id}: session is {status}"
        )


class NotFoundError(AssessmentError):
    """Unknown session, question or student."""

    code = "not_found"

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"Unknown {kind}: {identifier}")
