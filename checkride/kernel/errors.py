"""Exceptions for oral exam operations.

Everything deriving from ExamError is surfaced to the caller and is not
retriable as-is. Oracle failures are internal: the evaluation pipeline
absorbs them and they never reach the API layer.
"""


class ExamError(Exception):
    """Error during an oral exam operation."""

    status_code = 400
    code = "exam_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(ExamError):
    """Session or question does not exist."""

    status_code = 404
    code = "not_found"


class ForbiddenError(ExamError):
    """Session belongs to a different examinee."""

    status_code = 403
    code = "forbidden"


class InvalidStateError(ExamError):
    """Session is not active, or the request names an unsupported mode."""

    status_code = 400
    code = "invalid_state"


class ContentConfigurationError(ExamError):
    """The question bank has no questions for a mode. Operator must fix content."""

    status_code = 404
    code = "content_configuration"


class PersistenceFailure(ExamError):
    """A storage write failed; nothing from the operation was applied."""

    status_code = 503
    code = "persistence_failure"


class OracleError(Exception):
    """Base for grading oracle failures (never surfaced to callers)."""

    pass


class OracleTransportFailure(OracleError):
    """The oracle call failed: network, non-2xx, or empty payload."""

    pass


class OracleMalformedOutput(OracleError):
    """The oracle replied but the reply is not a valid verdict."""

    def __init__(self, reason: str, raw: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.raw = raw
