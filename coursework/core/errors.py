"""Domain errors raised by the services and translated to HTTP in main.py.

Four families matter to callers:

- ValidationError: bad input, fix the request and try again.
- StateConflict: the transition is illegal for the record's current status.
- NotFound: an id that does not resolve.
- StorageFailure: the blob store is unreachable; the only retryable kind.
"""
from typing import Optional


class CourseworkError(Exception):
    code = "COURSEWORK_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# -- validation -------------------------------------------------------------

class ValidationError(CourseworkError):
    code = "VALIDATION_ERROR"
    status_code = 422


class MissingField(ValidationError):
    code = "MISSING_FIELD"


class GradeOutOfRange(ValidationError):
    code = "GRADE_OUT_OF_RANGE"


class UnsupportedMediaType(ValidationError):
    code = "UNSUPPORTED_MEDIA_TYPE"
    status_code = 415


class PayloadTooLarge(ValidationError):
    code = "PAYLOAD_TOO_LARGE"
    status_code = 413


# -- state conflicts --------------------------------------------------------

class StateConflict(CourseworkError):
    code = "STATE_CONFLICT"
    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class AlreadySubmitted(StateConflict):
    code = "ALREADY_SUBMITTED"


class NotSubmitted(StateConflict):
    code = "NOT_SUBMITTED"


class CannotUnsubmitGraded(StateConflict):
    code = "CANNOT_UNSUBMIT_GRADED"


class CannotReplaceGraded(StateConflict):
    code = "CANNOT_REPLACE_GRADED"


class ConcurrentModification(StateConflict):
    code = "CONCURRENT_MODIFICATION"


# -- lookups ----------------------------------------------------------------

class NotFound(CourseworkError):
    code = "NOT_FOUND"
    status_code = 404


class TaskNotFound(NotFound):
    code = "TASK_NOT_FOUND"


class SubmissionNotFound(NotFound):
    code = "SUBMISSION_NOT_FOUND"


class BlobNotFound(NotFound):
    code = "BLOB_NOT_FOUND"


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"


# -- authorization ----------------------------------------------------------

class PermissionDenied(CourseworkError):
    code = "PERMISSION_DENIED"
    status_code = 403


class NotAssigned(PermissionDenied):
    code = "NOT_ASSIGNED"


# -- storage ----------------------------------------------------------------

class StorageFailure(CourseworkError):
    code = "STORAGE_FAILURE"
    status_code = 503


class StorageTimeout(StorageFailure):
    code = "STORAGE_TIMEOUT"
