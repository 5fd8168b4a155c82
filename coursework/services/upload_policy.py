"""Per-variant upload rules.

Assignments, quizzes and exams share one state machine; they differ only in
which media types they accept and how their audience is resolved.
"""
from dataclasses import dataclass

from coursework.core.config import MAX_UPLOAD_BYTES
from coursework.core.errors import MissingField, PayloadTooLarge, UnsupportedMediaType
from coursework.models.task import AudienceMode, TaskKind

DOCUMENT_TYPES = frozenset({"application/pdf"})
IMAGE_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})


@dataclass(frozen=True)
class UploadPayload:
    data: bytes
    media_type: str
    filename: str


@dataclass(frozen=True)
class TaskPolicy:
    kind: TaskKind
    attachment_types: frozenset
    submission_types: frozenset
    # True: an empty student list means "every student of the owner"
    roster_fallback: bool

    def audience_mode(self, student_ids) -> AudienceMode:
        if not student_ids and self.roster_fallback:
            return AudienceMode.OWNER_ROSTER
        return AudienceMode.EXPLICIT


POLICIES = {
    TaskKind.ASSIGNMENT: TaskPolicy(
        kind=TaskKind.ASSIGNMENT,
        attachment_types=DOCUMENT_TYPES | IMAGE_TYPES,
        submission_types=DOCUMENT_TYPES | IMAGE_TYPES,
        roster_fallback=False,
    ),
    TaskKind.QUIZ: TaskPolicy(
        kind=TaskKind.QUIZ,
        attachment_types=DOCUMENT_TYPES | IMAGE_TYPES,
        submission_types=IMAGE_TYPES,
        roster_fallback=False,
    ),
    TaskKind.EXAM: TaskPolicy(
        kind=TaskKind.EXAM,
        attachment_types=DOCUMENT_TYPES | IMAGE_TYPES,
        submission_types=IMAGE_TYPES,
        roster_fallback=True,
    ),
}


def policy_for(kind) -> TaskPolicy:
    return POLICIES[TaskKind(kind)]


def _describe(types: frozenset) -> str:
    return ", ".join(sorted(types))


def check_upload(payload: UploadPayload, allowed_types: frozenset) -> UploadPayload:
    if payload is None or not payload.data:
        raise MissingField("a non-empty file is required")

    media_type = (payload.media_type or "").lower()
    if media_type not in allowed_types:
        raise UnsupportedMediaType(
            f"media type {payload.media_type!r} is not allowed; expected one of: {_describe(allowed_types)}"
        )

    if len(payload.data) > MAX_UPLOAD_BYTES:
        raise PayloadTooLarge(
            f"file is {len(payload.data)} bytes; the limit is {MAX_UPLOAD_BYTES} bytes"
        )
    return payload


def check_submission_upload(kind, payload: UploadPayload) -> UploadPayload:
    return check_upload(payload, policy_for(kind).submission_types)


def check_attachment_upload(kind, payload: UploadPayload) -> UploadPayload:
    return check_upload(payload, policy_for(kind).attachment_types)
