"""Binary content store.

A dumb keeper of immutable blobs: store, retrieve by id, delete by id. It
never inspects bytes or checks media types; the upload policy does that
before anything reaches here.

Each call runs in its own session so a stored blob is committed before
``store`` returns, independently of whatever record transaction the caller
has open. Callers must therefore write the blob first and the record second.
"""
import enum
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from coursework.core.clock import utcnow
from coursework.core.errors import BlobNotFound, StorageFailure, StorageTimeout
from coursework.models.blob import ContentBlob

logger = logging.getLogger(__name__)


class DeleteResult(str, enum.Enum):
    DELETED = "deleted"
    ALREADY_ABSENT = "already_absent"


@dataclass(frozen=True)
class StoredBlob:
    id: str
    data: bytes
    media_type: str
    original_name: str
    size_bytes: int
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


def _deadline(timeout: Optional[float]) -> Optional[float]:
    if timeout is None:
        return None
    return time.monotonic() + timeout


def _expired(deadline: Optional[float]) -> bool:
    return deadline is not None and time.monotonic() > deadline


class BlobStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def store(
        self,
        data: bytes,
        media_type: str,
        original_name: str,
        metadata: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> str:
        deadline = _deadline(timeout)
        blob_id = uuid.uuid4().hex
        meta = {"uploaded_at": utcnow().isoformat()}
        meta.update(metadata or {})

        db = self._session_factory()
        try:
            db.add(
                ContentBlob(
                    id=blob_id,
                    data=data,
                    media_type=media_type,
                    original_name=original_name,
                    size_bytes=len(data),
                    meta=meta,
                )
            )
            db.flush()

            # nothing is visible until commit; a late write is simply dropped
            if _expired(deadline):
                db.rollback()
                raise StorageTimeout(f"blob write exceeded {timeout}s deadline")

            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageFailure(f"could not store blob: {exc}") from exc
        finally:
            db.close()

        logger.debug("stored blob %s (%s, %d bytes)", blob_id, media_type, len(data))
        return blob_id

    def retrieve(self, blob_id: str, timeout: Optional[float] = None) -> StoredBlob:
        deadline = _deadline(timeout)
        db = self._session_factory()
        try:
            row = db.get(ContentBlob, blob_id)
            if row is None:
                raise BlobNotFound(f"blob {blob_id} not found")
            blob = StoredBlob(
                id=row.id,
                data=row.data,
                media_type=row.media_type,
                original_name=row.original_name,
                size_bytes=row.size_bytes,
                metadata=dict(row.meta or {}),
                created_at=row.created_at,
            )
        except SQLAlchemyError as exc:
            raise StorageFailure(f"could not read blob {blob_id}: {exc}") from exc
        finally:
            db.close()

        if _expired(deadline):
            raise StorageTimeout(f"blob read exceeded {timeout}s deadline")
        return blob

    def exists(self, blob_id: str) -> bool:
        db = self._session_factory()
        try:
            return db.get(ContentBlob, blob_id) is not None
        except SQLAlchemyError as exc:
            raise StorageFailure(f"could not read blob {blob_id}: {exc}") from exc
        finally:
            db.close()

    def delete(self, blob_id: str, strict: bool = False) -> DeleteResult:
        """Delete a blob.

        A missing id is ``ALREADY_ABSENT`` unless ``strict`` is set, in which
        case it raises BlobNotFound. Running the same delete twice is safe.
        """
        db = self._session_factory()
        try:
            deleted = (
                db.query(ContentBlob)
                .filter(ContentBlob.id == blob_id)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageFailure(f"could not delete blob {blob_id}: {exc}") from exc
        finally:
            db.close()

        if deleted:
            logger.debug("deleted blob %s", blob_id)
            return DeleteResult.DELETED

        if strict:
            raise BlobNotFound(f"blob {blob_id} not found")
        return DeleteResult.ALREADY_ABSENT


def release_blob(blobs: BlobStore, blob_id: Optional[str], context: str) -> Optional[DeleteResult]:
    """Best-effort cleanup after the owning record has already changed.

    Returns None when there was nothing to release or the store failed; the
    failure is logged, not raised, since an orphaned blob only costs space.
    """
    if not blob_id:
        return None
    try:
        return blobs.delete(blob_id)
    except StorageFailure:
        logger.warning("could not release blob %s (%s)", blob_id, context, exc_info=True)
        return None
