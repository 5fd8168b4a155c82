from typing import Optional

from fastapi import UploadFile

from coursework.core.config import MAX_UPLOAD_BYTES
from coursework.db.session import SessionLocal
from coursework.services.content_store import BlobStore
from coursework.services.upload_policy import UploadPayload


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_blob_store() -> BlobStore:
    return BlobStore(SessionLocal)


def read_upload(file: Optional[UploadFile]) -> Optional[UploadPayload]:
    if file is None:
        return None
    # one byte past the limit is enough for the size check to fail
    data = file.file.read(MAX_UPLOAD_BYTES + 1)
    return UploadPayload(
        data=data,
        media_type=file.content_type or "",
        filename=file.filename or "upload",
    )
