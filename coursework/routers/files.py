from urllib.parse import quote

from fastapi import APIRouter, Depends, Response

from coursework.core.config import BLOB_IO_TIMEOUT_SECONDS
from coursework.core.current_user import Identity, get_identity
from coursework.core.deps import get_blob_store
from coursework.services.content_store import BlobStore

router = APIRouter()


@router.get("/{blob_id}")
def download(
    blob_id: str,
    blobs: BlobStore = Depends(get_blob_store),
    _me: Identity = Depends(get_identity),
):
    blob = blobs.retrieve(blob_id, timeout=BLOB_IO_TIMEOUT_SECONDS)
    return Response(
        content=blob.data,
        media_type=blob.media_type,
        headers={
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(blob.original_name)}",
        },
    )
