import pytest

from coursework.core.errors import BlobNotFound, StorageFailure, StorageTimeout
from coursework.models.blob import ContentBlob
from coursework.services.content_store import DeleteResult, release_blob


def test_store_and_retrieve_roundtrip_keeps_metadata(blobs):
    blob_id = blobs.store(b"hello", "application/pdf", "notes.pdf", metadata={"task_id": 7})

    blob = blobs.retrieve(blob_id)
    assert blob.data == b"hello"
    assert blob.media_type == "application/pdf"
    assert blob.original_name == "notes.pdf"
    assert blob.size_bytes == 5
    assert blob.metadata["task_id"] == 7
    assert "uploaded_at" in blob.metadata


def test_each_store_gets_a_fresh_id(blobs):
    a = blobs.store(b"same", "image/png", "a.png")
    b = blobs.store(b"same", "image/png", "a.png")
    assert a != b


def test_retrieve_unknown_id_is_not_found(blobs):
    with pytest.raises(BlobNotFound):
        blobs.retrieve("does-not-exist")


def test_delete_twice_is_deleted_then_already_absent(blobs):
    blob_id = blobs.store(b"x", "image/png", "x.png")

    assert blobs.delete(blob_id) == DeleteResult.DELETED
    assert blobs.delete(blob_id) == DeleteResult.ALREADY_ABSENT
    assert blobs.exists(blob_id) is False


def test_strict_delete_of_missing_blob_raises(blobs):
    with pytest.raises(BlobNotFound):
        blobs.delete("missing", strict=True)


def test_timed_out_write_leaves_nothing_behind(blobs, db):
    before = db.query(ContentBlob).count()

    with pytest.raises(StorageTimeout):
        blobs.store(b"slow", "image/png", "slow.png", timeout=-1)

    assert db.query(ContentBlob).count() == before


def test_storage_timeout_is_a_storage_failure():
    assert issubclass(StorageTimeout, StorageFailure)
    assert StorageTimeout.status_code == 503


def test_release_blob_swallows_storage_failures(caplog):
    class BrokenStore:
        def delete(self, blob_id, strict=False):
            raise StorageFailure("store unreachable")

    assert release_blob(BrokenStore(), "abc", "test cleanup") is None
    assert "could not release blob abc" in caplog.text


def test_release_blob_without_id_is_a_no_op(blobs):
    assert release_blob(blobs, None, "nothing") is None
