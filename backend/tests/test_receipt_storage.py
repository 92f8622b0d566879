"""
Receipt storage tests.
"""

import io
import os

import pytest
from werkzeug.datastructures import FileStorage

from claimdesk.errors import ValidationError
from claimdesk.services.receipt_storage import ReceiptStorage


def _upload(filename, content_type, data=b"%PDF-1.4 test"):
    return FileStorage(stream=io.BytesIO(data), filename=filename, content_type=content_type)


@pytest.fixture
def storage(tmp_path):
    return ReceiptStorage(root=str(tmp_path), base_url="/uploads/")


class TestSave:

    def test_saves_under_owner_folder(self, storage, tmp_path):
        stored = storage.save(_upload("taxi.pdf", "application/pdf"), owner_id=7)

        assert stored.filename.startswith("receipt-")
        assert stored.filename.endswith(".pdf")
        assert stored.url == f"/uploads/7/{stored.filename}"
        assert os.path.exists(tmp_path / "7" / stored.filename)

    def test_client_name_is_not_kept(self, storage):
        stored = storage.save(_upload("../../etc/passwd.png", "image/png"), owner_id=1)
        assert "passwd" not in stored.filename

    @pytest.mark.parametrize("filename,content_type", [
        ("receipt.exe", "application/octet-stream"),
        ("receipt.gif", "image/gif"),
        ("receipt", "application/pdf"),
    ])
    def test_rejects_disallowed_files(self, storage, filename, content_type):
        with pytest.raises(ValidationError) as exc:
            storage.save(_upload(filename, content_type), owner_id=1)
        assert exc.value.errors[0]["field"] == "receipt"

    def test_rejects_mismatched_content_type(self, storage):
        with pytest.raises(ValidationError):
            storage.save(_upload("photo.png", "application/pdf"), owner_id=1)

    def test_rejects_missing_file(self, storage):
        with pytest.raises(ValidationError):
            storage.save(None, owner_id=1)


class TestDelete:

    def test_delete_existing_then_missing(self, storage):
        stored = storage.save(_upload("meal.jpg", "image/jpeg"), owner_id=3)
        assert storage.delete(3, stored.filename) is True
        assert storage.delete(3, stored.filename) is False

    def test_delete_without_filename(self, storage):
        assert storage.delete(3, None) is False
