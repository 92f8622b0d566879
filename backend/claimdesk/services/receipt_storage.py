# Overview: Receipt blob storage on the local filesystem.

"""
Receipt Storage

Stores uploaded receipt files under UPLOAD_FOLDER/<owner_id>/ and hands
back the stored filename plus a URL the /uploads route serves.

Only JPEG, PNG and PDF are accepted, checked by extension and by the
declared MIME type. Stored names are random; the client's file name is
only used for its extension.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass

from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import ValidationError


DEFAULT_ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "pdf")

ALLOWED_MIME_TYPES = {
    "jpg": {"image/jpeg", "image/jpg", "image/pjpeg"},
    "jpeg": {"image/jpeg", "image/jpg", "image/pjpeg"},
    "png": {"image/png"},
    "pdf": {"application/pdf"},
}


@dataclass(frozen=True)
class StoredReceipt:
    filename: str
    url: str


class ReceiptStorage:
    def __init__(self, root: str, base_url: str, allowed_extensions=DEFAULT_ALLOWED_EXTENSIONS):
        self.root = root
        self.base_url = base_url.rstrip("/")
        self.allowed_extensions = tuple(e.lower() for e in allowed_extensions)

    @classmethod
    def from_app(cls, app=None) -> "ReceiptStorage":
        app = app or current_app
        return cls(
            root=app.config["UPLOAD_FOLDER"],
            base_url=app.config.get("RECEIPT_BASE_URL", "/uploads"),
            allowed_extensions=app.config.get("ALLOWED_RECEIPT_EXTENSIONS", DEFAULT_ALLOWED_EXTENSIONS),
        )

    def _extension(self, file_storage) -> str:
        original = secure_filename(file_storage.filename or "")
        if "." not in original:
            raise ValidationError(
                "Receipt file has no extension",
                errors=[{"field": "receipt", "message": "File has no extension"}],
            )
        ext = original.rsplit(".", 1)[1].lower()
        if ext not in self.allowed_extensions:
            raise ValidationError(
                "Receipt must be a JPEG, PNG or PDF file",
                errors=[{"field": "receipt", "message": "File type not allowed"}],
            )
        mimetype = (file_storage.mimetype or "").lower()
        if mimetype and mimetype != "application/octet-stream" and mimetype not in ALLOWED_MIME_TYPES.get(ext, set()):
            raise ValidationError(
                "Receipt must be a JPEG, PNG or PDF file",
                errors=[{"field": "receipt", "message": f"Content type {mimetype} not allowed"}],
            )
        return ext

    def save(self, file_storage, owner_id: int) -> StoredReceipt:
        """Validate and write one uploaded file. Raises ValidationError on rejection."""
        if file_storage is None or not file_storage.filename:
            raise ValidationError(
                "No receipt file selected",
                errors=[{"field": "receipt", "message": "No file selected"}],
            )
        ext = self._extension(file_storage)

        stored_name = f"receipt-{uuid.uuid4().hex}.{ext}"
        folder = os.path.join(self.root, str(int(owner_id)))
        os.makedirs(folder, exist_ok=True)
        file_storage.save(os.path.join(folder, stored_name))

        return StoredReceipt(
            filename=stored_name,
            url=f"{self.base_url}/{int(owner_id)}/{stored_name}",
        )

    def delete(self, owner_id: int, filename: str | None) -> bool:
        """Remove a stored receipt. Missing files are not an error."""
        if not filename:
            return False
        path = os.path.join(self.root, str(int(owner_id)), secure_filename(filename))
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        return True
