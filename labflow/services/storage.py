"""
Order file storage with time-limited signed download URLs
"""

import logging
import mimetypes
import os
import shutil
from datetime import timedelta
from pathlib import Path
from typing import Optional

from jose import JWTError, jwt

from labflow.config import settings
from labflow.utils.datetime_utils import utcnow
from labflow.utils.error_handler import StorageError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SIGNED_URL_AUDIENCE = "order-files"


class OrderFileStorage:
    """Path-addressed store for order attachments, rooted at a local directory"""

    def __init__(self, root: str, secret_key: str):
        self.root = Path(root).resolve()
        self.secret_key = secret_key

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root != target and self.root not in target.parents:
            raise StorageError("Invalid file path", "INVALID_PATH")
        return target

    @staticmethod
    def build_path(order_number: str, kind: str, filename: Optional[str]) -> str:
        """``<order_number>/<kind>.<ext>``, extension taken from the uploaded file name"""
        ext = ""
        if filename and "." in filename:
            ext = "." + filename.rsplit(".", 1)[-1].lower()
        return f"{order_number}/{kind}{ext}"

    def upload_bytes(self, path: str, content: bytes) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            logger.error(f"Failed to store file {path}: {e}")
            raise StorageError("Failed to store file", "UPLOAD_FAILED", e)
        logger.info(f"Stored file {path} ({len(content)} bytes)")
        return path

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def open_path(self, path: str) -> Path:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(path)
        return target

    def delete_prefix(self, prefix: str) -> None:
        """Remove every file stored under ``prefix`` (an order number)"""
        target = self._resolve(prefix)
        if target.is_dir():
            shutil.rmtree(target, ignore_errors=True)
        elif target.is_file():
            os.remove(target)

    def create_signed_token(self, path: str, expires_in: int) -> str:
        expire = utcnow() + timedelta(seconds=expires_in)
        payload = {"path": path, "aud": SIGNED_URL_AUDIENCE, "exp": expire}
        return jwt.encode(payload, self.secret_key, algorithm=ALGORITHM)

    def verify_signed_token(self, token: str) -> str:
        """Path a signed token grants access to; raises StorageError when invalid or expired"""
        try:
            payload = jwt.decode(
                token, self.secret_key, algorithms=[ALGORITHM], audience=SIGNED_URL_AUDIENCE
            )
        except JWTError as e:
            raise StorageError("Signed URL is invalid or has expired", "INVALID_SIGNATURE", e)
        path = payload.get("path")
        if not path:
            raise StorageError("Signed URL is invalid or has expired", "INVALID_SIGNATURE")
        return path

    @staticmethod
    def content_type(path: str) -> str:
        guessed, _ = mimetypes.guess_type(path)
        return guessed or "application/octet-stream"


def get_storage() -> OrderFileStorage:
    """Dependency returning the configured storage"""
    return OrderFileStorage(settings.storage_root, settings.secret_key)
