import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Tuple

from cloudinary.exceptions import Error as CloudinaryError
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from config.env import CLOUDINARY_FOLDER, STORAGE_TIMEOUT_SECONDS
from config.constants import MAX_UPLOAD_BYTES
from utils.cloudinary import upload_file
from utils.errors import ValidationError, Unavailable

logger = logging.getLogger(__name__)


def check_uploads(
    files: Optional[List[UploadFile]],
    *,
    field: str,
    allowed_types: Iterable[str],
    max_count: int,
) -> List[UploadFile]:
    """
    Reject the whole request before anything is written.
    Returns the non-empty uploads.
    """
    files = [f for f in (files or []) if f is not None and f.filename]

    if len(files) > max_count:
        raise ValidationError(errors=[f"{field}: at most {max_count} files allowed"])

    allowed = set(allowed_types)
    errors = []
    for f in files:
        if (f.content_type or "").lower() not in allowed:
            errors.append(f"{field}: {f.filename} has unsupported type {f.content_type}")
        elif f.size is not None and f.size > MAX_UPLOAD_BYTES:
            errors.append(f"{field}: {f.filename} exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")

    if errors:
        raise ValidationError(errors=errors)

    return files


RESOURCE_TYPES = {"images": "image"}


class CloudStorage:
    """
    Uploads go to Cloudinary under ``<root_folder>/<folder>``.
    Only the returned ``secure_url`` is ever persisted.
    """

    def __init__(self, uploader: Callable[..., dict] = upload_file,
                 root_folder: str = CLOUDINARY_FOLDER,
                 timeout: float = STORAGE_TIMEOUT_SECONDS):
        self.uploader = uploader
        self.root_folder = root_folder.strip("/")
        self.timeout = timeout

    async def save(self, file: UploadFile, folder: str) -> str:
        try:
            result = await asyncio.wait_for(
                run_in_threadpool(
                    self.uploader,
                    file.file,
                    folder=f"{self.root_folder}/{folder}",
                    resource_type=RESOURCE_TYPES.get(folder, "auto"),
                ),
                timeout=self.timeout,
            )
        except (CloudinaryError, OSError, asyncio.TimeoutError):
            logger.exception("UPLOAD_STORE_ERROR file=%s folder=%s", file.filename, folder)
            raise Unavailable("File storage unavailable")

        url = (result or {}).get("secure_url")
        if not url:
            logger.error("UPLOAD_STORE_ERROR file=%s folder=%s no secure_url", file.filename, folder)
            raise Unavailable("File upload failed")
        return url

    async def save_many(self, files: List[UploadFile], folder: str) -> List[Tuple[str, str]]:
        """Returns (original filename, url) pairs in upload order."""
        stored = []
        for f in files:
            url = await self.save(f, folder)
            stored.append((f.filename, url))
        return stored


_storage: Optional[CloudStorage] = None


def get_storage() -> CloudStorage:
    global _storage
    if _storage is None:
        _storage = CloudStorage()
    return _storage
