import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence
from uuid import UUID

import jwt
from jwt.exceptions import PyJWTError
from starlette.concurrency import run_in_threadpool

from clinicdesk.core.config import settings
from clinicdesk.core.errors import ImageRejected, ObjectTooLarge, StorageError
from clinicdesk.core.logger import logger

CHUNK_SIZE = 1024 * 1024

class AssessmentImageStorage:
    def __init__(
        self,
        root_dir: str = settings.STORAGE_DIR,
        bucket: str = settings.STORAGE_BUCKET,
        secret_key: str = settings.SECRET_KEY,
        algorithm: str = settings.ALGORITHM,
        url_prefix: str = f"{settings.API_V1_STR}/storage",
    ):
        self.bucket = bucket
        self.base = (Path(root_dir) / bucket).resolve()
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.url_prefix = url_prefix.rstrip("/")

    def _resolve(self, path: str) -> Path:
        key = path.strip()
        target = (self.base / key).resolve()
        if target == self.base or not str(target).startswith(f"{self.base}/"):
            raise StorageError(f"Invalid storage path: {path!r}")
        return target

    def upload(self, name: str, source: BinaryIO, max_bytes: Optional[int] = None) -> str:
        target = self._resolve(name)
        if target.exists():
            raise StorageError(f"{name} already exists")
        total = 0
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as handle:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if max_bytes is not None and total > max_bytes:
                        raise ObjectTooLarge(f"{name} exceeds {max_bytes} bytes")
                    handle.write(chunk)
        except ObjectTooLarge:
            target.unlink(missing_ok=True)
            raise
        except OSError as e:
            target.unlink(missing_ok=True)
            raise StorageError(f"Error uploading {name}: {e}") from e
        return name

    def remove(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Error removing {path}: {e}") from e

    def signed_url(self, path: str, ttl_seconds: int = settings.SIGNED_URL_TTL_SECONDS) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError(f"Object not found: {path}")
        expires = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        token = jwt.encode({"bucket": self.bucket, "path": path, "exp": expires}, self.secret_key, algorithm=self.algorithm)
        return f"{self.url_prefix}/{self.bucket}/{path}?token={token}"

    def resolve_signed(self, path: str, token: str) -> Path:
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except PyJWTError as e:
            raise StorageError(f"Invalid or expired link: {e}") from e
        if claims.get("bucket") != self.bucket or claims.get("path") != path:
            raise StorageError("Link does not match the requested object")
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError(f"Object not found: {path}")
        return target

@dataclass
class UploadedFile:
    filename: str
    content_type: str
    file: BinaryIO

@dataclass
class UploadResult:
    paths: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)

def image_object_name(appointment_id: UUID, filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(6))
    return f"{appointment_id}_{int(time.time() * 1000)}_{suffix}.{ext}"

class AssessmentImageService:
    def __init__(self, storage: AssessmentImageStorage, max_bytes: int = settings.MAX_IMAGE_BYTES):
        self.storage = storage
        self.max_bytes = max_bytes

    def check(self, upload: UploadedFile) -> None:
        if not (upload.content_type or "").startswith("image/"):
            raise ImageRejected(f"{upload.filename} is not an image file")

    async def add_images(self, appointment_id: UUID, uploads: Sequence[UploadedFile]) -> UploadResult:
        result = UploadResult()
        for upload in uploads:
            name = image_object_name(appointment_id, upload.filename)
            try:
                self.check(upload)
                path = await run_in_threadpool(self.storage.upload, name, upload.file, self.max_bytes)
            except ObjectTooLarge:
                reason = f"{upload.filename} is too large. Max size is {self.max_bytes // (1024 * 1024)}MB"
            except (ImageRejected, StorageError) as e:
                reason = str(e)
            else:
                result.paths.append(path)
                continue
            logger.warning(f"Image upload for {appointment_id} rejected: {reason}")
            result.rejected.append(reason)
        return result

    async def remove_image(self, path: str) -> None:
        await run_in_threadpool(self.storage.remove, path)

    async def signed_urls(self, paths: Sequence[str], ttl_seconds: Optional[int] = None) -> List[str]:
        ttl = ttl_seconds or settings.SIGNED_URL_TTL_SECONDS
        return await run_in_threadpool(self._sign_all, paths, ttl)

    def _sign_all(self, paths: Sequence[str], ttl: int) -> List[str]:
        urls = []
        for path in paths:
            try:
                urls.append(self.storage.signed_url(path, ttl))
            except StorageError as e:
                logger.error(f"Error creating signed URL for {path}: {e}")
        return urls
