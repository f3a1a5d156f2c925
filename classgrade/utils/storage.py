"""提交图片的本地对象存储。

存储键格式为 ``{assignment_id}/{student_id}/{timestamp}.{ext}``，
对外提供公开 URL 与带过期时间的签名 URL。
"""

import hashlib
import hmac
import re
import time
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import quote, urlencode

from fastapi import UploadFile

from classgrade.config import Settings
from classgrade.errors import NotFoundError, ValidationFailure

_EXT_RE = re.compile(r"^[a-z0-9]{1,8}$")


def ensure_directory(path: Path) -> None:
    """确保目录存在。"""

    path.mkdir(parents=True, exist_ok=True)


async def save_upload_file(upload: UploadFile, destination: Path, max_bytes: int) -> int:
    """保存上传文件到指定路径，返回字节大小。

    由于 ``UploadFile`` 在 FastAPI 中是异步文件对象，这里使用 ``await upload.read()``
    读取全部内容，然后写入目标路径。
    """

    data = await upload.read()
    if not data:
        raise ValidationFailure("上传文件为空")
    if len(data) > max_bytes:
        raise ValidationFailure(f"文件超过大小限制 ({max_bytes} 字节)")

    ensure_directory(destination.parent)
    with destination.open("wb") as f:
        f.write(data)
    await upload.seek(0)
    return len(data)


class SubmissionStorage:
    """基于本地目录的对象存储。"""

    def __init__(
        self,
        root: Path,
        public_base_url: str,
        secret_key: str,
        default_expires_in: int = 3600,
        max_upload_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.root = root
        self.public_base_url = public_base_url.rstrip("/")
        self.secret_key = secret_key
        self.default_expires_in = default_expires_in
        self.max_upload_bytes = max_upload_bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> "SubmissionStorage":
        return cls(
            root=settings.storage_dir,
            public_base_url=settings.public_base_url,
            secret_key=settings.secret_key,
            default_expires_in=settings.signed_url_expires_seconds,
            max_upload_bytes=settings.max_upload_bytes,
        )

    @staticmethod
    def build_key(
        assignment_id: int,
        student_id: int,
        filename: Optional[str],
        timestamp_ms: Optional[int] = None,
    ) -> str:
        suffix = PurePosixPath(filename or "").suffix.lstrip(".").lower()
        ext = suffix if _EXT_RE.match(suffix) else "jpg"
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        return f"{assignment_id}/{student_id}/{timestamp_ms}.{ext}"

    def resolve(self, path: str) -> Path:
        """把存储键映射为本地路径，拒绝越出根目录的键。"""

        root = self.root.resolve()
        target = (root / path).resolve()
        if root != target and root not in target.parents:
            raise NotFoundError("文件不存在")
        return target

    async def upload(self, upload: UploadFile, assignment_id: int, student_id: int) -> str:
        content_type = (upload.content_type or "").lower()
        if not content_type.startswith("image/"):
            raise ValidationFailure("只支持上传图片文件")
        timestamp_ms = int(time.time() * 1000)
        key = self.build_key(assignment_id, student_id, upload.filename, timestamp_ms)
        # 同一毫秒内的重复上传顺延到下一个空闲键
        while self.resolve(key).exists():
            timestamp_ms += 1
            key = self.build_key(assignment_id, student_id, upload.filename, timestamp_ms)
        await save_upload_file(upload, self.resolve(key), self.max_upload_bytes)
        return key

    def delete(self, path: str) -> None:
        self.resolve(path).unlink(missing_ok=True)

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/files/{quote(path)}"

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode()
        return hmac.new(self.secret_key.encode(), message, hashlib.sha256).hexdigest()

    def signed_url(self, path: str, expires_in: Optional[int] = None, now: Optional[float] = None) -> str:
        issued = time.time() if now is None else now
        expires = int(issued) + (expires_in or self.default_expires_in)
        query = urlencode({"expires": expires, "signature": self._signature(path, expires)})
        return f"{self.public_url(path)}?{query}"

    def verify_signature(
        self, path: str, expires: int, signature: str, now: Optional[float] = None
    ) -> bool:
        current = time.time() if now is None else now
        if current > expires:
            return False
        return hmac.compare_digest(signature, self._signature(path, expires))
