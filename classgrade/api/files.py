"""本地对象存储的文件下载，私有模式下校验签名。"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from classgrade.config import get_settings
from classgrade.dependencies import get_storage
from classgrade.errors import NotFoundError
from classgrade.utils.storage import SubmissionStorage

router = APIRouter(tags=["files"])


@router.get("/files/{path:path}")
async def download_file(
    path: str,
    expires: Optional[int] = None,
    signature: Optional[str] = None,
    storage: SubmissionStorage = Depends(get_storage),
):
    if not get_settings().storage_public:
        if expires is None or not signature or not storage.verify_signature(path, expires, signature):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="链接无效或已过期")

    try:
        target = storage.resolve(path)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if not target.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="文件不存在")
    return FileResponse(target)
