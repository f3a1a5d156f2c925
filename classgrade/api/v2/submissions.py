"""作业提交API - 上传图片、AI 评分、attempt 历史。"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.orm import Session

from classgrade.api.errors import DOMAIN_ERRORS, to_http_exception
from classgrade.api.v2.auth import get_current_user, require_student, require_teacher
from classgrade.config import get_settings
from classgrade.db import get_db
from classgrade.dependencies import get_grading_pipeline, get_storage
from classgrade.models import User
from classgrade.schemas.records import SubmissionResponse, serialize_submission
from classgrade.services.assignments import AssignmentService
from classgrade.services.grading import GradingPipeline
from classgrade.services.submissions import SubmissionService
from classgrade.utils.storage import SubmissionStorage

logger = logging.getLogger(__name__)

router = APIRouter()
submission_service = SubmissionService()
assignment_service = AssignmentService()


# === Schemas ===

class SubmissionListResponse(BaseModel):
    submissions: List[SubmissionResponse]
    total: int


class ImageUrlResponse(BaseModel):
    file_path: str
    public_url: str
    signed_url: str
    expires_in: int


# === API 端点 ===

@router.post("/", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    assignment_id: int = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
    storage: SubmissionStorage = Depends(get_storage),
    pipeline: GradingPipeline = Depends(get_grading_pipeline),
):
    """上传作业图片并提交（学生权限）。

    每次上传都生成新的 attempt；评分失败不会丢失提交记录。
    """
    try:
        submission_service.ensure_can_submit(db, assignment_id, current_user.id)
        file_path = await storage.upload(file, assignment_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc

    settings = get_settings()
    image_url = storage.public_url(file_path) if settings.storage_public else storage.signed_url(file_path)
    try:
        submission = await run_in_threadpool(
            submission_service.create_submission, db, assignment_id, current_user.id, file_path
        )
    except DOMAIN_ERRORS as exc:
        # 记录未写入，删除已上传的图片
        storage.delete(file_path)
        logger.warning("Discarded upload %s: %s", file_path, exc)
        raise to_http_exception(exc) from exc

    try:
        submission = await run_in_threadpool(
            submission_service.grade_submission, db, submission, image_url, pipeline
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return serialize_submission(submission, with_context=True)


@router.get("/my", response_model=SubmissionListResponse)
async def list_my_submissions(
    assignment_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student)
):
    """学生查看自己的提交历史，按提交时间倒序。"""
    submissions = submission_service.list_for_student(db, current_user.id, assignment_id)
    return {
        "submissions": [serialize_submission(s, with_context=True) for s in submissions],
        "total": len(submissions),
    }


@router.get("/attempts/{assignment_id}", response_model=SubmissionListResponse)
async def list_my_attempts(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student)
):
    """某作业的全部 attempt，按 attempt_number 倒序，第 0 个为最新。"""
    attempts = submission_service.list_attempts(db, assignment_id, current_user.id)
    return {"submissions": [serialize_submission(s) for s in attempts], "total": len(attempts)}


@router.get("/assignment/{assignment_id}", response_model=SubmissionListResponse)
async def list_assignment_submissions(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """教师查看作业的所有提交。"""
    try:
        assignment = assignment_service.get_assignment(db, assignment_id)
        assignment_service.ensure_owner(assignment, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc

    submissions = submission_service.list_for_assignment(db, assignment_id)
    return {
        "submissions": [serialize_submission(s, with_context=True) for s in submissions],
        "total": len(submissions),
    }


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get submission detail."""
    try:
        submission = submission_service.get_for_viewer(db, submission_id, current_user)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return serialize_submission(submission, with_context=True)


@router.get("/{submission_id}/image-url", response_model=ImageUrlResponse)
async def get_submission_image_url(
    submission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: SubmissionStorage = Depends(get_storage),
):
    """提交图片的公开 URL 与限时签名 URL。"""
    try:
        submission = submission_service.get_for_viewer(db, submission_id, current_user)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return {
        "file_path": submission.file_path,
        "public_url": storage.public_url(submission.file_path),
        "signed_url": storage.signed_url(submission.file_path),
        "expires_in": storage.default_expires_in,
    }
