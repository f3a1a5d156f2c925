"""教师复核API - 手动分数与评语覆盖 AI 评分展示。"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from classgrade.api.errors import DOMAIN_ERRORS, to_http_exception
from classgrade.api.v2.auth import require_teacher
from classgrade.db import get_db
from classgrade.models import User
from classgrade.schemas.records import SubmissionResponse, serialize_submission
from classgrade.services.submissions import SubmissionService

router = APIRouter()
submission_service = SubmissionService()


# === Schemas ===

class TeacherReviewUpdate(BaseModel):
    # 0-100，在 service 层校验；null 表示清空
    teacher_score: Optional[float] = None
    teacher_feedback: Optional[str] = None


# === API 端点 ===

@router.put("/{submission_id}", response_model=SubmissionResponse)
async def update_teacher_review(
    submission_id: int,
    data: TeacherReviewUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """教师复核。ai_score 保留不变，展示分数优先取教师分数。"""
    try:
        submission = submission_service.update_teacher_review(
            db,
            submission_id,
            current_user.id,
            data.teacher_score,
            data.teacher_feedback,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return serialize_submission(submission, with_context=True)
