"""作业API - 布置作业、评分材料、学生/教师作业列表。"""

from datetime import datetime
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from classgrade.api.errors import DOMAIN_ERRORS, to_http_exception
from classgrade.api.v2.auth import get_current_user, require_teacher
from classgrade.db import get_db
from classgrade.models import User, UserRole
from classgrade.schemas.records import (
    AssignmentResponse,
    StudentAssignmentResponse,
    TeacherAssignmentResponse,
    serialize_assignment,
)
from classgrade.services.assignments import AssignmentService
from classgrade.services.classes import ClassroomService

router = APIRouter()
assignment_service = AssignmentService()
classroom_service = ClassroomService()


# === Schemas ===

class AssignmentCreate(BaseModel):
    class_id: int
    title: str = Field(max_length=255)
    description: Optional[str] = None
    due_date: datetime


class GradingMaterialUpdate(BaseModel):
    rubric: Optional[str] = None
    answer_key: Optional[str] = None


class AssignmentListResponse(BaseModel):
    assignments: List[Union[StudentAssignmentResponse, TeacherAssignmentResponse]]
    total: int


# === API 端点 ===

@router.post("/", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    data: AssignmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """布置作业（教师权限），评分标准与答案默认为空。"""
    try:
        assignment = assignment_service.create_assignment(
            db,
            class_id=data.class_id,
            teacher_id=current_user.id,
            title=data.title,
            due_date=data.due_date,
            description=data.description,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return serialize_assignment(assignment)


@router.get("/", response_model=AssignmentListResponse)
async def list_my_assignments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """学生：所在班级的作业（截止时间升序，含全部 attempt）；教师：自己班级的作业及提交统计。"""
    if current_user.role == UserRole.TEACHER:
        assignments = assignment_service.list_for_teacher(db, current_user.id)
    else:
        assignments = assignment_service.list_for_student(db, current_user.id)
    return {"assignments": assignments, "total": len(assignments)}


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """作业详情。"""
    try:
        assignment = assignment_service.get_assignment(db, assignment_id)
        classroom_service.ensure_can_view(db, assignment.classroom, current_user)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return serialize_assignment(assignment)


@router.put("/{assignment_id}/grading-material", response_model=AssignmentResponse)
async def update_grading_material(
    assignment_id: int,
    data: GradingMaterialUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """设置评分标准与参考答案文本，传 null 清空。"""
    try:
        assignment = assignment_service.update_grading_material(
            db, assignment_id, current_user.id, data.rubric, data.answer_key
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return serialize_assignment(assignment)
