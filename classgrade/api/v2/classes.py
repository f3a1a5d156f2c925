"""班级API - 创建班级、班级码加入、成员列表。"""

from typing import List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from classgrade.api.errors import DOMAIN_ERRORS, to_http_exception
from classgrade.api.v2.auth import get_current_user, require_student, require_teacher
from classgrade.db import get_db
from classgrade.models import User, UserRole
from classgrade.schemas.records import (
    AssignmentResponse,
    ClassResponse,
    MemberResponse,
    serialize_assignment,
    serialize_class,
    serialize_member,
)
from classgrade.services.assignments import AssignmentService
from classgrade.services.classes import ClassroomService

router = APIRouter()
classroom_service = ClassroomService()
assignment_service = AssignmentService()


# === Schemas ===

class ClassCreate(BaseModel):
    name: str


class JoinClassRequest(BaseModel):
    class_code: str


class ClassListResponse(BaseModel):
    classes: List[ClassResponse]
    total: int


class MemberListResponse(BaseModel):
    members: List[MemberResponse]
    total: int


# === API 端点 ===

@router.post("/", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    data: ClassCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """创建班级并生成班级码（教师权限）。"""
    try:
        classroom = classroom_service.create_class(db, data.name, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return serialize_class(classroom)


@router.get("/", response_model=ClassListResponse)
async def list_my_classes(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """教师返回自己创建的班级，学生返回已加入的班级。"""
    if current_user.role == UserRole.TEACHER:
        classes = classroom_service.list_teacher_classes(db, current_user.id)
    else:
        classes = classroom_service.list_student_classes(db, current_user.id)
    return {"classes": [serialize_class(c) for c in classes], "total": len(classes)}


@router.post("/join", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def join_class(
    data: JoinClassRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student)
):
    """学生通过班级码加入班级，不区分大小写。"""
    try:
        member = classroom_service.join_class_by_code(db, data.class_code, current_user.id)
        classroom = classroom_service.get_class(db, member.class_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return serialize_class(classroom)


@router.get("/{class_id}/members", response_model=MemberListResponse)
async def list_class_members(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """班级成员列表。"""
    try:
        classroom = classroom_service.get_class(db, class_id)
        classroom_service.ensure_can_view(db, classroom, current_user)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    members = classroom_service.list_members(db, class_id)
    return {"members": [serialize_member(m) for m in members], "total": len(members)}


@router.get("/{class_id}/assignments", response_model=List[AssignmentResponse])
async def list_class_assignments(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """班级下的作业，按创建时间倒序。"""
    try:
        classroom = classroom_service.get_class(db, class_id)
        classroom_service.ensure_can_view(db, classroom, current_user)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return [serialize_assignment(a) for a in assignment_service.list_for_class(db, class_id)]
