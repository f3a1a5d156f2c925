"""班级创建、班级码加入与成员查询。"""

from __future__ import annotations

import logging
import secrets
import string
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from classgrade.db import commit_or_raise
from classgrade.errors import (
    AlreadyExistsError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceFailure,
    ValidationFailure,
)
from classgrade.models import ClassMember, Classroom, User, UserRole

logger = logging.getLogger(__name__)

CLASS_CODE_ALPHABET = string.digits + string.ascii_uppercase
CLASS_CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 5


def generate_class_code() -> str:
    """6 位大写 base-36 随机码。"""

    return "".join(secrets.choice(CLASS_CODE_ALPHABET) for _ in range(CLASS_CODE_LENGTH))


def normalize_class_code(code: str) -> str:
    return (code or "").strip().upper()


class ClassroomService:
    """封装班级与成员关系的读写。"""

    def __init__(self, code_factory: Callable[[], str] = generate_class_code) -> None:
        self.code_factory = code_factory

    def create_class(self, db: Session, name: str, teacher_id: int) -> Classroom:
        name = (name or "").strip()
        if not name:
            raise ValidationFailure("班级名称不能为空")

        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            classroom = Classroom(name=name, teacher_id=teacher_id, class_code=self.code_factory())
            db.add(classroom)
            try:
                commit_or_raise(db)
            except IntegrityError:
                logger.info("Class code collision on attempt %d, regenerating", attempt)
                continue
            db.refresh(classroom)
            logger.info("Teacher %s created class %s (%s)", teacher_id, classroom.id, classroom.class_code)
            return classroom
        raise PersistenceFailure("无法生成唯一的班级码，请重试")

    def join_class_by_code(self, db: Session, code: str, student_id: int) -> ClassMember:
        """按班级码加入班级（不区分大小写）。

        重复加入由 (class_id, user_id) 唯一约束判定，而不是先查后插。
        """

        normalized = normalize_class_code(code)
        if not normalized:
            raise ValidationFailure("班级码不能为空")

        classroom = db.query(Classroom).filter(Classroom.class_code == normalized).first()
        if classroom is None:
            raise NotFoundError("班级不存在")

        member = ClassMember(class_id=classroom.id, user_id=student_id)
        db.add(member)
        try:
            commit_or_raise(db)
        except IntegrityError as exc:
            raise AlreadyExistsError("已加入该班级") from exc
        db.refresh(member)
        logger.info("Student %s joined class %s", student_id, classroom.id)
        return member

    def get_class(self, db: Session, class_id: int) -> Classroom:
        classroom = db.get(Classroom, class_id)
        if classroom is None:
            raise NotFoundError("班级不存在")
        return classroom

    def is_member(self, db: Session, class_id: int, user_id: int) -> bool:
        return (
            db.query(ClassMember.id)
            .filter(ClassMember.class_id == class_id, ClassMember.user_id == user_id)
            .first()
            is not None
        )

    def ensure_can_view(self, db: Session, classroom: Classroom, user: User) -> None:
        if user.role == UserRole.TEACHER:
            if classroom.teacher_id != user.id:
                raise PermissionDeniedError("只能查看自己创建的班级")
        elif not self.is_member(db, classroom.id, user.id):
            raise PermissionDeniedError("未加入该班级")

    def ensure_owner(self, classroom: Classroom, teacher_id: int) -> None:
        if classroom.teacher_id != teacher_id:
            raise PermissionDeniedError("只能操作自己创建的班级")

    def list_teacher_classes(self, db: Session, teacher_id: int) -> list[Classroom]:
        return (
            db.query(Classroom)
            .options(selectinload(Classroom.members))
            .filter(Classroom.teacher_id == teacher_id)
            .order_by(Classroom.created_at.desc(), Classroom.id.desc())
            .all()
        )

    def list_student_classes(self, db: Session, student_id: int) -> list[Classroom]:
        return (
            db.query(Classroom)
            .join(ClassMember, ClassMember.class_id == Classroom.id)
            .options(selectinload(Classroom.members))
            .filter(ClassMember.user_id == student_id)
            .order_by(ClassMember.created_at.desc(), ClassMember.id.desc())
            .all()
        )

    def list_members(self, db: Session, class_id: int) -> list[ClassMember]:
        return (
            db.query(ClassMember)
            .options(selectinload(ClassMember.user))
            .filter(ClassMember.class_id == class_id)
            .order_by(ClassMember.created_at.desc(), ClassMember.id.desc())
            .all()
        )
