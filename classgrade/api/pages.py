"""页面路由：角色跳转与学生/教师仪表盘数据。"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from classgrade.api.v2.auth import get_optional_user
from classgrade.db import get_db
from classgrade.models import User, UserRole
from classgrade.services.dashboard import DashboardService
from classgrade.services.roles import landing_path, page_redirect

router = APIRouter(tags=["pages"])
dashboard_service = DashboardService()


@router.get("/", response_model=None)
async def home(current_user: Optional[User] = Depends(get_optional_user)):
    return RedirectResponse(landing_path(current_user))


@router.get("/login", response_model=None)
async def login_page(current_user: Optional[User] = Depends(get_optional_user)):
    """已登录用户直接进入仪表盘，否则返回认证接口地址。"""
    if current_user is not None:
        return RedirectResponse(landing_path(current_user))
    return {
        "signup": "/api/v2/auth/signup",
        "login": "/api/v2/auth/login",
    }


@router.get("/dashboard/student", response_model=None)
async def student_dashboard(
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """学生仪表盘：班级、待完成作业、最近提交与统计。"""
    target = page_redirect(current_user, UserRole.STUDENT)
    if target is not None:
        return RedirectResponse(target)
    return dashboard_service.student_dashboard(db, current_user)


@router.get("/dashboard/teacher", response_model=None)
async def teacher_dashboard(
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """教师仪表盘：班级、作业提交统计、全部提交。"""
    target = page_redirect(current_user, UserRole.TEACHER)
    if target is not None:
        return RedirectResponse(target)
    return dashboard_service.teacher_dashboard(db, current_user)
