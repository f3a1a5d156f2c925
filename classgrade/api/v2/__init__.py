"""API v2 路由包入口。"""

from fastapi import APIRouter

from classgrade.api.v2 import assignments, auth, classes, reviews, submissions

router = APIRouter(prefix="/api/v2")

# 注册子路由
router.include_router(auth.router, prefix="/auth", tags=["认证"])
router.include_router(classes.router, prefix="/classes", tags=["班级"])
router.include_router(assignments.router, prefix="/assignments", tags=["作业"])
router.include_router(submissions.router, prefix="/submissions", tags=["提交"])
router.include_router(reviews.router, prefix="/reviews", tags=["复核"])
