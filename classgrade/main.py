"""FastAPI 入口：注册路由、初始化日志与数据库表。"""

import logging

from fastapi import FastAPI

from classgrade.api import files, pages
from classgrade.api.v2 import router as api_v2_router
from classgrade.config import get_settings
from classgrade.db import Base, engine
import classgrade.models  # noqa: F401  注册全部模型

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """应用工厂，便于测试与拓展路由。"""

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = FastAPI(title="ClassGrade API", version="0.1.0")

    @app.on_event("startup")
    def init_models() -> None:
        """启动时确保表存在。"""

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(api_v2_router)
    app.include_router(pages.router)
    app.include_router(files.router)
    return app


app = create_app()
