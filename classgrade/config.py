"""应用配置管理。

使用 Pydantic Settings 统一读取环境变量，便于在本地/生产之间切换。
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """核心配置项。

    - ``database_url``：默认使用本地 SQLite，便于快速启动。
    - ``storage_dir``：提交图片的本地对象存储目录。
    - ``gemini_api_key``：未配置时评分流水线走兜底结果。
    """

    database_url: str = Field(
        default="sqlite:///./storage/classgrade.db", description="SQLAlchemy 数据库 URL"
    )
    log_level: str = Field(default="INFO", description="日志级别")

    # 认证
    secret_key: str = Field(
        default="change-me-in-production", description="Token / 签名 URL 的 HMAC 密钥"
    )
    token_expire_hours: int = Field(default=24, ge=1)
    auto_confirm_email: bool = Field(
        default=True, description="注册时直接标记邮箱已确认（无邮件服务时使用）"
    )

    # 对象存储
    storage_dir: Path = Field(
        default=Path("./storage/uploads"), description="提交图片存储目录"
    )
    public_base_url: str = Field(
        default="http://localhost:8000", description="生成图片公开 URL 的基础地址"
    )
    storage_public: bool = Field(
        default=True, description="为 False 时 /files 只接受签名 URL"
    )
    signed_url_expires_seconds: int = Field(default=3600, ge=1)
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1)

    # AI 评分
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API Key")
    gemini_model: str = Field(default="gemini-1.5-flash", description="评分模型")
    gemini_vision_model: str = Field(
        default="gemini-1.5-flash", description="图片文字识别模型"
    )
    grading_timeout_seconds: float = Field(default=30.0, gt=0)
    grading_max_retries: int = Field(default=2, ge=0)
    image_min_bytes: int = Field(
        default=512, ge=0, description="小于该字节数的图片视为无效"
    )
    grading_fallback_score: int = Field(
        default=0, ge=0, le=100, description="AI 评分不可用时的保守分数"
    )

    model_config = {
        "env_prefix": "CLASSGRADE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """缓存后的全局配置实例。"""

    return Settings()
