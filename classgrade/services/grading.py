"""AI 评分流水线：图片文字识别 -> LLM 打分。

两个阶段都不向外抛出上游异常：
- 识别阶段失败时返回空字符串；
- 打分阶段失败、无文字或响应无法解析时返回兜底结果。
"""

from __future__ import annotations

import json
import logging
import re
from io import BytesIO
from typing import Any, Optional

import requests
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from classgrade.config import Settings
from classgrade.errors import UpstreamFailure
from classgrade.schemas.grading import GradingConfig, GradingResult, ScoreBreakdown
from classgrade.services.ai import GeminiClient

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_TYPES = frozenset({"image/png", "image/jpeg", "image/webp", "image/gif"})

OCR_INSTRUCTION = (
    "Transcribe all handwritten and printed text in this homework image. "
    "Preserve line breaks and mathematical notation. Return plain text only."
)

GRADING_SYSTEM_PROMPT = (
    "You are a helpful teaching assistant. Grade this assignment based on the "
    "answer key and rubric provided. Return JSON only with fields: "
    "score (number 0-100), feedback (step-by-step feedback for the student), "
    "breakdown (object with accuracy, methodology, completeness, each 0-100)."
)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class ImageTextExtractor:
    """第一阶段：下载图片并识别文字。"""

    def __init__(
        self,
        settings: Settings,
        client: Optional[GeminiClient] = None,
        http: Optional[Any] = None,
    ) -> None:
        self.settings = settings
        self.client = client or GeminiClient(settings, temperature=0.0)
        self.http = http or requests.Session()

    def extract(self, image_url: str) -> str:
        """返回识别出的文本；任何失败都返回 ``""``。"""

        fetched = self._fetch(image_url)
        if fetched is None:
            return ""
        data, mime_type = fetched

        if not self._is_decodable(data):
            logger.warning("Image at %s could not be decoded", image_url)
            return ""

        if not self.client.is_available:
            logger.warning("Text extraction skipped: Gemini is not configured")
            return ""

        try:
            text = self.client.transcribe_image(data, mime_type, OCR_INSTRUCTION)
        except UpstreamFailure as exc:
            logger.warning("Text extraction failed for %s: %s", image_url, exc)
            return ""
        return text.strip()

    def _fetch(self, image_url: str) -> Optional[tuple[bytes, str]]:
        response = None
        attempts = self.settings.grading_max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                response = self.http.get(image_url, timeout=self.settings.grading_timeout_seconds)
            except requests.RequestException as exc:
                logger.warning(
                    "Image fetch attempt %d/%d failed for %s: %s", attempt, attempts, image_url, exc
                )
                response = None
                continue
            # 5xx 重试，其余状态直接判定
            if response.status_code < 500:
                break

        if response is None:
            return None
        if not 200 <= response.status_code < 300:
            logger.warning("Image fetch returned HTTP %s for %s", response.status_code, image_url)
            return None

        content_type = response.headers.get("Content-Type", "")
        mime_type = content_type.split(";", 1)[0].strip().lower()
        if mime_type not in SUPPORTED_IMAGE_TYPES:
            logger.warning("Unsupported image content type %r for %s", mime_type, image_url)
            return None

        data = response.content or b""
        if len(data) < self.settings.image_min_bytes:
            logger.warning("Image payload too small (%d bytes) for %s", len(data), image_url)
            return None
        return data, mime_type

    @staticmethod
    def _is_decodable(data: bytes) -> bool:
        try:
            with Image.open(BytesIO(data)) as image:
                image.verify()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
            return False
        return True


def parse_grading_response(raw: str) -> Optional[GradingResult]:
    """尽力从模型输出中解析评分 JSON，失败返回 ``None``。

    兼容 ```json 代码块以及夹杂说明文字的输出。
    """

    if not raw:
        return None
    fenced = _FENCE_RE.search(raw)
    candidate = fenced.group(1) if fenced else raw
    start, end = candidate.find("{"), candidate.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        payload = json.loads(candidate[start : end + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    feedback = payload.get("feedback")
    if "score" not in payload or not isinstance(feedback, str) or not feedback.strip():
        return None

    breakdown = None
    if isinstance(payload.get("breakdown"), dict):
        try:
            breakdown = ScoreBreakdown.model_validate(payload["breakdown"])
        except (ValidationError, TypeError, ValueError):
            breakdown = None

    try:
        return GradingResult(score=payload["score"], feedback=feedback.strip(), breakdown=breakdown)
    except (ValidationError, TypeError, ValueError):
        return None


class SubmissionScorer:
    """第二阶段：根据识别文本、评分标准与答案打分。"""

    def __init__(self, settings: Settings, client: Optional[GeminiClient] = None) -> None:
        self.settings = settings
        self.client = client or GeminiClient(settings, temperature=0.2, max_output_tokens=1200)

    def score(self, text: str, config: GradingConfig) -> GradingResult:
        if not text or not text.strip():
            return self.fallback(
                "We could not read any text from your submission image. "
                "Try uploading a clearer photo; your teacher can also review it manually."
            )
        if not self.client.is_available:
            logger.warning("Scoring skipped: Gemini is not configured")
            return self.fallback(
                "Automatic grading is currently unavailable. "
                "Your teacher will review this submission."
            )

        try:
            raw = self.client.complete(GRADING_SYSTEM_PROMPT, build_grading_prompt(text, config))
        except UpstreamFailure as exc:
            logger.warning("Scoring call failed for assignment %s: %s", config.assignment_id, exc)
            return self.fallback(
                "Automatic grading failed to respond. Your teacher will review this submission."
            )

        result = parse_grading_response(raw)
        if result is None:
            logger.warning("Unparseable grading response for assignment %s", config.assignment_id)
            return self.fallback(
                "Automatic grading returned an unreadable result. "
                "Your teacher will review this submission."
            )
        return result

    def fallback(self, feedback: str) -> GradingResult:
        return GradingResult(
            score=self.settings.grading_fallback_score,
            feedback=feedback,
            breakdown=None,
            is_fallback=True,
        )


def build_grading_prompt(text: str, config: GradingConfig) -> str:
    return (
        f"Assignment: {config.assignment_title}\n"
        f"Answer Key: {config.answer_key or 'N/A'}\n"
        f"Rubric: {config.rubric or 'N/A'}\n\n"
        "Student Submission (transcribed):\n"
        f"{text}\n"
    )


class GradingPipeline:
    """识别 -> 打分的两阶段组合，第一阶段输出原样传入第二阶段。"""

    def __init__(self, extractor: ImageTextExtractor, scorer: SubmissionScorer) -> None:
        self.extractor = extractor
        self.scorer = scorer

    @classmethod
    def from_settings(cls, settings: Settings) -> "GradingPipeline":
        return cls(ImageTextExtractor(settings), SubmissionScorer(settings))

    def grade(self, image_url: str, config: GradingConfig) -> GradingResult:
        text = self.extractor.extract(image_url)
        result = self.scorer.score(text, config)
        if result.is_fallback:
            logger.info("Assignment %s graded with fallback result", config.assignment_id)
        return result
