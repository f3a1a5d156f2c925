"""Gemini/LangChain集成的通用工具。"""

from __future__ import annotations

import base64

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from classgrade.config import Settings
from classgrade.errors import UpstreamFailure


class GeminiNotConfiguredError(UpstreamFailure):
    """当未提供 Gemini API Key 时抛出。"""


def _message_text(content) -> str:
    """LangChain 消息内容可能是字符串或分段列表，统一拼成文本。"""

    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


class GeminiClient:
    """使用 LangChain 封装的 Gemini 文本生成与图片识别。

    超时与重试交给 ``ChatGoogleGenerativeAI`` 自身处理。
    """

    def __init__(
        self,
        settings: Settings,
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
    ) -> None:
        self.settings = settings
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._chats: dict[str, ChatGoogleGenerativeAI] = {}

    @property
    def is_available(self) -> bool:
        return bool(self.settings.gemini_api_key)

    def _get_chat(self, model: str) -> ChatGoogleGenerativeAI:
        if not self.is_available:
            raise GeminiNotConfiguredError("Gemini API 未配置")
        if model not in self._chats:
            self._chats[model] = ChatGoogleGenerativeAI(
                model=model,
                google_api_key=self.settings.gemini_api_key,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
                timeout=self.settings.grading_timeout_seconds,
                max_retries=self.settings.grading_max_retries,
            )
        return self._chats[model]

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """返回模型的原始文本输出，由调用方自行解析。"""

        try:
            chat = self._get_chat(self.settings.gemini_model)
            message = chat.invoke(
                [
                    SystemMessage(content=system_prompt),
                    HumanMessage(content=user_prompt),
                ]
            )
        except GeminiNotConfiguredError:
            raise
        except Exception as exc:
            raise UpstreamFailure("Gemini 文本生成失败") from exc
        return _message_text(message.content)

    def transcribe_image(self, image_bytes: bytes, mime_type: str, instruction: str) -> str:
        """识别图片中的文字。"""

        encoded = base64.b64encode(image_bytes).decode("ascii")
        message = HumanMessage(
            content=[
                {"type": "text", "text": instruction},
                {"type": "image_url", "image_url": f"data:{mime_type};base64,{encoded}"},
            ]
        )
        try:
            chat = self._get_chat(self.settings.gemini_vision_model)
            response = chat.invoke([message])
        except GeminiNotConfiguredError:
            raise
        except Exception as exc:
            raise UpstreamFailure("Gemini 图片识别失败") from exc
        return _message_text(response.content)
