"""关键词建议适配器

对录入流程只暴露 suggest_keywords(ocr_text, subject, examples)。
任何网络/服务失败都在这里兜底为空列表，录入流程不受影响；
建议仅供用户一键添加，不会自动写入题目。
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable

import requests

from papercut_toolkit.ai.client import build_chat_params, default_model, extract_response_text, make_client
from papercut_toolkit.ai.prompt import build_keyword_prompt
from papercut_toolkit.ai.result import parse_endpoint_payload, parse_keywords
from papercut_toolkit.errors import SuggestionUnavailable
from papercut_toolkit.models import Question

logger = logging.getLogger(__name__)

DEFAULT_MAX_SUGGESTIONS = 3


class BaseSuggester(ABC):

    def __init__(self, max_suggestions: int = DEFAULT_MAX_SUGGESTIONS) -> None:
        self.max_suggestions = max_suggestions

    @abstractmethod
    def _request(self, prompt: str) -> list[str]:
        """发送请求并返回已解析的关键词；失败时抛出 SuggestionUnavailable"""
        ...

    def suggest_keywords(
        self,
        ocr_text: str,
        subject: str,
        examples: Iterable[Question] = (),
    ) -> list[str]:
        if not (ocr_text or "").strip():
            return []

        prompt = build_keyword_prompt(
            ocr_text, subject, examples, max_keywords=self.max_suggestions,
        )
        try:
            keywords = self._request(prompt)
        except SuggestionUnavailable as exc:
            logger.warning("关键词建议不可用: %s", exc)
            return []
        return keywords[: self.max_suggestions]


class EndpointSuggester(BaseSuggester):
    """POST {prompt} -> {keywords: [...]} 的 JSON 接口"""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
    ) -> None:
        super().__init__(max_suggestions)
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def _request(self, prompt: str) -> list[str]:
        try:
            resp = self._session.post(
                self.url,
                json={"prompt": prompt},
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise SuggestionUnavailable(f"请求失败: {exc}") from exc

        if resp.status_code != 200:
            raise SuggestionUnavailable(f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise SuggestionUnavailable(f"响应不是 JSON: {exc}") from exc
        return parse_endpoint_payload(payload, limit=self.max_suggestions)


class ChatSuggester(BaseSuggester):
    """直接调用 OpenAI 兼容的 chat.completions 接口"""

    _SYSTEM = "You tag exam questions with short academic concepts. Reply with a comma-separated list only."

    def __init__(
        self,
        client: Any,
        model: str,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
    ) -> None:
        super().__init__(max_suggestions)
        self.client = client
        self.model = model

    def _request(self, prompt: str) -> list[str]:
        params = build_chat_params(
            self.model,
            [
                {"role": "system", "content": self._SYSTEM},
                {"role": "user",   "content": prompt},
            ],
        )
        try:
            response = self.client.chat.completions.create(**params)
        except Exception as exc:  # noqa: BLE001
            raise SuggestionUnavailable(f"AI 请求异常: {exc}") from exc

        try:
            text = extract_response_text(response)
        except (IndexError, AttributeError, TypeError) as exc:
            raise SuggestionUnavailable(f"AI 返回格式异常: {exc}") from exc
        if not text:
            raise SuggestionUnavailable("AI 返回为空")
        return parse_keywords(text, limit=self.max_suggestions)


class DisabledSuggester(BaseSuggester):
    """未配置任何 AI 服务时使用，始终没有建议"""

    def _request(self, prompt: str) -> list[str]:
        raise SuggestionUnavailable("未配置关键词建议服务")


def make_suggester(ai_cfg: dict | None = None) -> BaseSuggester:
    """
    根据配置选择后端：
      provider=endpoint  → EndpointSuggester(ai.endpoint)
      provider=none / "" → DisabledSuggester
      其他               → ChatSuggester(OpenAI 兼容 provider)
    """
    cfg = ai_cfg or {}
    provider = (cfg.get("provider") or "").lower().strip()
    max_suggestions = int(cfg.get("max_suggestions", DEFAULT_MAX_SUGGESTIONS))
    timeout = float(cfg.get("timeout", 30.0))

    if provider in ("", "none"):
        return DisabledSuggester(max_suggestions)

    if provider == "endpoint":
        url = cfg.get("endpoint", "")
        if not url:
            raise ValueError("provider=endpoint 时必须配置 ai.endpoint")
        return EndpointSuggester(url, timeout=timeout, max_suggestions=max_suggestions)

    model = cfg.get("model") or default_model(provider)
    client = make_client(
        provider=provider,
        api_key=cfg.get("api_key", ""),
        base_url=cfg.get("base_url", ""),
        model=model,
        timeout=timeout,
    )
    return ChatSuggester(client, model, max_suggestions=max_suggestions)
