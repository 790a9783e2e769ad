"""AI 返回内容解析"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

from papercut_toolkit.errors import SuggestionUnavailable
from papercut_toolkit.models import unique

logger = logging.getLogger(__name__)

MAX_KEYWORD_WORDS = 3
_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def parse_keywords(raw: str, limit: int = 3) -> list[str]:
    """逗号/换行分隔的短语列表，去项目符号、引号，去重后截断"""
    text = (raw or "").strip()
    if not text:
        return []

    items: list[str] = []
    for piece in re.split(r"[,，\n]", text):
        piece = _BULLET.sub("", piece).strip().strip("\"'`.").strip()
        if not piece:
            continue
        if len(piece.split()) > MAX_KEYWORD_WORDS:
            logger.debug("忽略过长的关键词: %s", piece[:60])
            continue
        items.append(piece)
    return unique(items)[:limit]


def parse_endpoint_payload(payload: Any, limit: int = 3) -> list[str]:
    """解析 {keywords: [...]} 响应；格式不符视为服务不可用"""
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise SuggestionUnavailable(f"响应不是 JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise SuggestionUnavailable("响应格式错误: 不是对象")
    if payload.get("error"):
        raise SuggestionUnavailable(f"服务端错误: {payload['error']}")

    keywords = payload.get("keywords")
    if not isinstance(keywords, list):
        raise SuggestionUnavailable("响应缺少 keywords 数组")
    return unique(k for k in keywords if isinstance(k, str))[:limit]
