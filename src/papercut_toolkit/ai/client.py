from __future__ import annotations

import logging
from typing import Any

from papercut_toolkit.errors import SuggestionUnavailable

logger = logging.getLogger(__name__)

# 各 provider 的默认 base_url（均为 OpenAI 兼容接口）
_PROVIDER_BASE_URLS: dict[str, str] = {
    "openai":   "https://api.openai.com/v1",
    "gemini":   "https://generativelanguage.googleapis.com/v1beta/openai/",
    "deepseek": "https://api.deepseek.com/v1",
    "ollama":   "http://localhost:11434/v1",
    "qwen":     "https://dashscope.aliyuncs.com/compatible-mode/v1",
}

# 各 provider 的推荐默认模型（关键词提取用轻量模型即可）
_PROVIDER_DEFAULT_MODELS: dict[str, str] = {
    "openai":   "gpt-4o-mini",
    "gemini":   "gemini-2.5-flash-lite",
    "deepseek": "deepseek-chat",
    "ollama":   "qwen2.5:7b",
    "qwen":     "qwen-plus",
}

# 纯推理模型：不支持 temperature，须用 max_completion_tokens
_PURE_REASONING_KEYWORDS = (
    "o1", "o3",
    "deepseek-reasoner",
    "-r1",
)


def is_reasoning_model(model: str) -> bool:
    m = model.lower()
    return any(kw in m for kw in _PURE_REASONING_KEYWORDS)


def make_client(
    provider: str  = "openai",
    api_key:  str  = "",
    base_url: str  = "",
    model:    str  = "",
    timeout:  float = 30.0,
) -> Any:
    try:
        from openai import OpenAI
    except ImportError as exc:
        raise SuggestionUnavailable(
            "AI 关键词建议需要安装 openai 包：pip install 'papercut-toolkit[ai]'"
        ) from exc

    provider = provider.lower().strip()
    if provider not in _PROVIDER_BASE_URLS and not base_url:
        raise ValueError(
            f"未知 provider: {provider!r}，可选: {list(_PROVIDER_BASE_URLS)}"
        )

    resolved_base_url = base_url or _PROVIDER_BASE_URLS.get(provider, "")
    resolved_model    = model    or default_model(provider)
    resolved_key      = api_key  or ("ollama" if provider == "ollama" else "sk-placeholder")

    logger.info(
        "AI 客户端: provider=%s  model=%s  base_url=%s",
        provider, resolved_model, resolved_base_url,
    )

    return OpenAI(
        api_key  = resolved_key,
        base_url = resolved_base_url,
        timeout  = timeout,
    )


def default_model(provider: str) -> str:
    return _PROVIDER_DEFAULT_MODELS.get(provider.lower(), "gpt-4o-mini")


def build_chat_params(
    model:       str,
    messages:    list[dict],
    temperature: float = 0.2,
    max_tokens:  int   = 100,
) -> dict:
    """
    根据模型类型构建 chat.completions.create 的参数字典。

    - 普通模型：temperature + max_tokens
    - DeepSeek-R1：temperature 须为 1
    - OpenAI o1/o3：不传 temperature，改用 max_completion_tokens，
      system 消息合并进第一条 user 消息
    """
    m = model.lower()
    params: dict = {"model": model, "messages": messages}

    if not is_reasoning_model(model):
        params["temperature"] = temperature
        params["max_tokens"]  = max_tokens
    elif "deepseek" in m or "-r1" in m:
        params["temperature"] = 1
        params["max_tokens"]  = max_tokens
    else:
        params["messages"] = _merge_system_messages(messages)
        params["max_completion_tokens"] = max_tokens

    return params


def _merge_system_messages(messages: list[dict]) -> list[dict]:
    system_parts = [msg["content"] for msg in messages if msg["role"] == "system"]
    user_msgs    = [msg for msg in messages if msg["role"] != "system"]

    if not system_parts:
        return user_msgs

    if user_msgs and user_msgs[0]["role"] == "user":
        prefix = "\n\n".join(system_parts)
        user_msgs[0] = {
            "role":    "user",
            "content": f"{prefix}\n\n{user_msgs[0]['content']}",
        }
    return user_msgs


def extract_response_text(response: Any) -> str:
    """取最终回答文本；推理模型的思维链（reasoning_content）不需要"""
    msg = response.choices[0].message
    return (msg.content or "").strip()
