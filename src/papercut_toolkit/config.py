"""配置加载：config.yaml，命令行参数 > 配置文件 > 默认值"""
from __future__ import annotations
import os
from pathlib import Path
import yaml

from papercut_toolkit.store import DEFAULT_DB_URL

DEFAULT_CONFIG_PATH = "config.yaml"

DEFAULT_AI = {
    "provider":        "",        # endpoint / openai / gemini / deepseek / ollama / qwen，留空=不启用
    "endpoint":        "",        # provider=endpoint 时的 POST 地址
    "model":           "",
    "api_key":         "",
    "base_url":        "",
    "timeout":         30.0,
    "max_suggestions": 3,
}


def load_config(config_path: str | Path = DEFAULT_CONFIG_PATH) -> dict:
    p = Path(config_path)
    if p.exists():
        return yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    return {}


def resolve_db_url(cfg: dict, override: str | None = None) -> str:
    return override or (cfg.get("database") or {}).get("url") or DEFAULT_DB_URL


def ai_settings(cfg: dict, **overrides) -> dict:
    """合并 ai 配置；api_key 缺省时读环境变量 OPENAI_API_KEY"""
    merged = {**DEFAULT_AI, **(cfg.get("ai") or {})}
    merged.update({k: v for k, v in overrides.items() if v})
    if not merged["api_key"]:
        merged["api_key"] = os.environ.get("OPENAI_API_KEY", "")
    return merged


def ensure_sqlite_dir(db_url: str) -> None:
    """sqlite 文件所在目录不存在时先创建"""
    prefix = "sqlite:///"
    if db_url.startswith(prefix) and db_url != prefix + ":memory:":
        Path(db_url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)
