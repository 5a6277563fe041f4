"""設定檔載入與基本驗證."""

import json
from pathlib import Path
from typing import Any

from .log import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = "sketch-tokens.config.json"

# 已知有效的頂層欄位
_KNOWN_TOP_KEYS = {"storage", "database", "colors", "typography", "logging"}

# 各區塊已知欄位（用於拼字提示）
_KNOWN_SECTION_KEYS = {
    "storage": {"uploadRoot"},
    "database": {"url", "echo"},
    "colors": {"naturalKey"},
    "typography": {"formatTokens"},
    "logging": {"level", "file"},
}

_VALID_NATURAL_KEYS = {"value", "value+ogName", "ogName"}
_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


def _warn(msg: str) -> None:
    logger.warning("[config] %s", msg)


def validate_config(cfg: dict) -> None:
    """對 config 做基本欄位驗證，記錄警告但不拋例外。"""
    if not cfg:
        return

    # 頂層未知欄位
    for key in cfg:
        if key not in _KNOWN_TOP_KEYS:
            known = ", ".join(sorted(_KNOWN_TOP_KEYS))
            _warn(f"未知頂層欄位 '{key}'（已知欄位：{known}）")

    # 各區塊欄位
    for section, known_keys in _KNOWN_SECTION_KEYS.items():
        section_cfg = cfg.get(section, {})
        if not isinstance(section_cfg, dict):
            _warn(f"'{section}' 應為 JSON 物件，目前是 {type(section_cfg).__name__}")
            continue
        for key in section_cfg:
            if key not in known_keys:
                known = ", ".join(sorted(known_keys))
                _warn(f"[{section}] 未知欄位 '{key}'（已知欄位：{known}）")

    natural_key = _section(cfg, "colors").get("naturalKey")
    if natural_key and natural_key not in _VALID_NATURAL_KEYS:
        valid = ", ".join(sorted(_VALID_NATURAL_KEYS))
        _warn(f"colors.naturalKey '{natural_key}' 不在已知值中（{valid}）")

    tokens = _section(cfg, "typography").get("formatTokens")
    if tokens is not None and not (
        isinstance(tokens, list) and all(isinstance(t, str) for t in tokens)
    ):
        _warn("typography.formatTokens 應為字串陣列")

    level = _section(cfg, "logging").get("level")
    if level and str(level).upper() not in _VALID_LEVELS:
        valid = ", ".join(sorted(_VALID_LEVELS))
        _warn(f"logging.level '{level}' 不在已知值中（{valid}）")

    echo = _section(cfg, "database").get("echo")
    if echo is not None and not isinstance(echo, bool):
        _warn(f"database.echo 應為布林值，目前是 {type(echo).__name__}")

    # uploadRoot 存在性提示（第一次 extract 時會自動建立）
    upload_root = _section(cfg, "storage").get("uploadRoot")
    if upload_root and not Path(upload_root).exists():
        logger.info("[config] storage.uploadRoot '%s' 尚不存在，將於 extract 時建立", upload_root)


def _section(cfg: dict, name: str) -> dict:
    section = cfg.get(name, {})
    return section if isinstance(section, dict) else {}


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """載入 JSON 設定檔，不存在則回傳空 dict；存在則做基本驗證。"""
    path = Path(config_path)
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        cfg: Any = json.load(f)
    if not isinstance(cfg, dict):
        _warn(f"'{config_path}' 格式錯誤，應為 JSON 物件，回傳空設定。")
        return {}
    validate_config(cfg)
    return cfg


def upload_root(cfg: dict) -> str:
    return _section(cfg, "storage").get("uploadRoot") or "./uploads"


def database_url(cfg: dict) -> str:
    return _section(cfg, "database").get("url") or "sqlite:///sketch-tokens.db"


def color_natural_key(cfg: dict) -> str:
    key = _section(cfg, "colors").get("naturalKey") or "value"
    return key if key in _VALID_NATURAL_KEYS else "value"


def format_tokens(cfg: dict):
    tokens = _section(cfg, "typography").get("formatTokens")
    if isinstance(tokens, list) and all(isinstance(t, str) for t in tokens):
        return tokens
    return None
