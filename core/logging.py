"""
轉碼器日誌
每個模組用 get_logger 取得自己的 logger，等級由 TRANSCODER_LOG_LEVEL 決定
"""

import os
import logging
from typing import Optional

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_level(name: str) -> int:
    """把等級名稱轉成數值，無法辨識時退回 WARNING"""
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.WARNING


# 啟動時讀取一次
LOG_LEVEL = resolve_level(os.getenv("TRANSCODER_LOG_LEVEL", "WARNING"))


def setup_logging(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    設置單一模組的 logger

    Args:
        name: 日誌名稱，例如 "core.transcoder"
        level: 日誌等級（None 表示使用 TRANSCODER_LOG_LEVEL）
    """
    if level is None:
        level = LOG_LEVEL

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 避免重複添加 handler
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """取得已配置的 Logger"""
    return setup_logging(name)
