"""Logging configuration for payoff_agent."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


STANDARD_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO", format_type: str = "standard") -> None:
    """配置根 logger。

    Parameters
    ----------
    level : str
        日志级别（DEBUG/INFO/WARNING/ERROR/CRITICAL），非法值按 INFO 处理。
    format_type : str
        "standard" 或 "json"。
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=STANDARD_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("payoff_agent").setLevel(log_level)
    # httpx 每个请求都会打一条 INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class JsonFormatter(logging.Formatter):
    """单行 JSON 日志。"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "extra"):
            log_data.update(record.extra)
        return json.dumps(log_data)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
