"""环境变量配置。"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ServiceConfig:
    """服务配置。

    字段说明：
        api_key: /v1 接口的访问密钥；为空表示不校验。
        rate_limit_default / rate_limit_export: slowapi 限流规则。
        max_principal / max_annual_rate / max_term_years: 请求参数上限。
        max_schedule_rows: 单个还款表最多返回/导出的行数。
        max_export_bytes: 导出文件大小上限。
        openai_api_key / openai_base_url / openai_model / openai_timeout: 上游模型配置。
        assistant_api_url: 转发客户端默认访问的服务地址。
    """

    api_key: Optional[str] = None
    rate_limit_default: str = "60/minute"
    rate_limit_export: str = "15/minute"
    max_principal: float = 30_000_000.0
    max_annual_rate: float = 30.0
    max_term_years: int = 50
    max_schedule_rows: int = 2000
    max_export_bytes: int = 6 * 1024 * 1024
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-3.5-turbo"
    openai_timeout: float = 15.0
    assistant_api_url: str = "http://localhost:3001"
    log_level: str = "INFO"
    log_format: str = "standard"

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        return cls(
            api_key=os.getenv("API_KEY") or None,
            rate_limit_default=os.getenv("RATE_LIMIT_DEFAULT", "60/minute"),
            rate_limit_export=os.getenv("RATE_LIMIT_EXPORT", "15/minute"),
            max_principal=float(os.getenv("MAX_PRINCIPAL", "30000000")),
            max_annual_rate=float(os.getenv("MAX_ANNUAL_RATE", "30")),
            max_term_years=int(os.getenv("MAX_TERM_YEARS", "50")),
            max_schedule_rows=int(os.getenv("MAX_SCHEDULE_ROWS", "2000")),
            max_export_bytes=int(os.getenv("MAX_EXPORT_BYTES", str(6 * 1024 * 1024))),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
            openai_timeout=float(os.getenv("OPENAI_TIMEOUT", "15")),
            assistant_api_url=os.getenv("ASSISTANT_API_URL", "http://localhost:3001").rstrip("/"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
