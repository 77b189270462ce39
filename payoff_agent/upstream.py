"""上游聊天模型（OpenAI 兼容的 /chat/completions 接口）。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from payoff_agent.calculator import MortgageSnapshot
from payoff_agent.config import ServiceConfig
from payoff_agent.exceptions import ConfigurationError, UpstreamError
from payoff_agent.formatting import format_currency, format_date
from payoff_agent.logging import get_logger


logger = get_logger(__name__)

MAX_TOKENS = 300
TEMPERATURE = 0.7


@dataclass(frozen=True)
class Completion:
    text: str
    tokens: int
    model: str


def mortgage_context(snapshot: Optional[MortgageSnapshot]) -> str:
    if snapshot is None:
        return "No mortgage data provided yet."
    return (
        "Current mortgage details:\n"
        f"- Loan amount: {format_currency(snapshot.principal)}\n"
        f"- Interest rate: {snapshot.annual_rate}%\n"
        f"- Loan term: {snapshot.term_years} years\n"
        f"- Current additional payment: {format_currency(snapshot.additional_payment)}\n"
        f"- Start date: {format_date(snapshot.start_date)}"
    )


def build_system_prompt(snapshot: Optional[MortgageSnapshot]) -> str:
    return (
        "You are a helpful mortgage calculator assistant. You help users understand how additional "
        "payments affect their mortgage payoff timeline and interest savings.\n\n"
        f"{mortgage_context(snapshot)}\n\n"
        "Your responses should:\n"
        "1. Be conversational and friendly\n"
        "2. Include specific calculations when relevant\n"
        "3. Focus on practical mortgage advice\n"
        "4. Keep responses under 200 words\n"
        "5. Always format currency amounts clearly\n\n"
        "If the user asks about scenarios with different payment amounts or timeframes, provide specific "
        "calculations using the mortgage data provided."
    )


def request_completion(
    query: str,
    snapshot: Optional[MortgageSnapshot],
    *,
    config: ServiceConfig,
    client: httpx.Client,
) -> Completion:
    """调用上游模型，返回文本、token 数与模型名。

    未配置密钥抛 ConfigurationError；网络错误、非 2xx、无 choices 抛 UpstreamError。
    """
    if not config.openai_api_key:
        raise ConfigurationError("OpenAI API key not configured")

    system_prompt = build_system_prompt(snapshot)
    body = {
        "model": config.openai_model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": query},
        ],
        "max_tokens": MAX_TOKENS,
        "temperature": TEMPERATURE,
    }
    logger.info(
        "Upstream request model=%s prompt_chars=%d query_chars=%d",
        config.openai_model,
        len(system_prompt),
        len(query),
    )

    try:
        response = client.post(
            f"{config.openai_base_url}/chat/completions",
            json=body,
            headers={"Authorization": f"Bearer {config.openai_api_key}"},
            timeout=config.openai_timeout,
        )
    except httpx.HTTPError as e:
        raise UpstreamError(f"OpenAI request failed: {e}") from e

    if not response.is_success:
        raise UpstreamError(f"OpenAI API error: {response.status_code} {response.reason_phrase}")

    try:
        data = response.json()
    except ValueError as e:
        raise UpstreamError("OpenAI returned a non-JSON body") from e

    if not isinstance(data, dict):
        raise UpstreamError("OpenAI returned an unexpected body")
    choices = data.get("choices") or []
    if not choices:
        raise UpstreamError("No response from OpenAI")

    text = ((choices[0].get("message") or {}).get("content") or "").strip()
    if not text:
        raise UpstreamError("No response from OpenAI")

    tokens = int((data.get("usage") or {}).get("total_tokens") or 0)
    model = data.get("model") or config.openai_model
    logger.info("Upstream response model=%s tokens=%d chars=%d", model, tokens, len(text))
    return Completion(text=text, tokens=tokens, model=model)
