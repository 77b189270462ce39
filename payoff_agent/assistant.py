"""转发客户端：把问题与贷款快照发给 /api/chat，失败时退回本地问答。

只尝试一次，不重试；任何失败（网络错误、非 2xx、响应体格式不对）都直接使用
interpret 的结果，调用方拿到的永远是一段可展示的文本。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

import httpx

from payoff_agent.calculator import MortgageSnapshot
from payoff_agent.config import ServiceConfig
from payoff_agent.interpreter import interpret
from payoff_agent.logging import get_logger


logger = get_logger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_LOCAL = "local"


@dataclass(frozen=True)
class AssistantReply:
    """一次问答的结果。

    字段说明：
        text: 回答文本。
        source: remote（服务端模型回答）/ local（本地问答兜底）。
        tokens: 上游消耗的 token 数，本地兜底为 0。
        model: 上游模型名，本地兜底为 None。
        failure: 兜底原因（仅 local 时有值）。
    """

    text: str
    source: str
    tokens: int = 0
    model: Optional[str] = None
    failure: Optional[str] = None


def _post_chat(client: httpx.Client, url: str, payload: dict, timeout: float) -> tuple[Optional[dict], Optional[str]]:
    # 返回 (响应体, None) 或 (None, 失败原因)
    try:
        response = client.post(url, json=payload, timeout=timeout)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return None, f"network error: {e}"

    if not response.is_success:
        return None, f"API server error: {response.status_code}"

    try:
        data = response.json()
    except ValueError:
        return None, "malformed response body"

    if not isinstance(data, dict) or not isinstance(data.get("response"), str):
        return None, "malformed response body"
    return data, None


def ask_assistant(
    query: str,
    snapshot: Optional[MortgageSnapshot],
    *,
    as_of: date,
    base_url: Optional[str] = None,
    client: Optional[httpx.Client] = None,
    timeout: float = 15.0,
) -> AssistantReply:
    """向 /api/chat 提问，失败时用本地问答兜底。

    base_url 未传时取环境变量 ASSISTANT_API_URL（见 ServiceConfig.assistant_api_url）。
    """
    if base_url is None:
        base_url = ServiceConfig.from_env().assistant_api_url
    payload = {
        "userQuery": query,
        "mortgageData": snapshot.to_payload() if snapshot is not None else None,
    }
    url = f"{base_url.rstrip('/')}/api/chat"
    logger.info("Assistant request url=%s query_chars=%d has_mortgage=%s", url, len(query), snapshot is not None)

    if client is None:
        with httpx.Client() as own_client:
            data, failure = _post_chat(own_client, url, payload, timeout)
    else:
        data, failure = _post_chat(client, url, payload, timeout)

    if data is not None:
        tokens = data.get("tokens")
        logger.info("Assistant remote answer model=%s tokens=%s", data.get("model"), tokens)
        return AssistantReply(
            text=data["response"],
            source=SOURCE_REMOTE,
            tokens=tokens if isinstance(tokens, int) else 0,
            model=data.get("model"),
        )

    logger.warning("Assistant request failed (%s), falling back to local calculations", failure)
    return AssistantReply(
        text=interpret(query, snapshot, as_of=as_of),
        source=SOURCE_LOCAL,
        failure=failure,
    )
