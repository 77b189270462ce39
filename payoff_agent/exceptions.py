"""payoff_agent 的异常层级，仅在 I/O 边界（上游模型调用、配置）抛出。"""


class PayoffAgentError(Exception):
    """Base exception for all payoff_agent errors."""


class ConfigurationError(PayoffAgentError):
    """Raised when a required setting (e.g. the upstream API key) is missing."""


class UpstreamError(PayoffAgentError):
    """Raised when the upstream chat provider fails or returns no usable answer."""
