"""Payoff Agent（房贷追加还款 what-if 分析）Python 包。

常用导入：
    from payoff_agent import compute_scenario, interpret, MortgageSnapshot

调试运行：
    python -m payoff_agent

该调试入口会：
1) 跑一组示例 compute_scenario（30 年 / 6.5% / 每月多还 $200）
2) 打印几条示例问答
"""

from .calculator import (
    LoanTerms,
    MortgageSnapshot,
    PaymentRecord,
    ScenarioResult,
    analyze,
    compute_scenario,
    simulate,
)
from .interpreter import interpret

__all__ = [
    "LoanTerms",
    "MortgageSnapshot",
    "PaymentRecord",
    "ScenarioResult",
    "analyze",
    "compute_scenario",
    "interpret",
    "simulate",
]
