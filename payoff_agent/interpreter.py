"""本地问答：从自然语言问题中提取金额/年限，复用 compute_scenario 生成回答。

意图按固定顺序匹配（见 RULES）：
    1) sooner / earlier / faster        -> 追加还款能提前多久
    2) total interest / interest save   -> 追加还款能省多少利息
    3) finish / pay off                 -> N 年内还清每月需要多还多少
某条规则缺少所需数字时放弃，继续尝试下一条；都不命中则返回帮助语。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Tuple
import re

from payoff_agent.calculator import MortgageSnapshot, analyze, annuity_payment, monthly_rate
from payoff_agent.formatting import format_currency, format_duration
from payoff_agent.logging import get_logger


logger = get_logger(__name__)

HELP_MESSAGE = (
    "I'd be happy to help with your mortgage calculations! "
    "Please ask about additional payments, time savings, or interest savings."
)
PAID_OFF_MESSAGE = "Your mortgage appears to be already paid off based on the start date provided."
INVALID_YEARS_MESSAGE = "Please specify a positive number of years for payoff."

_AMOUNT_RE = re.compile(r"\$?(\d+(?:,\d{3})*(?:\.\d{2})?)")
_YEARS_RE = re.compile(r"(\d+)\s*years?")


@dataclass(frozen=True)
class ParsedQuery:
    text: str
    amount: Optional[float]
    years: Optional[int]


def parse_query(query: str) -> ParsedQuery:
    lowered = (query or "").lower()
    amount_match = _AMOUNT_RE.search(lowered)
    years_match = _YEARS_RE.search(lowered)
    return ParsedQuery(
        text=lowered,
        amount=float(amount_match.group(1).replace(",", "")) if amount_match else None,
        years=int(years_match.group(1)) if years_match else None,
    )


def _contains_any(*needles: str) -> Callable[[ParsedQuery], bool]:
    return lambda parsed: any(needle in parsed.text for needle in needles)


def _balance_clause(balance: float, payments_made: Optional[int] = None) -> str:
    if payments_made is None:
        return f" (Based on your current balance of {format_currency(balance)})"
    return f" (Based on your current balance of {format_currency(balance)} after {payments_made} payments already made)"


def _answer_time_savings(parsed: ParsedQuery, snapshot: MortgageSnapshot, as_of: date) -> Optional[str]:
    if not parsed.amount:
        return None
    result = analyze(snapshot, parsed.amount, as_of=as_of)
    if result.is_already_paid_off:
        return PAID_OFF_MESSAGE

    text = (
        f"Adding {format_currency(parsed.amount)} per month would allow you to pay off your mortgage "
        f"{format_duration(result.months_saved)} sooner, saving you {format_currency(result.interest_saved)} "
        "in total interest."
    )
    if result.payments_already_made > 0:
        text += _balance_clause(result.current_balance, result.payments_already_made)
    return text


def _answer_interest_savings(parsed: ParsedQuery, snapshot: MortgageSnapshot, as_of: date) -> Optional[str]:
    if not parsed.amount:
        return None
    result = analyze(snapshot, parsed.amount, as_of=as_of)
    if result.is_already_paid_off:
        return PAID_OFF_MESSAGE

    text = (
        f"With an additional {format_currency(parsed.amount)} per month, you would save "
        f"{format_currency(result.interest_saved)} in total interest over the life of your loan."
    )
    if result.payments_already_made > 0:
        text += _balance_clause(result.current_balance)
    return text


def _answer_target_term(parsed: ParsedQuery, snapshot: MortgageSnapshot, as_of: date) -> Optional[str]:
    if parsed.years is None:
        return None
    current = analyze(snapshot, 0.0, as_of=as_of)
    if current.is_already_paid_off:
        return PAID_OFF_MESSAGE

    target_months = parsed.years * 12
    if target_months <= 0:
        return INVALID_YEARS_MESSAGE

    # 用测算日的剩余本金、同样的月利率，倒推 N 年还清所需月供
    required = annuity_payment(current.current_balance, monthly_rate(snapshot.annual_rate), target_months)
    additional_needed = required - current.monthly_payment

    if additional_needed <= 0:
        return (
            "Great news! Your current payment schedule will already pay off your mortgage "
            f"in less than {parsed.years} years from today."
        )

    text = (
        f"To pay off your mortgage in {parsed.years} years from today, you would need to add approximately "
        f"{format_currency(additional_needed)} per month to your payments."
    )
    if current.payments_already_made > 0:
        text += _balance_clause(current.current_balance)
    return text


Rule = Tuple[str, Callable[[ParsedQuery], bool], Callable[[ParsedQuery, MortgageSnapshot, date], Optional[str]]]

RULES: Tuple[Rule, ...] = (
    ("time_savings", _contains_any("sooner", "earlier", "faster"), _answer_time_savings),
    ("interest_savings", _contains_any("total interest", "interest save"), _answer_interest_savings),
    ("target_term", _contains_any("finish", "pay off"), _answer_target_term),
)


def classify(query: str) -> Optional[str]:
    """返回第一条命中的意图名称（不检查数字是否齐全），都不命中返回 None。"""
    parsed = parse_query(query)
    for name, matches, _ in RULES:
        if matches(parsed):
            return name
    return None


def describe_extra_payment(query: str, snapshot: MortgageSnapshot, *, as_of: date) -> Optional[str]:
    """问题中带金额且提到 add/extra 时，返回一行精确计算结果，否则返回 None。"""
    parsed = parse_query(query)
    if not parsed.amount or not _contains_any("add", "extra")(parsed):
        return None
    result = analyze(snapshot, parsed.amount, as_of=as_of)
    if result.is_already_paid_off:
        return None
    return (
        f"Specific calculation: Adding {format_currency(parsed.amount)} per month would save you "
        f"{format_duration(result.months_saved)} and {format_currency(result.interest_saved)} in total interest."
    )


def interpret(query: str, snapshot: Optional[MortgageSnapshot], *, as_of: date) -> str:
    if snapshot is None:
        return HELP_MESSAGE

    parsed = parse_query(query)
    for name, matches, answer in RULES:
        if not matches(parsed):
            continue
        try:
            reply = answer(parsed, snapshot, as_of)
        except ArithmeticError:
            # 极端输入（例如上亿年）会让年金公式溢出，按无法回答处理
            logger.warning("Rule %s overflowed for query of length %d", name, len(parsed.text))
            return HELP_MESSAGE
        if reply is not None:
            return reply
    return HELP_MESSAGE
