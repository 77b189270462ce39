from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List
import calendar
import math


# 余额低于该阈值即视为已还清（吸收浮点误差）
PAID_OFF_THRESHOLD = 0.01


@dataclass(frozen=True)
class LoanTerms:
    """贷款输入参数（不可变）。

    字段说明：
        principal: 贷款本金（单位：美元），> 0。
        annual_rate: 年利率（百分比），例如 6.5 表示 6.5%，> 0。
        term_years: 贷款年限（年），> 0。
        start_date: 贷款开始日期，可以在过去、今天或未来。
    """

    principal: float
    annual_rate: float
    term_years: int
    start_date: date

    @property
    def term_months(self) -> int:
        return self.term_years * 12

    @property
    def monthly_rate(self) -> float:
        return monthly_rate(self.annual_rate)


@dataclass(frozen=True)
class MortgageSnapshot(LoanTerms):
    """贷款参数 + 当前计划的每月额外还款，供问答与转发使用。"""

    additional_payment: float = 0.0

    def to_payload(self) -> dict:
        # 转发接口约定的 JSON 字段（驼峰命名，日期为 ISO-8601）
        return {
            "principal": self.principal,
            "rate": self.annual_rate,
            "term": self.term_years,
            "additionalPayment": self.additional_payment,
            "startDate": self.start_date.isoformat(),
        }


@dataclass(frozen=True)
class PaymentRecord:
    """单期（月）还款明细。

    字段说明：
        payment_number: 期数序号（从 1 开始）。
        date: 本期还款日期（起始日期 + payment_number-1 个月）。
        payment_amount: 本期实际还款额。
        principal_portion: 本期归还本金。
        interest_portion: 本期支付利息。
        remaining_balance: 本期还款后剩余本金（>= 0）。
    """

    payment_number: int
    date: date
    payment_amount: float
    principal_portion: float
    interest_portion: float
    remaining_balance: float


@dataclass(frozen=True)
class ScenarioResult:
    """基准方案 vs 追加还款方案的对比结果。

    字段说明：
        baseline_schedule: 按原月供还款的明细表（从当前时点开始）。
        accelerated_schedule: 原月供 + 每月额外还款的明细表。
        monthly_payment: 原月供（本息）。
        baseline_total_interest / accelerated_total_interest: 两个方案的剩余总利息。
        interest_saved: 节省利息 = baseline_total_interest - accelerated_total_interest。
        months_saved: 提前还清的月数。
        baseline_payoff_date / accelerated_payoff_date: 两个方案最后一期的日期。
        current_balance: 测算日的剩余本金。
        remaining_term_years: 剩余年限（保留一位小数）。
        payments_already_made: 测算日之前已还期数。
        is_already_paid_off: 按开始日期推算贷款是否已经还清。
        as_of: 测算日期。
        additional_payment: 每月额外还款额。
    """

    baseline_schedule: List[PaymentRecord]
    accelerated_schedule: List[PaymentRecord]
    monthly_payment: float
    baseline_total_interest: float
    accelerated_total_interest: float
    interest_saved: float
    months_saved: int
    baseline_payoff_date: date
    accelerated_payoff_date: date
    current_balance: float
    remaining_term_years: float
    payments_already_made: int
    is_already_paid_off: bool
    as_of: date
    additional_payment: float = 0.0


def monthly_rate(annual_rate: float) -> float:
    # 年利率百分比 -> 月利率小数。例如 6% => 0.005
    return annual_rate / 100.0 / 12.0


def annuity_payment(principal: float, rate: float, months: int) -> float:
    if months <= 0:
        return 0.0
    if rate == 0:
        return principal / months
    factor = math.pow(1 + rate, months)
    return principal * rate * factor / (factor - 1)


def add_months(src: date, months: int) -> date:
    # 日期按月推进；目标月份没有该日时取当月最后一天（例如 1/31 -> 2/28）
    month = src.month - 1 + months
    year = src.year + month // 12
    month = month % 12 + 1
    day = min(src.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    # 只比较年、月，忽略日；end 早于 start 时为负数
    return (end.year - start.year) * 12 + (end.month - start.month)


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def simulate(
    principal: float,
    rate: float,
    payment: float,
    max_months: int,
    start_date: date,
) -> List[PaymentRecord]:
    """按固定月供逐月摊还，直到余额归零或达到 max_months 期。

    月供不足以覆盖利息时（负摊还）余额会上升，此时会跑满 max_months 期，
    调用方不能假设最后一期一定还清。
    """
    rows: List[PaymentRecord] = []
    balance = principal
    number = 0

    while balance > PAID_OFF_THRESHOLD and number < max_months:
        interest = balance * rate
        principal_part = payment - interest
        # 最后一期只需还清剩余本金
        if principal_part > balance:
            principal_part = balance

        balance -= principal_part
        number += 1
        rows.append(
            PaymentRecord(
                payment_number=number,
                date=add_months(start_date, number - 1),
                payment_amount=principal_part + interest,
                principal_portion=principal_part,
                interest_portion=interest,
                remaining_balance=max(0.0, balance),
            )
        )
    return rows


def total_interest(schedule: List[PaymentRecord]) -> float:
    return sum(row.interest_portion for row in schedule)


def payoff_date(schedule: List[PaymentRecord], default: date) -> date:
    return schedule[-1].date if schedule else default


def compute_scenario(
    principal: float,
    annual_rate: float,
    term_years: int,
    additional_payment: float = 0.0,
    start_date: date | None = None,
    *,
    as_of: date,
) -> ScenarioResult:
    """计算基准方案与“每月追加还款”方案，并给出对比指标。

    as_of 为测算日期（“今天”），由最外层调用方传入，本函数不读取系统时钟。
    start_date 缺省时视为 as_of。
    """
    terms = LoanTerms(
        principal=principal,
        annual_rate=annual_rate,
        term_years=term_years,
        start_date=start_date or as_of,
    )
    return analyze(terms, additional_payment, as_of=as_of)


def analyze(terms: LoanTerms, additional_payment: float = 0.0, *, as_of: date) -> ScenarioResult:
    # 主流程：
    # 1) 按年金公式算原月供
    # 2) 贷款已开始：先模拟已还期数，得到测算日的剩余本金，两个方案都从测算日开始
    # 3) 分别跑基准方案与追加还款方案，汇总利息与提前月数
    rate = terms.monthly_rate
    total_months = terms.term_months
    payment = annuity_payment(terms.principal, rate, total_months)

    elapsed = months_between(terms.start_date, as_of)
    started = terms.start_date <= as_of

    if started and elapsed >= total_months:
        return _paid_off_result(terms, payment, elapsed, additional_payment, as_of)

    if 0 < elapsed < total_months:
        past = simulate(terms.principal, rate, payment, elapsed, terms.start_date)
        adjusted_principal = past[-1].remaining_balance if past else terms.principal
        adjusted_months = total_months - elapsed
        paid_periods = elapsed
        anchor = as_of
    else:
        adjusted_principal = terms.principal
        adjusted_months = total_months
        paid_periods = 0
        anchor = terms.start_date

    if adjusted_principal <= 0:
        return _paid_off_result(terms, payment, paid_periods, additional_payment, as_of)

    baseline = simulate(adjusted_principal, rate, payment, adjusted_months, anchor)
    accelerated = simulate(adjusted_principal, rate, payment + additional_payment, adjusted_months, anchor)

    baseline_interest = total_interest(baseline)
    accelerated_interest = total_interest(accelerated)
    baseline_end = payoff_date(baseline, anchor)
    accelerated_end = payoff_date(accelerated, anchor)

    return ScenarioResult(
        baseline_schedule=baseline,
        accelerated_schedule=accelerated,
        monthly_payment=payment,
        baseline_total_interest=baseline_interest,
        accelerated_total_interest=accelerated_interest,
        interest_saved=baseline_interest - accelerated_interest,
        months_saved=months_between(accelerated_end, baseline_end),
        baseline_payoff_date=baseline_end,
        accelerated_payoff_date=accelerated_end,
        current_balance=adjusted_principal,
        remaining_term_years=round_half_up(adjusted_months / 12, 1),
        payments_already_made=paid_periods,
        is_already_paid_off=False,
        as_of=as_of,
        additional_payment=additional_payment,
    )


def _paid_off_result(
    terms: LoanTerms,
    payment: float,
    paid_periods: int,
    additional_payment: float,
    as_of: date,
) -> ScenarioResult:
    # 已还清：空明细，所有节省指标为 0，还清日期取贷款开始日期
    return ScenarioResult(
        baseline_schedule=[],
        accelerated_schedule=[],
        monthly_payment=payment,
        baseline_total_interest=0.0,
        accelerated_total_interest=0.0,
        interest_saved=0.0,
        months_saved=0,
        baseline_payoff_date=terms.start_date,
        accelerated_payoff_date=terms.start_date,
        current_balance=0.0,
        remaining_term_years=0.0,
        payments_already_made=paid_periods,
        is_already_paid_off=True,
        as_of=as_of,
        additional_payment=additional_payment,
    )
