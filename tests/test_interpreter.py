"""Tests for the local natural-language query interpreter."""

from datetime import date

import pytest

from payoff_agent.calculator import MortgageSnapshot
from payoff_agent.interpreter import (
    HELP_MESSAGE,
    INVALID_YEARS_MESSAGE,
    PAID_OFF_MESSAGE,
    classify,
    describe_extra_payment,
    interpret,
    parse_query,
)


class TestParseQuery:
    """Amount and year extraction."""

    def test_dollar_amount_with_commas_and_cents(self) -> None:
        parsed = parse_query("What if I add $1,250.50 each month?")
        assert parsed.amount == pytest.approx(1250.5)

    def test_amount_without_dollar_sign(self) -> None:
        assert parse_query("add 400 a month").amount == pytest.approx(400)

    def test_first_amount_wins(self) -> None:
        assert parse_query("add $300 or $500").amount == pytest.approx(300)

    def test_years(self) -> None:
        assert parse_query("finish in 15 years").years == 15
        assert parse_query("finish in 1 year").years == 1

    def test_nothing_found(self) -> None:
        parsed = parse_query("Tell me something")
        assert parsed.amount is None
        assert parsed.years is None
        assert parsed.text == "tell me something"


class TestClassify:
    """Intent precedence."""

    @pytest.mark.parametrize(
        "query,intent",
        [
            ("How much sooner with $100?", "time_savings"),
            ("Could I finish earlier?", "time_savings"),
            ("Pay off faster and save total interest", "time_savings"),
            ("What total interest do I pay?", "interest_savings"),
            ("How much interest saved with $50", "interest_savings"),
            ("When will I finish?", "target_term"),
            ("I want to pay off in 10 years", "target_term"),
            ("Hello there", None),
        ],
    )
    def test_intent(self, query: str, intent) -> None:
        assert classify(query) == intent


class TestInterpret:
    """Answer phrasing."""

    def test_no_mortgage_data_returns_help(self, as_of: date) -> None:
        assert interpret("How much sooner if I add $300 per month?", None, as_of=as_of) == HELP_MESSAGE
        assert interpret("anything at all", None, as_of=as_of) == HELP_MESSAGE

    def test_unrecognized_query_returns_help(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        assert interpret("What is the weather like?", snapshot, as_of=as_of) == HELP_MESSAGE

    def test_sooner_query(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        answer = interpret("How much sooner if I add $300 per month?", snapshot, as_of=as_of)

        assert "$300" in answer
        assert "sooner" in answer
        assert "saving" in answer
        assert "payments already made" not in answer

    def test_sooner_query_with_commas(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        answer = interpret("How much faster if I add $1,000?", snapshot, as_of=as_of)
        assert answer.startswith("Adding $1,000 per month")

    def test_sooner_query_mentions_years(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        answer = interpret("How much sooner if I add $2000?", snapshot, as_of=as_of)
        assert "years" in answer

    def test_total_interest_query(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        answer = interpret("How much total interest would I save by paying $500 extra?", snapshot, as_of=as_of)

        assert "$500" in answer
        assert "save" in answer
        assert "total interest" in answer
        assert answer.startswith("With an additional $500 per month")

    def test_target_term_query(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        answer = interpret("How much do I need to pay off the loan in 20 years?", snapshot, as_of=as_of)

        assert "20 years" in answer
        assert "add approximately $" in answer
        assert "from today" in answer

    def test_target_term_already_met(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        answer = interpret("Will I finish within 40 years?", snapshot, as_of=as_of)

        assert answer.startswith("Great news!")
        assert "less than 40 years" in answer

    def test_target_term_zero_years(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        assert interpret("Can I pay off in 0 years?", snapshot, as_of=as_of) == INVALID_YEARS_MESSAGE

    def test_target_term_overflow_returns_help(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        answer = interpret("Can I pay off in 99999999999999 years?", snapshot, as_of=as_of)
        assert answer == HELP_MESSAGE

    def test_missing_number_falls_through_to_help(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        assert interpret("Can I pay off my loan sooner?", snapshot, as_of=as_of) == HELP_MESSAGE

    def test_seasoned_loan_mentions_balance(self, seasoned_snapshot: MortgageSnapshot, as_of: date) -> None:
        answer = interpret("How much sooner if I add $300 per month?", seasoned_snapshot, as_of=as_of)

        assert "Based on your current balance of $" in answer
        assert "after 12 payments already made" in answer

    def test_seasoned_loan_interest_query(self, seasoned_snapshot: MortgageSnapshot, as_of: date) -> None:
        answer = interpret("total interest with $300 more?", seasoned_snapshot, as_of=as_of)
        assert answer.endswith(")")
        assert "Based on your current balance of $" in answer

    def test_paid_off_loan(self, paid_off_snapshot: MortgageSnapshot, as_of: date) -> None:
        assert interpret("How much sooner if I add $300?", paid_off_snapshot, as_of=as_of) == PAID_OFF_MESSAGE
        assert interpret("total interest with $300?", paid_off_snapshot, as_of=as_of) == PAID_OFF_MESSAGE
        assert interpret("pay off in 5 years", paid_off_snapshot, as_of=as_of) == PAID_OFF_MESSAGE

    def test_same_answer_on_repeat(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        query = "How much sooner if I add $250?"
        assert interpret(query, snapshot, as_of=as_of) == interpret(query, snapshot, as_of=as_of)


class TestDescribeExtraPayment:
    """Computed line appended to remote answers."""

    def test_add_with_amount(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        line = describe_extra_payment("What if I add $300 each month?", snapshot, as_of=as_of)

        assert line is not None
        assert line.startswith("Specific calculation: Adding $300 per month would save you ")
        assert line.endswith("in total interest.")

    def test_extra_keyword(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        assert describe_extra_payment("$200 extra?", snapshot, as_of=as_of) is not None

    def test_no_keyword(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        assert describe_extra_payment("What about $300?", snapshot, as_of=as_of) is None

    def test_no_amount(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        assert describe_extra_payment("Should I add more?", snapshot, as_of=as_of) is None

    def test_paid_off(self, paid_off_snapshot: MortgageSnapshot, as_of: date) -> None:
        assert describe_extra_payment("add $300", paid_off_snapshot, as_of=as_of) is None
