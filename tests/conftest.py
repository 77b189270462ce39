"""Pytest configuration and fixtures."""

from datetime import date

import pytest

from payoff_agent.calculator import MortgageSnapshot


@pytest.fixture
def as_of() -> date:
    """Fixed evaluation date so every scenario is reproducible."""
    return date(2025, 6, 15)


@pytest.fixture
def snapshot(as_of: date) -> MortgageSnapshot:
    """A 30-year $300k loan at 6.5% starting on the evaluation date."""
    return MortgageSnapshot(
        principal=300_000,
        annual_rate=6.5,
        term_years=30,
        start_date=as_of,
        additional_payment=0.0,
    )


@pytest.fixture
def seasoned_snapshot(as_of: date) -> MortgageSnapshot:
    """Same loan, started exactly twelve months before the evaluation date."""
    return MortgageSnapshot(
        principal=300_000,
        annual_rate=6.5,
        term_years=30,
        start_date=date(2024, 6, 15),
        additional_payment=0.0,
    )


@pytest.fixture
def paid_off_snapshot() -> MortgageSnapshot:
    """A 15-year loan that started more than 15 years ago."""
    return MortgageSnapshot(
        principal=150_000,
        annual_rate=4.0,
        term_years=15,
        start_date=date(2005, 1, 1),
        additional_payment=0.0,
    )
