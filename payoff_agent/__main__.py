from __future__ import annotations

from datetime import date

from payoff_agent.calculator import MortgageSnapshot, analyze
from payoff_agent.config import ServiceConfig
from payoff_agent.formatting import format_currency, format_date, format_duration
from payoff_agent.interpreter import interpret
from payoff_agent.logging import get_logger, setup_logging


SAMPLE_QUERIES = (
    "How much sooner if I add $300 per month?",
    "How much total interest would I save with $500 extra?",
    "What do I need to pay to finish in 20 years?",
)


def main() -> None:
    config = ServiceConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    logger = get_logger("payoff_agent")

    today = date.today()
    snapshot = MortgageSnapshot(
        principal=300_000,
        annual_rate=6.5,
        term_years=30,
        start_date=today,
        additional_payment=200,
    )
    result = analyze(snapshot, snapshot.additional_payment, as_of=today)
    logger.info("Sample scenario computed as of %s", today.isoformat())

    print(f"Monthly payment (P&I): {format_currency(result.monthly_payment)}")
    print(f"Baseline payoff:       {format_date(result.baseline_payoff_date)}")
    print(f"Accelerated payoff:    {format_date(result.accelerated_payoff_date)}")
    print(f"Interest saved:        {format_currency(result.interest_saved)}")
    print(f"Time saved:            {format_duration(result.months_saved)}")
    print()
    for query in SAMPLE_QUERIES:
        print(f"Q: {query}")
        print(f"A: {interpret(query, snapshot, as_of=today)}")
        print()


if __name__ == "__main__":
    main()
