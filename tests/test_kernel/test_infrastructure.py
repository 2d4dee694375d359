"""
Test infrastructure components: logging, metrics, retry and policy.
"""

import sqlite3
from decimal import Decimal

import pytest

from sealed_bidding.kernel.logging import (
    LogOperation,
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_context,
    set_correlation_id,
)
from sealed_bidding.kernel.metrics import commands_processed_total, track_command_duration
from sealed_bidding.kernel.policy import CommercialPolicy
from sealed_bidding.kernel.retry import retry_on_sqlite_lock


class TestLoggingFramework:
    """Test structured logging framework."""

    def test_configure_logging_console(self) -> None:
        configure_logging(json_output=False, log_level="INFO")
        assert get_logger(__name__) is not None

    def test_configure_logging_json(self) -> None:
        configure_logging(json_output=True, log_level="DEBUG")
        assert get_logger(__name__) is not None

    def test_correlation_id(self) -> None:
        cid = get_correlation_id()
        assert cid
        assert get_correlation_id() == cid

        set_correlation_id("fixed-id")
        assert get_correlation_id() == "fixed-id"

    def test_sealed_bid_fields_are_redacted(self) -> None:
        redacted = redact_context(
            {"supplier_id": "s-1", "unit_price": "100", "bid_id": "b-1", "item_count": 2}
        )
        assert redacted["supplier_id"] == "***REDACTED***"
        assert redacted["unit_price"] == "***REDACTED***"
        assert redacted["bid_id"] == "b-1"
        assert redacted["item_count"] == 2

    def test_log_operation_propagates_errors(self) -> None:
        logger = get_logger(__name__)
        with pytest.raises(ValueError):
            with LogOperation(logger, "failing_operation", bid_id="b-1"):
                raise ValueError("boom")


class TestMetrics:
    def test_track_command_duration_counts_outcomes(self) -> None:
        @track_command_duration("test_command")
        def succeed() -> str:
            return "ok"

        @track_command_duration("test_command")
        def fail() -> None:
            raise RuntimeError("nope")

        success = commands_processed_total.labels(command_type="test_command", status="success")
        failure = commands_processed_total.labels(command_type="test_command", status="failure")
        before_success = success._value.get()
        before_failure = failure._value.get()

        assert succeed() == "ok"
        with pytest.raises(RuntimeError):
            fail()

        assert success._value.get() == before_success + 1
        assert failure._value.get() == before_failure + 1


class TestRetry:
    def test_retries_sqlite_lock_then_succeeds(self) -> None:
        attempts = []

        @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=2)
        def flaky() -> str:
            attempts.append(1)
            if len(attempts) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "written"

        assert flaky() == "written"
        assert len(attempts) == 3

    def test_gives_up_after_max_attempts(self) -> None:
        attempts = []

        @retry_on_sqlite_lock(max_attempts=2, min_wait_ms=1, max_wait_ms=2)
        def always_locked() -> None:
            attempts.append(1)
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(sqlite3.OperationalError):
            always_locked()
        assert len(attempts) == 2

    def test_other_errors_are_not_retried(self) -> None:
        attempts = []

        @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=2)
        def broken() -> None:
            attempts.append(1)
            raise ValueError("not a lock")

        with pytest.raises(ValueError):
            broken()
        assert len(attempts) == 1


class TestCommercialPolicy:
    def test_defaults(self) -> None:
        policy = CommercialPolicy()
        assert policy.platform_fee_per_unit == Decimal("220")
        assert policy.referral_share_percentage == Decimal("20")
        assert policy.quantity_decimal_places == 2

    def test_service_fee_rate_by_trade_type(self) -> None:
        policy = CommercialPolicy()
        assert policy.service_fee_rate("domestic_india") == Decimal("0.005")
        assert policy.service_fee_rate("international") == Decimal("0.01")
        assert policy.service_fee_rate(None) == Decimal("0")

    def test_share_percentage_bounded(self) -> None:
        with pytest.raises(ValueError):
            CommercialPolicy(referral_share_percentage=Decimal("101"))
