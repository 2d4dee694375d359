"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from sealed_bidding.bid.handlers import BidCommandHandlers
from sealed_bidding.bid.projections import BidLedger
from sealed_bidding.commission.handlers import CommissionCommandHandlers
from sealed_bidding.commission.projections import CommissionLedger
from sealed_bidding.core import BiddingCore
from sealed_bidding.dispatch.handlers import DispatchCommandHandlers
from sealed_bidding.kernel.event_store import SQLiteEventStore
from sealed_bidding.kernel.policy import CommercialPolicy
from sealed_bidding.kernel.time import TestTimeProvider
from sealed_bidding.requirement.handlers import RequirementCommandHandlers
from sealed_bidding.requirement.projections import RequirementCatalog


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup (WAL mode leaves -wal/-shm siblings)
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if path.exists():
            path.unlink()


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> CommercialPolicy:
    """Default commercial policy: 220 per unit, 20% referral share"""
    return CommercialPolicy()


@pytest.fixture
def core(temp_db: Path, test_time: TestTimeProvider, policy: CommercialPolicy) -> BiddingCore:
    """Provide a façade over a fresh database with frozen time"""
    return BiddingCore(temp_db, policy=policy, time_provider=test_time)


# =============================================================================
# Handlers and projections
# =============================================================================


@pytest.fixture
def requirement_handlers(
    test_time: TestTimeProvider, policy: CommercialPolicy
) -> RequirementCommandHandlers:
    """
    Handlers are stateless - they take projections as parameters.
    """
    return RequirementCommandHandlers(test_time, policy)


@pytest.fixture
def bid_handlers(test_time: TestTimeProvider, policy: CommercialPolicy) -> BidCommandHandlers:
    return BidCommandHandlers(test_time, policy)


@pytest.fixture
def dispatch_handlers(
    test_time: TestTimeProvider, policy: CommercialPolicy
) -> DispatchCommandHandlers:
    return DispatchCommandHandlers(test_time, policy)


@pytest.fixture
def commission_handlers(
    test_time: TestTimeProvider, policy: CommercialPolicy
) -> CommissionCommandHandlers:
    return CommissionCommandHandlers(test_time, policy)


@pytest.fixture
def requirement_catalog() -> RequirementCatalog:
    return RequirementCatalog()


@pytest.fixture
def bid_ledger() -> BidLedger:
    return BidLedger()


@pytest.fixture
def commission_ledger() -> CommissionLedger:
    return CommissionLedger()
