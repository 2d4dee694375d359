"""
Prometheus metrics for the sealed bidding core.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Histogram

# ============================================================================
# Event Store Metrics
# ============================================================================

events_appended_total = Counter(
    "sealed_bidding_events_appended_total",
    "Total number of events appended to the event store",
    ["stream_type", "event_type"],
)

stream_version_conflicts_total = Counter(
    "sealed_bidding_stream_version_conflicts_total",
    "Total number of optimistic locking version conflicts",
    ["stream_type"],
)

# ============================================================================
# Command Metrics
# ============================================================================

command_duration_seconds = Histogram(
    "sealed_bidding_command_duration_seconds",
    "Duration of command processing in seconds",
    ["command_type"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

commands_processed_total = Counter(
    "sealed_bidding_commands_processed_total",
    "Total number of commands processed",
    ["command_type", "status"],  # status: success, failure
)

# ============================================================================
# Domain Metrics
# ============================================================================

bids_submitted_total = Counter(
    "sealed_bidding_bids_submitted_total",
    "Total number of bids submitted",
)

bid_items_per_bid = Histogram(
    "sealed_bidding_bid_items_per_bid",
    "Number of line items quoted per bid",
    buckets=(1, 2, 3, 5, 10, 20, 50),
)

dispatches_recorded_total = Counter(
    "sealed_bidding_dispatches_recorded_total",
    "Total number of dispatch updates committed",
    ["path"],  # path: per_item, single
)

commission_recalculations_total = Counter(
    "sealed_bidding_commission_recalculations_total",
    "Total number of commission recalculations",
    ["outcome"],  # outcome: updated, skipped_missing_record
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_command_duration(command_type: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator tracking duration and success/failure of a command.

    Args:
        command_type: Type of command being processed
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                command_duration_seconds.labels(command_type=command_type).observe(
                    time.perf_counter() - start
                )
                commands_processed_total.labels(
                    command_type=command_type, status=status
                ).inc()

        return wrapper

    return decorator

