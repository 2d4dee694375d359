"""
Dispatch Tracker

Records fulfilled quantities per bid item against accepted bids.
"""

from sealed_bidding.dispatch.commands import RecordDispatch, RecordSingleDispatch
from sealed_bidding.dispatch.handlers import DispatchCommandHandlers

__all__ = [
    "RecordDispatch",
    "RecordSingleDispatch",
    "DispatchCommandHandlers",
]
