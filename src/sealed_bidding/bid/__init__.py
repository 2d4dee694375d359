"""
Bid Ledger

Owns Bids and their per-line-item BidItems, plus the L1 resolver that ranks
them per requirement item.
"""

from sealed_bidding.bid.commands import (
    AcceptBid,
    BidItemSpec,
    RejectBid,
    ReviseBid,
    SubmitBid,
)
from sealed_bidding.bid.handlers import BidCommandHandlers
from sealed_bidding.bid.l1 import L1Line, L1Summary, RankedBidItem, compute_l1, summarize_l1
from sealed_bidding.bid.models import Bid, BidItem, BidStatus
from sealed_bidding.bid.projections import BidLedger

__all__ = [
    "Bid",
    "BidItem",
    "BidStatus",
    "BidItemSpec",
    "SubmitBid",
    "ReviseBid",
    "AcceptBid",
    "RejectBid",
    "BidCommandHandlers",
    "BidLedger",
    "RankedBidItem",
    "L1Line",
    "L1Summary",
    "compute_l1",
    "summarize_l1",
]
