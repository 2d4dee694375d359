"""
Sealed Bidding - event-sourced core for sealed RFQ bidding

Suppliers quote per line item against a buyer's requirement; the lowest
quote per item (L1) is derived on every read. Accepted bids are fulfilled
in partial dispatches, and the referral commission follows what has
actually shipped.

Fun fact: in a sealed-bid auction nobody sees a rival's price until the
bidding closes - which is why the log never prints one either.
"""

from sealed_bidding.core import BiddingCore

__version__ = "0.1.0"
__all__ = ["BiddingCore", "__version__"]
