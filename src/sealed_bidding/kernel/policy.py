"""
Commercial Policy - platform pricing parameters for bidding and commission

The policy holds the numbers the core needs but does not own: the platform
fee charged per dispatched unit, the referral partner's share of it, and the
service fee added to buyer-facing prices by trade type.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


class CommercialPolicy(BaseModel):
    """
    Commercial parameters injected into the handlers

    Rates on an existing CommissionRecord always win over these defaults:
    the policy only seeds newly provisioned records.
    """

    platform_fee_per_unit: Decimal = Field(
        default=Decimal("220"),
        ge=0,
        description="Platform fee per dispatched unit (e.g. per ton)",
    )

    referral_share_percentage: Decimal = Field(
        default=Decimal("20"),
        ge=0,
        le=100,
        description="Referral partner's share of the platform fee, in percent",
    )

    service_fee_rates: dict[str, Decimal] = Field(
        default={"domestic_india": Decimal("0.005")},
        description="Service fee rate per trade type",
    )

    default_service_fee_rate: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Service fee rate for trade types without an explicit rate",
    )

    quantity_decimal_places: int = Field(
        default=2,
        ge=0,
        le=6,
        description="Maximum fractional digits for quantities",
    )

    dispatch_lock_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for the dispatch + commission write on SQLite lock contention",
    )

    def service_fee_rate(self, trade_type: str | None) -> Decimal:
        """
        Service fee rate for a requirement's trade type

        Requirements without a trade type carry no service fee.
        """
        if trade_type is None:
            return Decimal("0")
        return self.service_fee_rates.get(trade_type, self.default_service_fee_rate)

