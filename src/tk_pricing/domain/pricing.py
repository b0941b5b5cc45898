"""Bid pricing: pure functions, no I/O.

cost = ceil(base × verification_multiplier × demand_multiplier)

Multipliers are held in basis points (1.5 → 15000) so the product and the
ceiling are exact integer arithmetic, the same way fees are computed:
ceil(a / b) == (a + b - 1) // b.
"""

from dataclasses import asdict, dataclass

from src.tk_common.enums import ListingKind

BPS = 10_000

BASE_COST: dict[ListingKind, int] = {
    ListingKind.BUYER: 1,
    ListingKind.SELLER: 2,  # seller listings are costlier to bid on
}

VERIFIED_MULTIPLIER_BPS = 15_000
UNVERIFIED_MULTIPLIER_BPS = 10_000

# (minimum existing bids, multiplier): evaluated highest tier first
DEMAND_TIERS_BPS: tuple[tuple[int, int], ...] = (
    (10, 20_000),
    (5, 15_000),
    (3, 12_000),
)
BASELINE_DEMAND_BPS = 10_000


@dataclass(frozen=True)
class PricingFactors:
    """Breakdown of a quote, for display only. `PriceQuote.cost` is authoritative."""

    base_cost: int
    verified: bool
    current_bid_count: int
    verification_multiplier: float
    demand_multiplier: float

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class PriceQuote:
    cost: int
    factors: PricingFactors


def verification_multiplier_bps(verified: bool) -> int:
    return VERIFIED_MULTIPLIER_BPS if verified else UNVERIFIED_MULTIPLIER_BPS


def demand_multiplier_bps(current_bid_count: int) -> int:
    """Step function of existing bids; a count of 12 uses the ×2 tier, not ×1.2."""
    if current_bid_count < 0:
        raise ValueError(f"current_bid_count must be >= 0, got {current_bid_count}")
    for min_bids, multiplier in DEMAND_TIERS_BPS:
        if current_bid_count >= min_bids:
            return multiplier
    return BASELINE_DEMAND_BPS


def quote_bid(kind: ListingKind, verified: bool, current_bid_count: int) -> PriceQuote:
    """Price one bid on a listing given a point-in-time bid count."""
    base = BASE_COST[ListingKind(kind)]
    v_bps = verification_multiplier_bps(verified)
    d_bps = demand_multiplier_bps(current_bid_count)

    scale = BPS * BPS
    cost = (base * v_bps * d_bps + scale - 1) // scale

    return PriceQuote(
        cost=cost,
        factors=PricingFactors(
            base_cost=base,
            verified=verified,
            current_bid_count=current_bid_count,
            verification_multiplier=v_bps / BPS,
            demand_multiplier=d_bps / BPS,
        ),
    )
