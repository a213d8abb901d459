"""
Delivery zone policy.

Decides, from the delivery method, the destination city and the cart
subtotal, whether delivery is available and what it costs. The rules are
evaluated in order and the first match wins:

    pickup                          -> allowed, free
    delivery, Sherbrooke            -> allowed, free above $25, else $4.99
    delivery, Magog, under $100     -> refused (minimum order)
    delivery, Magog, $100 and up    -> allowed, free from $150, else $9.99
    delivery, anywhere else         -> refused (pickup only)

The decision is recomputed on every read; nothing is cached.
"""

from dataclasses import dataclass
from typing import Optional

from .models import DeliveryMethod

SHERBROOKE = "Sherbrooke"
MAGOG = "Magog"

SHERBROOKE_FEE = 4.99
SHERBROOKE_FREE_ABOVE = 25.0

MAGOG_MINIMUM_ORDER = 100.0
MAGOG_FEE = 9.99
MAGOG_FREE_FROM = 150.0

MAGOG_MINIMUM_REASON = "Delivery to Magog requires a $100 minimum order."
PICKUP_ONLY_REASON = "Delivery unavailable in selected area — pickup only."


@dataclass(frozen=True)
class ZoneDecision:
    """Outcome of the zone policy for one (method, city, subtotal)."""
    allowed: bool
    reason: str
    fee: float
    free_threshold: float


def decide(
    delivery_method: Optional[DeliveryMethod],
    city: Optional[str],
    subtotal: float,
) -> ZoneDecision:
    """
    Decide delivery eligibility and fee.

    Args:
        delivery_method: Pickup or delivery (None is treated as delivery to
            an unknown place, i.e. refused)
        city: Destination city as chosen in the form
        subtotal: Cart subtotal before fees and taxes

    Returns:
        ZoneDecision; a refused decision always carries a zero fee
    """
    if delivery_method == DeliveryMethod.PICKUP:
        return ZoneDecision(allowed=True, reason="", fee=0.0, free_threshold=0.0)

    if city == SHERBROOKE:
        fee = 0.0 if subtotal > SHERBROOKE_FREE_ABOVE else SHERBROOKE_FEE
        return ZoneDecision(allowed=True, reason="", fee=fee, free_threshold=SHERBROOKE_FREE_ABOVE)

    if city == MAGOG:
        if subtotal < MAGOG_MINIMUM_ORDER:
            return ZoneDecision(
                allowed=False,
                reason=MAGOG_MINIMUM_REASON,
                fee=0.0,
                free_threshold=MAGOG_FREE_FROM,
            )
        fee = 0.0 if subtotal >= MAGOG_FREE_FROM else MAGOG_FEE
        return ZoneDecision(allowed=True, reason="", fee=fee, free_threshold=MAGOG_FREE_FROM)

    return ZoneDecision(allowed=False, reason=PICKUP_ONLY_REASON, fee=0.0, free_threshold=0.0)
