"""
Tax calculation utilities.

Quebec orders carry two taxes on (subtotal + delivery fee): GST at 5% and
QST at 9.975%. Each component is rounded to the cent on its own, then the
final total is rounded once more. Historical order records were produced
this way, so the order of rounding must not change.
"""

from decimal import Decimal, ROUND_HALF_UP

from .models import Totals

GST_RATE = 0.05
QST_RATE = 0.09975

_CENT = Decimal("0.01")


def round_money(amount: float) -> float:
    """Round to 2 decimal places for currency.

    Rounds half up on the exact binary value of the float, so 2.675 (stored
    as 2.67499...) becomes 2.67 while an exactly representable 0.125 becomes
    0.13.
    """
    return float(Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP))


def calculate_totals(subtotal: float, delivery_fee: float) -> Totals:
    """
    Derive taxes and the payable total.

    Args:
        subtotal: Cart subtotal, non-negative
        delivery_fee: Fee from the zone policy, non-negative

    Returns:
        Totals with every money value rounded to the cent
    """
    taxable = subtotal + delivery_fee
    gst = round_money(taxable * GST_RATE)
    qst = round_money(taxable * QST_RATE)
    final_total = round_money(subtotal + delivery_fee + gst + qst)

    return Totals(
        subtotal=round_money(subtotal),
        gst=gst,
        qst=qst,
        delivery_fee=round_money(delivery_fee),
        final_total=final_total,
    )

