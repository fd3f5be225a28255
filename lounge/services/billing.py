from decimal import Decimal, ROUND_HALF_UP
from lounge.models.core import Booking, PaymentStatus

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

def money(x) -> Decimal:
    # use string to avoid float binary artifacts
    if not isinstance(x, Decimal):
        x = Decimal(str(x or 0))
    return x.quantize(CENT, rounding=ROUND_HALF_UP)

def payment_status_for(paid: Decimal, due: Decimal) -> PaymentStatus:
    paid, due = money(paid), money(due)
    if paid <= ZERO:
        return PaymentStatus.UNPAID
    if paid >= due:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL

def refresh_payment_status(b: Booking) -> PaymentStatus:
    """Re-derive status after the amount due moved (food added, price frozen)."""
    b.payment_status = payment_status_for(b.amount_paid, b.amount_due)
    return b.payment_status

def bill(b: Booking) -> dict:
    due = money(b.amount_due)
    paid = money(b.amount_paid)
    return {
        "session": float(money(b.price)),
        "food": float(money(b.food_total)),
        "discount": float(money(b.discount_amount)),
        "total": float(due),
        "paid": float(paid),
        "due": float(money(due - paid)),
    }
