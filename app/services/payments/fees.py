"""Fee split for an order amount. Half-up rounding, fee + net == amount."""
from decimal import ROUND_HALF_UP, Decimal

from app.services.payments.errors import ValidationError


def compute_fee(amount: int, fee_percent: int) -> tuple[int, int]:
    """Return (fee, net) for an integer Stars amount."""
    if amount < 1:
        raise ValidationError("amount must be >= 1", {"amount": amount})
    if fee_percent < 0 or fee_percent > 100:
        raise ValidationError("fee_percent must be between 0 and 100", {"fee_percent": fee_percent})
    fee = int((Decimal(amount) * Decimal(fee_percent) / Decimal(100)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return fee, amount - fee
