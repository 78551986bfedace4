import random
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple

from fieldpos.core.errors import ValidationError
from fieldpos.models.customer_model import CUSTOMER_ACTIVE, CUSTOMER_CLOSED

ZERO = Decimal("0.00")


def money(x) -> Decimal:
    """Always return 2-decimal Decimal with HALF_UP rounding."""
    if x is None:
        x = 0
    if not isinstance(x, Decimal):
        x = Decimal(str(x))
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class Allocation(NamedTuple):
    penalty_paid: Decimal
    principal_paid: Decimal
    outstanding_after: Decimal
    is_partial_payment: bool


def allocate_payment(
        collection_amount,
        outstanding_amount,
        penalty_amount,
        emi_amount,
) -> Allocation:
    """
    PENALTY-FIRST:
      penalty_paid     = min(amount, penalty)
      principal_paid   = amount - penalty_paid
      outstanding_after = max(0, outstanding - principal_paid)
      is_partial       = amount < emi

    Example:
      amount=700, outstanding=10000, penalty=500, emi=1000
        => penalty 500, principal 200, outstanding 9800, partial
    """
    try:
        amount = money(collection_amount)
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError("Collection amount must be a number")
    if not amount.is_finite():
        raise ValidationError("Collection amount must be a number")

    outstanding = money(outstanding_amount)
    penalty = money(penalty_amount)
    emi = money(emi_amount)

    if amount <= 0:
        raise ValidationError("Collection amount must be greater than 0")

    total_due = money(outstanding + penalty)
    if amount > total_due:
        raise ValidationError(f"Collection amount exceeds total due amount (₹{total_due})")

    penalty_paid = min(amount, penalty)
    principal_paid = money(amount - penalty_paid)
    outstanding_after = max(ZERO, money(outstanding - principal_paid))

    return Allocation(
        penalty_paid=penalty_paid,
        principal_paid=principal_paid,
        outstanding_after=outstanding_after,
        is_partial_payment=amount < emi,
    )


def derive_status(outstanding_amount, penalty_amount, current_status: str) -> str:
    """
    Single place where balance-driven status changes happen.

    - nothing left to collect -> closed
    - closed but money owed again (after a void) -> active
    - defaulter / npa / active are otherwise left alone
    """
    outstanding = money(outstanding_amount)
    penalty = money(penalty_amount)

    if outstanding <= 0 and penalty <= 0:
        return CUSTOMER_CLOSED
    if current_status == CUSTOMER_CLOSED:
        return CUSTOMER_ACTIVE
    return current_status


def generate_transaction_id() -> str:
    """TXN<epoch-millis><0-9999>, e.g. TXN17291234567894821."""
    millis = int(time.time() * 1000)
    return f"TXN{millis}{random.randint(0, 9999)}".upper()
