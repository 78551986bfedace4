"""Customer-profile collaborator: fetch and persist the balance aggregate."""

from sqlalchemy import func
from sqlalchemy.orm import Session

from fieldpos.core.errors import NotFoundError
from fieldpos.models.customer_model import Customer


def get_customer_for_update(db: Session, customer_id: int) -> Customer:
    """Load the customer row locked for the rest of the transaction.

    The lock serializes writers on PostgreSQL; on stores without row locks the
    ``version`` check at flush time catches the lost update instead.
    """
    customer = (
        db.query(Customer)
        .filter(Customer.customer_id == customer_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.query(Customer).filter(Customer.customer_id == customer_id).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def persist_customer(db: Session, customer: Customer) -> None:
    db.add(customer)
    db.flush()


def next_sequence(db: Session, column, prefix: str, width: int) -> str:
    """Next LOAN000001 / ACC00000001 style code for a customer column."""
    # longest code first: LOAN1000000 sorts below LOAN999999 as a string
    last = (
        db.query(column)
        .filter(column.like(f"{prefix}%"))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
        .scalar()
    )
    seq = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{seq:0{width}d}"
