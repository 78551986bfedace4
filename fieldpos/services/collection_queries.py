"""Read-only projections over the collections ledger.

Voided entries never count toward a sum. They are only listed when an
elevated caller explicitly asks for the audit view.
"""

import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from fieldpos.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from fieldpos.core.errors import ForbiddenError, NotFoundError
from fieldpos.core.security import CallerContext
from fieldpos.models.collection_model import (
    Collection,
    PAYMENT_MODES,
    STATUS_COMPLETED,
    STATUS_VOIDED,
)
from fieldpos.services.customer_store import get_customer
from fieldpos.utils.allocation import ZERO, money

logger = logging.getLogger(__name__)


def _scope_to_agent(q, caller: CallerContext):
    if caller.is_agent:
        q = q.filter(Collection.agent_id == caller.identity)
    return q


# -------------------------------------------------
# Daily stats
# -------------------------------------------------
def daily_stats(db: Session, caller: CallerContext, day: Optional[date] = None) -> dict:
    day = day or date.today()
    start = datetime.combine(day, time.min)
    end = start + timedelta(days=1)

    mode_sums = [
        func.coalesce(
            func.sum(case((Collection.payment_mode == mode, Collection.collection_amount), else_=0)),
            0,
        ).label(f"{mode}_amount")
        for mode in PAYMENT_MODES
    ]

    q = db.query(
        func.count(Collection.collection_id).label("total_collections"),
        func.coalesce(func.sum(Collection.collection_amount), 0).label("total_amount"),
        func.coalesce(
            func.sum(case((Collection.is_partial_payment.is_(True), 1), else_=0)), 0
        ).label("partial_payments"),
        *mode_sums,
    ).filter(
        Collection.timestamp >= start,
        Collection.timestamp < end,
        Collection.status == STATUS_COMPLETED,
    )
    row = _scope_to_agent(q, caller).one()

    return {
        "date": day,
        "total_collections": int(row.total_collections or 0),
        "total_amount": money(row.total_amount),
        "partial_payments": int(row.partial_payments or 0),
        "by_mode": {mode: money(getattr(row, f"{mode}_amount")) for mode in PAYMENT_MODES},
    }


# -------------------------------------------------
# Single entry / customer history
# -------------------------------------------------
def get_collection(db: Session, caller: CallerContext, collection_id: int) -> Collection:
    collection = db.query(Collection).filter(Collection.collection_id == collection_id).first()
    if not collection:
        raise NotFoundError("Collection record not found")

    if caller.is_agent and collection.agent_id != caller.identity:
        raise ForbiddenError("You do not have access to this collection record")

    return collection


def customer_history(
        db: Session,
        caller: CallerContext,
        customer_id: int,
        include_voided: bool = False,
) -> dict:
    customer = get_customer(db, customer_id)

    if caller.is_agent and customer.assigned_agent_id != caller.identity:
        raise ForbiddenError("You do not have access to this customer")
    if include_voided and not caller.is_elevated:
        raise ForbiddenError("Audit view requires a supervisor or admin role")

    q = db.query(Collection).filter(Collection.customer_id == customer_id)
    if not include_voided:
        q = q.filter(Collection.status != STATUS_VOIDED)

    collections = q.order_by(Collection.timestamp.desc(), Collection.collection_id.desc()).all()

    total_collected = sum(
        (money(c.collection_amount) for c in collections if c.status == STATUS_COMPLETED),
        ZERO,
    )

    return {
        "customer_id": customer_id,
        "count": len(collections),
        "total_collected": money(total_collected),
        "collections": collections,
    }


# -------------------------------------------------
# Paginated history
# -------------------------------------------------
def list_collections(
        db: Session,
        caller: CallerContext,
        customer_id: Optional[int] = None,
        payment_mode: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        include_voided: bool = False,
) -> dict:
    if include_voided and not caller.is_elevated:
        raise ForbiddenError("Audit view requires a supervisor or admin role")

    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    q = _scope_to_agent(db.query(Collection), caller)

    if customer_id is not None:
        q = q.filter(Collection.customer_id == customer_id)

    # unknown modes are ignored rather than rejected
    if payment_mode and payment_mode.lower() in PAYMENT_MODES:
        q = q.filter(Collection.payment_mode == payment_mode.lower())

    if start_date:
        q = q.filter(Collection.timestamp >= datetime.combine(start_date, time.min))
    if end_date:
        q = q.filter(Collection.timestamp < datetime.combine(end_date + timedelta(days=1), time.min))

    if not include_voided:
        q = q.filter(Collection.status != STATUS_VOIDED)

    total = q.count()

    # summary always counts completed entries only
    summary = q.filter(Collection.status == STATUS_COMPLETED).with_entities(
        func.coalesce(func.sum(Collection.collection_amount), 0),
        func.count(Collection.collection_id),
    ).one()

    rows = (
        q.order_by(Collection.timestamp.desc(), Collection.collection_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "count": len(rows),
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / limit) if total else 0,
        "summary": {
            "total_amount": money(summary[0]),
            "total_transactions": int(summary[1] or 0),
        },
        "collections": rows,
    }


# -------------------------------------------------
# Reconciliation
# -------------------------------------------------
def reconcile_customer(db: Session, customer_id: int) -> dict:
    """Compare the stored aggregate with what the completed ledger implies.

    total_paid must equal the principal of completed entries, and principal
    never exceeds what was outstanding, so outstanding = loan_amount - total_paid.
    """
    customer = get_customer(db, customer_id)

    principal, count = (
        db.query(
            func.coalesce(func.sum(Collection.principal_paid), 0),
            func.count(Collection.collection_id),
        )
        .filter(
            Collection.customer_id == customer_id,
            Collection.status == STATUS_COMPLETED,
        )
        .one()
    )

    expected_total_paid = money(principal)
    expected_outstanding = max(ZERO, money(money(customer.loan_amount) - expected_total_paid))

    total_paid_drift = money(money(customer.total_paid) - expected_total_paid)
    outstanding_drift = money(money(customer.outstanding_amount) - expected_outstanding)
    in_balance = total_paid_drift == 0 and outstanding_drift == 0

    if not in_balance:
        logger.warning(
            "Reconciliation drift for customer %s: total_paid %s, outstanding %s",
            customer_id,
            total_paid_drift,
            outstanding_drift,
        )

    return {
        "customer_id": customer_id,
        "completed_collections": int(count or 0),
        "loan_amount": money(customer.loan_amount),
        "total_paid": money(customer.total_paid),
        "expected_total_paid": expected_total_paid,
        "outstanding_amount": money(customer.outstanding_amount),
        "expected_outstanding": expected_outstanding,
        "total_paid_drift": total_paid_drift,
        "outstanding_drift": outstanding_drift,
        "in_balance": in_balance,
    }
