"""Collection recording and void/reversal workflows.

Both workflows run inside a single database transaction:

1. the customer row is locked (and version-checked) before any balance is read
2. the ledger row is written and flushed first
3. the customer aggregate is mutated second
4. one commit makes both visible together

A lost optimistic version check rolls everything back and re-runs the whole
workflow against fresh balances, at most ``VERSION_CONFLICT_RETRIES`` times.
Nothing else is retried.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, NamedTuple, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from fieldpos.core.config import VERSION_CONFLICT_RETRIES
from fieldpos.core.errors import (
    CollectionError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    OperationResult,
    StorageError,
    ValidationError,
)
from fieldpos.core.security import CallerContext
from fieldpos.models.collection_model import (
    Collection,
    DEFAULT_VOID_REASON,
    PAYMENT_MODES,
    STATUS_COMPLETED,
    STATUS_VOIDED,
)
from fieldpos.models.customer_model import Customer
from fieldpos.services.customer_store import get_customer_for_update, persist_customer
from fieldpos.utils.allocation import (
    ZERO,
    allocate_payment,
    derive_status,
    generate_transaction_id,
    money,
)

logger = logging.getLogger(__name__)


@dataclass
class CollectionMetadata:
    """Pass-through details captured on the device. Informational only."""

    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    address: str = ""
    device_id: str = "UNKNOWN"
    remarks: str = ""
    transaction_id: Optional[str] = None


class CollectionOutcome(NamedTuple):
    collection: Collection
    customer: Customer


# -------------------------------------------------
# Helpers
# -------------------------------------------------
def _is_duplicate_transaction(exc: IntegrityError) -> bool:
    msg = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
    return "uq_collections_transaction_id" in msg or "transaction_id" in msg


def _lock_collection(db: Session, collection_id: int) -> Collection:
    collection = (
        db.query(Collection)
        .filter(Collection.collection_id == collection_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not collection:
        raise NotFoundError("Collection not found")
    return collection


def _run(db: Session, operation: str, workflow: Callable[[], object]) -> OperationResult:
    """Run ``workflow`` as one transaction and turn every outcome into a result."""
    attempts = max(1, VERSION_CONFLICT_RETRIES + 1)

    for attempt in range(1, attempts + 1):
        try:
            data = workflow()
            db.commit()
            return OperationResult.success(data)

        except StaleDataError:
            db.rollback()
            logger.warning(
                "%s: customer version conflict (attempt %s/%s)", operation, attempt, attempts
            )

        except CollectionError as e:
            db.rollback()
            return OperationResult.failure(e)

        except SQLAlchemyError:
            db.rollback()
            logger.exception("%s: storage failure", operation)
            return OperationResult.failure(
                StorageError("Unable to save the transaction right now. Please try again.")
            )

    return OperationResult.failure(
        ConflictError("Customer was updated by another request. Please try again.")
    )


# =================================================
# RECORD
# =================================================
def _record(
        db: Session,
        customer_id: int,
        collection_amount,
        payment_mode: str,
        caller: CallerContext,
        metadata: CollectionMetadata,
) -> CollectionOutcome:
    customer = get_customer_for_update(db, customer_id)

    if caller.is_agent and customer.assigned_agent_id != caller.identity:
        raise ForbiddenError("You are not assigned to this customer")

    mode = (payment_mode or "").strip().lower()
    if mode not in PAYMENT_MODES:
        raise ValidationError("Invalid payment mode. Must be: cash, upi, qr, or card")

    try:
        amount = money(collection_amount)
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError("Collection amount must be a number")
    if not amount.is_finite():
        raise ValidationError("Collection amount must be a number")

    alloc = allocate_payment(
        amount,
        customer.outstanding_amount,
        customer.penalty_amount,
        customer.emi_amount,
    )

    outstanding_before = money(customer.outstanding_amount)
    emi_due = money(customer.emi_amount)

    txn_id = (metadata.transaction_id or "").strip().upper() or generate_transaction_id()

    collection = Collection(
        transaction_id=txn_id,
        customer_id=customer.customer_id,
        agent_id=caller.identity,
        loan_id=customer.loan_id,
        collection_amount=amount,
        payment_mode=mode,
        emi_due=emi_due,
        penalty_paid=alloc.penalty_paid,
        principal_paid=alloc.principal_paid,
        outstanding_before=outstanding_before,
        outstanding_after=alloc.outstanding_after,
        is_partial_payment=alloc.is_partial_payment,
        latitude=metadata.latitude,
        longitude=metadata.longitude,
        address=metadata.address or "",
        device_id=metadata.device_id or "UNKNOWN",
        remarks=metadata.remarks or "",
        timestamp=datetime.now(),
        status=STATUS_COMPLETED,
    )

    # ledger row first: a failure after this point never leaves a silent balance change
    db.add(collection)
    try:
        db.flush()
    except IntegrityError as e:
        if _is_duplicate_transaction(e):
            logger.warning("Duplicate transaction id rejected: %s", txn_id)
            raise ConflictError(f"Transaction {txn_id} already exists")
        raise

    customer.outstanding_amount = alloc.outstanding_after
    customer.total_paid = money(money(customer.total_paid) + alloc.principal_paid)
    customer.penalty_amount = max(ZERO, money(money(customer.penalty_amount) - alloc.penalty_paid))
    customer.status = derive_status(
        customer.outstanding_amount, customer.penalty_amount, customer.status
    )
    persist_customer(db, customer)

    return CollectionOutcome(collection=collection, customer=customer)


def record_collection(
        db: Session,
        customer_id: int,
        collection_amount,
        payment_mode: str,
        caller: CallerContext,
        metadata: Optional[CollectionMetadata] = None,
) -> OperationResult:
    """Record one field collection. ``result.data`` is a ``CollectionOutcome``."""
    metadata = metadata or CollectionMetadata()

    result = _run(
        db,
        "record_collection",
        lambda: _record(db, customer_id, collection_amount, payment_mode, caller, metadata),
    )

    if result.ok:
        c = result.data.collection
        logger.info(
            "Collection %s recorded: customer=%s agent=%s amount=%s penalty=%s principal=%s",
            c.transaction_id,
            c.customer_id,
            c.agent_id,
            c.collection_amount,
            c.penalty_paid,
            c.principal_paid,
        )
    return result


# =================================================
# VOID
# =================================================
def _void(
        db: Session,
        collection_id: int,
        caller: CallerContext,
        reason: Optional[str],
) -> CollectionOutcome:
    if not caller.is_elevated:
        raise ForbiddenError("Only supervisors or admins can void transactions")

    collection = _lock_collection(db, collection_id)

    if collection.status == STATUS_VOIDED:
        raise ConflictError("Transaction already voided")
    if collection.status != STATUS_COMPLETED:
        raise ConflictError(f"Cannot void a {collection.status} transaction")

    customer = get_customer_for_update(db, collection.customer_id)

    collection.status = STATUS_VOIDED
    collection.voided_by = caller.identity
    collection.voided_at = datetime.now()
    collection.void_reason = (reason or "").strip() or DEFAULT_VOID_REASON
    db.flush()

    penalty_paid = money(collection.penalty_paid)
    principal_paid = money(money(collection.collection_amount) - penalty_paid)

    customer.outstanding_amount = money(money(customer.outstanding_amount) + principal_paid)
    customer.total_paid = money(money(customer.total_paid) - principal_paid)
    customer.penalty_amount = money(money(customer.penalty_amount) + penalty_paid)
    customer.status = derive_status(
        customer.outstanding_amount, customer.penalty_amount, customer.status
    )
    persist_customer(db, customer)

    return CollectionOutcome(collection=collection, customer=customer)


def void_collection(
        db: Session,
        collection_id: int,
        caller: CallerContext,
        reason: Optional[str] = None,
) -> OperationResult:
    """Void a completed collection and restore the customer's balances exactly."""
    result = _run(db, "void_collection", lambda: _void(db, collection_id, caller, reason))

    if result.ok:
        c = result.data.collection
        logger.info(
            "Collection %s voided by %s: customer=%s principal restored=%s penalty restored=%s",
            c.transaction_id,
            c.voided_by,
            c.customer_id,
            money(c.collection_amount) - money(c.penalty_paid),
            c.penalty_paid,
        )
    return result


# =================================================
# EDITS (non-financial fields only)
# =================================================
def _update_remarks(db: Session, collection_id: int, caller: CallerContext, remarks: Optional[str]):
    if not caller.is_elevated:
        raise ForbiddenError("Only supervisors or admins can edit transactions")

    collection = _lock_collection(db, collection_id)
    if collection.status == STATUS_VOIDED:
        raise ConflictError("Cannot edit a voided transaction")

    collection.remarks = (remarks or "").strip()
    db.flush()
    return collection


def update_remarks(
        db: Session,
        collection_id: int,
        caller: CallerContext,
        remarks: Optional[str],
) -> OperationResult:
    return _run(
        db, "update_remarks", lambda: _update_remarks(db, collection_id, caller, remarks)
    )


def _update_receipt_status(
        db: Session,
        collection_id: int,
        caller: CallerContext,
        sms: Optional[bool],
        whatsapp: Optional[bool],
        print_: Optional[bool],
):
    collection = _lock_collection(db, collection_id)

    if caller.is_agent and collection.agent_id != caller.identity:
        raise ForbiddenError("You do not have access to this collection record")

    if sms is not None:
        collection.receipt_sms = bool(sms)
    if whatsapp is not None:
        collection.receipt_whatsapp = bool(whatsapp)
    if print_ is not None:
        collection.receipt_print = bool(print_)

    db.flush()
    return collection


def update_receipt_status(
        db: Session,
        collection_id: int,
        caller: CallerContext,
        sms: Optional[bool] = None,
        whatsapp: Optional[bool] = None,
        print_: Optional[bool] = None,
) -> OperationResult:
    return _run(
        db,
        "update_receipt_status",
        lambda: _update_receipt_status(db, collection_id, caller, sms, whatsapp, print_),
    )
