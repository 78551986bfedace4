# fieldpos/models/collection_model.py

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Numeric,
    Boolean,
    Text,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from fieldpos.utils.database import Base

STATUS_COMPLETED = "completed"
STATUS_VOIDED = "voided"
STATUS_CANCELLED = "cancelled"

COLLECTION_STATUSES = (STATUS_COMPLETED, STATUS_VOIDED, STATUS_CANCELLED)
PAYMENT_MODES = ("cash", "upi", "qr", "card")

DEFAULT_VOID_REASON = "No reason provided"


class Collection(Base):
    """One field collection event. Amount and snapshot columns never change after insert."""

    __tablename__ = "collections"

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_collections_transaction_id"),
        Index("ix_collections_customer_status", "customer_id", "status"),
        Index("ix_collections_agent_timestamp", "agent_id", "timestamp"),
    )

    collection_id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(String(40), nullable=False)

    customer_id = Column(
        Integer,
        ForeignKey("customers.customer_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    agent_id = Column(Integer, nullable=False, index=True)

    # snapshot of customer.loan_id at collection time
    loan_id = Column(String(20), nullable=True)

    collection_amount = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(String(10), nullable=False)

    emi_due = Column(Numeric(12, 2), nullable=False)
    penalty_paid = Column(Numeric(12, 2), nullable=False, default=0)
    principal_paid = Column(Numeric(12, 2), nullable=False, default=0)
    outstanding_before = Column(Numeric(12, 2), nullable=False)
    outstanding_after = Column(Numeric(12, 2), nullable=False)
    is_partial_payment = Column(Boolean, nullable=False, default=False)

    # informational only
    latitude = Column(Numeric(9, 6), nullable=True)
    longitude = Column(Numeric(9, 6), nullable=True)
    address = Column(Text, nullable=True)
    device_id = Column(String(100), nullable=False, default="UNKNOWN")

    timestamp = Column(DateTime, nullable=False, index=True)

    # completed / voided / cancelled, voided is terminal
    status = Column(String(20), nullable=False, default=STATUS_COMPLETED)
    voided_by = Column(Integer, nullable=True)
    voided_at = Column(DateTime, nullable=True)
    void_reason = Column(Text, nullable=True)

    remarks = Column(Text, nullable=True)

    receipt_sms = Column(Boolean, nullable=False, default=False)
    receipt_whatsapp = Column(Boolean, nullable=False, default=False)
    receipt_print = Column(Boolean, nullable=False, default=False)

    created_on = Column(DateTime, server_default=func.now())
    updated_on = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
