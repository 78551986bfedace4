# fieldpos/models/customer_model.py

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Numeric,
    Index,
)
from sqlalchemy.sql import func

from fieldpos.utils.database import Base

CUSTOMER_ACTIVE = "active"
CUSTOMER_CLOSED = "closed"
CUSTOMER_DEFAULTER = "defaulter"
CUSTOMER_NPA = "npa"

CUSTOMER_STATUSES = (CUSTOMER_ACTIVE, CUSTOMER_CLOSED, CUSTOMER_DEFAULTER, CUSTOMER_NPA)
EMI_FREQUENCIES = ("daily", "weekly", "monthly")


class Customer(Base):
    __tablename__ = "customers"

    __table_args__ = (
        Index("ix_customers_status", "status"),
        Index("ix_customers_agent_status", "assigned_agent_id", "status"),
    )

    customer_id = Column(Integer, primary_key=True, index=True)

    # LOAN000001 / ACC00000001, generated on registration
    loan_id = Column(String(20), unique=True, nullable=True, index=True)
    account_number = Column(String(20), unique=True, nullable=True, index=True)

    name = Column(String(150), nullable=False)
    mobile = Column(String(10), nullable=False, index=True)

    loan_amount = Column(Numeric(12, 2), nullable=False)
    emi_amount = Column(Numeric(12, 2), nullable=False)
    emi_frequency = Column(String(10), nullable=False, default="monthly")

    # balance aggregate, mutated only by record / void
    outstanding_amount = Column(Numeric(12, 2), nullable=False)
    penalty_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_paid = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=CUSTOMER_ACTIVE)

    assigned_agent_id = Column(Integer, nullable=False, index=True)

    # optimistic concurrency counter, bumped on every flush of this row
    version = Column(Integer, nullable=False)

    created_on = Column(DateTime, server_default=func.now())
    updated_on = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
