# fieldpos/schemas/collection_schemas.py

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from fieldpos.schemas.customer_schemas import CustomerBalancesOut


class CollectionCreate(BaseModel):
    customer_id: int
    # range checks live in the allocation step so every caller gets the same errors
    collection_amount: Decimal
    payment_mode: str

    transaction_id: Optional[str] = Field(default=None, max_length=40)

    latitude: Optional[Decimal] = Field(default=None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(default=None, ge=-180, le=180)
    address: Optional[str] = None
    device_id: Optional[str] = Field(default=None, max_length=100)
    remarks: Optional[str] = None

    @field_validator("transaction_id", "address", "device_id", "remarks", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class CollectionOut(BaseModel):
    collection_id: int
    transaction_id: str

    customer_id: int
    agent_id: int
    loan_id: Optional[str] = None

    collection_amount: float
    payment_mode: str
    emi_due: float
    penalty_paid: float
    principal_paid: float
    outstanding_before: float
    outstanding_after: float
    is_partial_payment: bool

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    device_id: str

    timestamp: datetime
    status: str
    voided_by: Optional[int] = None
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    remarks: Optional[str] = None

    receipt_sms: bool
    receipt_whatsapp: bool
    receipt_print: bool

    class Config:
        from_attributes = True


class CollectionResult(BaseModel):
    collection: CollectionOut
    updated_customer: CustomerBalancesOut

    class Config:
        from_attributes = True


class VoidRequest(BaseModel):
    reason: Optional[str] = None


class VoidResult(BaseModel):
    collection: CollectionOut
    updated_customer: CustomerBalancesOut

    class Config:
        from_attributes = True


class RemarksUpdate(BaseModel):
    remarks: Optional[str] = None


class ReceiptStatusUpdate(BaseModel):
    sms: Optional[bool] = None
    whatsapp: Optional[bool] = None
    print: Optional[bool] = None


class DailyStatsOut(BaseModel):
    date: date
    total_collections: int
    total_amount: float
    partial_payments: int
    by_mode: Dict[str, float]


class CustomerHistoryOut(BaseModel):
    customer_id: int
    count: int
    total_collected: float
    collections: List[CollectionOut]


class CollectionSummaryOut(BaseModel):
    total_amount: float
    total_transactions: int


class CollectionListOut(BaseModel):
    count: int
    total: int
    page: int
    total_pages: int
    summary: CollectionSummaryOut
    collections: List[CollectionOut]


class ReconciliationOut(BaseModel):
    customer_id: int
    completed_collections: int
    loan_amount: float
    total_paid: float
    expected_total_paid: float
    outstanding_amount: float
    expected_outstanding: float
    total_paid_drift: float
    outstanding_drift: float
    in_balance: bool
