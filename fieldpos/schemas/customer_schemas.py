# fieldpos/schemas/customer_schemas.py

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    mobile: str = Field(..., pattern=r"^[0-9]{10}$")

    loan_amount: Decimal = Field(gt=0)
    emi_amount: Decimal = Field(gt=0)
    emi_frequency: Literal["daily", "weekly", "monthly"] = "monthly"

    penalty_amount: Decimal = Field(default=Decimal("0"), ge=0)
    assigned_agent_id: int

    @field_validator("name", mode="before")
    def strip_name(cls, v):
        return str(v).strip() if v is not None else v


class CustomerBalancesOut(BaseModel):
    outstanding_amount: float
    penalty_amount: float
    total_paid: float
    status: str

    class Config:
        from_attributes = True


class CustomerOut(BaseModel):
    customer_id: int
    loan_id: Optional[str] = None
    account_number: Optional[str] = None
    name: str
    mobile: str

    loan_amount: float
    emi_amount: float
    emi_frequency: str

    outstanding_amount: float
    penalty_amount: float
    total_paid: float
    status: str

    assigned_agent_id: int
    created_on: Optional[datetime] = None

    class Config:
        from_attributes = True
