# fieldpos/routers/customers_router.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette import status

from fieldpos.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from fieldpos.core.security import CallerContext, get_caller, require_elevated
from fieldpos.utils.database import get_db
from fieldpos.utils.allocation import money
from fieldpos.models.customer_model import Customer, CUSTOMER_ACTIVE, CUSTOMER_STATUSES
from fieldpos.services.customer_store import next_sequence
from fieldpos.schemas.customer_schemas import CustomerCreate, CustomerOut

router = APIRouter(prefix="/customers", tags=["Customers"])


# CREATE (supervisor / admin)
@router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(
        payload: CustomerCreate,
        caller: CallerContext = Depends(require_elevated),
        db: Session = Depends(get_db),
):
    loan_amount = money(payload.loan_amount)

    customer = Customer(
        loan_id=next_sequence(db, Customer.loan_id, "LOAN", 6),
        account_number=next_sequence(db, Customer.account_number, "ACC", 8),
        name=payload.name,
        mobile=payload.mobile,
        loan_amount=loan_amount,
        emi_amount=money(payload.emi_amount),
        emi_frequency=payload.emi_frequency,
        outstanding_amount=loan_amount,
        penalty_amount=money(payload.penalty_amount),
        total_paid=money(0),
        status=CUSTOMER_ACTIVE,
        assigned_agent_id=payload.assigned_agent_id,
    )

    try:
        db.add(customer)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Loan ID / account number already taken, please retry.",
        )

    db.refresh(customer)
    return customer


# READ ALL (agents only see their own customers)
@router.get("", response_model=list[CustomerOut])
def list_customers(
        status_filter: Optional[str] = Query(None, alias="status"),
        search: Optional[str] = Query(None),
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    q = db.query(Customer)

    if caller.is_agent:
        q = q.filter(Customer.assigned_agent_id == caller.identity)

    if status_filter and status_filter.lower() in CUSTOMER_STATUSES:
        q = q.filter(Customer.status == status_filter.lower())

    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Customer.name.ilike(like),
                Customer.loan_id.ilike(like),
                Customer.account_number.ilike(like),
                Customer.mobile.ilike(like),
            )
        )

    return q.order_by(Customer.customer_id.desc()).offset(offset).limit(limit).all()


# READ ONE
@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(
        customer_id: int,
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    customer = db.query(Customer).filter(Customer.customer_id == customer_id).first()
    if not customer:
        raise HTTPException(404, "Customer not found")

    if caller.is_agent and customer.assigned_agent_id != caller.identity:
        raise HTTPException(403, "You do not have access to this customer")

    return customer
