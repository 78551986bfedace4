from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from starlette import status

from fieldpos.core.config import DEFAULT_PAGE_SIZE
from fieldpos.core.errors import CollectionError, OperationResult
from fieldpos.core.security import CallerContext, get_caller, require_elevated
from fieldpos.utils.database import get_db
from fieldpos.services import collection_queries
from fieldpos.services.collection_service import (
    CollectionMetadata,
    record_collection,
    void_collection,
    update_remarks,
    update_receipt_status,
)
from fieldpos.schemas.collection_schemas import (
    CollectionCreate,
    CollectionOut,
    CollectionResult,
    VoidRequest,
    VoidResult,
    RemarksUpdate,
    ReceiptStatusUpdate,
    DailyStatsOut,
    CustomerHistoryOut,
    CollectionListOut,
    ReconciliationOut,
)

router = APIRouter(prefix="/collections", tags=["Collections"])


# -------------------------------------------------
# Helpers
# -------------------------------------------------
def http_error(error: CollectionError) -> HTTPException:
    return HTTPException(
        status_code=error.status_code,
        detail={"kind": error.kind, "message": error.message},
    )


def unwrap(result: OperationResult):
    if not result.ok:
        raise http_error(result.error)
    return result.data


# =================================================
# 🔹 STATIC ROUTES (ALWAYS FIRST)
# =================================================
@router.get("/stats/today", response_model=DailyStatsOut)
def today_stats(
        day: Optional[date] = Query(None),
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    return collection_queries.daily_stats(db, caller, day)


@router.get("/customer/{customer_id}", response_model=CustomerHistoryOut)
def customer_collections(
        customer_id: int,
        include_voided: bool = Query(False),
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    try:
        return collection_queries.customer_history(db, caller, customer_id, include_voided)
    except CollectionError as e:
        raise http_error(e)


@router.get("/reconcile/{customer_id}", response_model=ReconciliationOut)
def reconcile(
        customer_id: int,
        caller: CallerContext = Depends(require_elevated),
        db: Session = Depends(get_db),
):
    try:
        return collection_queries.reconcile_customer(db, customer_id)
    except CollectionError as e:
        raise http_error(e)


# =================================================
# ✅ RECORD / LIST
# =================================================
@router.post("", response_model=CollectionResult, status_code=status.HTTP_201_CREATED)
def create_collection(
        payload: CollectionCreate,
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    metadata = CollectionMetadata(
        latitude=payload.latitude,
        longitude=payload.longitude,
        address=payload.address or "",
        device_id=payload.device_id or "UNKNOWN",
        remarks=payload.remarks or "",
        transaction_id=payload.transaction_id,
    )

    outcome = unwrap(
        record_collection(
            db,
            customer_id=payload.customer_id,
            collection_amount=payload.collection_amount,
            payment_mode=payload.payment_mode,
            caller=caller,
            metadata=metadata,
        )
    )

    return {"collection": outcome.collection, "updated_customer": outcome.customer}


@router.get("", response_model=CollectionListOut)
def list_collections(
        customer_id: Optional[int] = Query(None),
        payment_mode: Optional[str] = Query(None),
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        page: int = Query(1, ge=1),
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
        include_voided: bool = Query(False),
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    try:
        return collection_queries.list_collections(
            db,
            caller,
            customer_id=customer_id,
            payment_mode=payment_mode,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
            include_voided=include_voided,
        )
    except CollectionError as e:
        raise http_error(e)


# =================================================
# 🔹 DYNAMIC ROUTES (LAST)
# =================================================
@router.get("/{collection_id}", response_model=CollectionOut)
def get_collection(
        collection_id: int,
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    try:
        return collection_queries.get_collection(db, caller, collection_id)
    except CollectionError as e:
        raise http_error(e)


@router.post("/{collection_id}/void", response_model=VoidResult)
def void(
        collection_id: int,
        payload: Optional[VoidRequest] = None,
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    outcome = unwrap(void_collection(db, collection_id, caller, reason))
    return {"collection": outcome.collection, "updated_customer": outcome.customer}


@router.patch("/{collection_id}/remarks", response_model=CollectionOut)
def edit_remarks(
        collection_id: int,
        payload: RemarksUpdate,
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    return unwrap(update_remarks(db, collection_id, caller, payload.remarks))


@router.put("/{collection_id}/receipt", response_model=CollectionOut)
def receipt_status(
        collection_id: int,
        payload: ReceiptStatusUpdate,
        caller: CallerContext = Depends(get_caller),
        db: Session = Depends(get_db),
):
    return unwrap(
        update_receipt_status(
            db,
            collection_id,
            caller,
            sms=payload.sms,
            whatsapp=payload.whatsapp,
            print_=payload.print,
        )
    )
