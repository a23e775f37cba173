"""
Balance, withdrawal and withdrawal history endpoints.
Amounts are major units on the wire; the ledger works in minor units.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from loyalty.api.deps import get_current_user, get_ledger_store, require_json_content_type
from loyalty.exceptions import InsufficientFundsError, InvalidAmountError, InvalidChecksumError
from loyalty.models.schemas.balance import BalanceRead, WithdrawalCreate, WithdrawalRead
from loyalty.services.balance import withdraw
from loyalty.services.ledger_store import LedgerStore, UserRecord
from loyalty.utils import get_logger
from loyalty.utils.money import as_major_float, to_minor_units

router = APIRouter()
logger = get_logger(__name__)

@router.get(
    "/balance",
    response_model=BalanceRead,
    summary="Current balance",
    description="Available points and the total withdrawn so far"
)
async def get_balance(
    user: UserRecord = Depends(get_current_user),
    store: LedgerStore = Depends(get_ledger_store)
) -> BalanceRead:
    snapshot = await run_in_threadpool(store.get_balance, user.id)
    return BalanceRead(current=as_major_float(snapshot.available), withdrawn=as_major_float(snapshot.withdrawn))

@router.post(
    "/balance/withdraw",
    summary="Withdraw points",
    description="Spend points against a new order number",
    responses={
        402: {"description": "Insufficient funds"},
        422: {"description": "Invalid order number, non-positive or out-of-range sum"},
    }
)
async def withdraw_points(
    request: Request,
    user: UserRecord = Depends(get_current_user),
    store: LedgerStore = Depends(get_ledger_store)
) -> Response:
    request_id = getattr(request.state, "request_id", "unknown")
    require_json_content_type(request)
    try:
        payload = WithdrawalCreate.model_validate_json(await request.body())
    except ValidationError as e:
        logger.warning("Malformed withdrawal body", errors=e.error_count(), user_id=user.id, request_id=request_id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Body must be JSON with 'order' and 'sum'"
        )

    try:
        amount = to_minor_units(payload.sum)
    except ValueError:
        logger.info("Withdrawal rejected: sum out of range", user_id=user.id, sum=str(payload.sum), request_id=request_id)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Sum out of range"
        )
    try:
        await run_in_threadpool(withdraw, store, user.id, payload.order, amount, request_id=request_id)
    except InvalidChecksumError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid order number"
        )
    except InvalidAmountError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Sum must be positive"
        )
    except InsufficientFundsError as e:
        logger.info(
            "Withdrawal rejected: insufficient funds",
            user_id=user.id,
            requested=e.requested,
            available=e.available,
            request_id=request_id
        )
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Insufficient funds"
        )
    return Response(status_code=status.HTTP_200_OK)

@router.get(
    "/withdrawals",
    response_model=List[WithdrawalRead],
    summary="Withdrawal history",
    description="Caller's withdrawals, newest first; 204 when there are none"
)
async def list_withdrawals(
    user: UserRecord = Depends(get_current_user),
    store: LedgerStore = Depends(get_ledger_store)
):
    rows = await run_in_threadpool(store.list_user_withdrawals, user.id)
    if not rows:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [
        WithdrawalRead(order=w.order_reference, sum=as_major_float(w.amount), processed_at=w.processed_at)
        for w in rows
    ]
