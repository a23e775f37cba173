"""
Order upload and listing endpoints.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from loyalty.api.deps import get_current_user, get_ledger_store
from loyalty.exceptions import InvalidChecksumError, OrderConflictError
from loyalty.models.db.enums import OrderStatus
from loyalty.models.schemas.orders import OrderRead
from loyalty.services.balance import submit_order
from loyalty.services.ledger_store import LedgerStore, OrderRecord, UserRecord
from loyalty.utils import get_logger
from loyalty.utils.money import as_major_float

router = APIRouter()
logger = get_logger(__name__)

def _order_read(order: OrderRecord) -> OrderRead:
    accrual = None
    if order.status == OrderStatus.PROCESSED and order.accrual is not None:
        accrual = as_major_float(order.accrual)
    return OrderRead(number=order.number, status=order.status, accrual=accrual, uploaded_at=order.registered_at)

@router.post(
    "/orders",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Upload an order number",
    description="Register an order number (text/plain body) for accrual evaluation",
    responses={
        200: {"description": "Order was already uploaded by this user"},
        409: {"description": "Order was uploaded by another user"},
        422: {"description": "Order number fails the Luhn check"},
    }
)
async def upload_order(
    request: Request,
    user: UserRecord = Depends(get_current_user),
    store: LedgerStore = Depends(get_ledger_store)
) -> Response:
    request_id = getattr(request.state, "request_id", "unknown")

    content_type = request.headers.get("Content-Type", "")
    if not content_type.lower().startswith("text/plain"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Content-Type must be text/plain"
        )
    number = (await request.body()).decode("utf-8", errors="replace").strip()
    if not number:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty order number")

    try:
        _, created = await run_in_threadpool(submit_order, store, user.id, number, request_id=request_id)
    except InvalidChecksumError:
        logger.info("Order rejected: invalid number", order_number=number, user_id=user.id, request_id=request_id)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid order number"
        )
    except OrderConflictError:
        logger.warning("Order rejected: owned by another user", order_number=number, user_id=user.id, request_id=request_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Order number was already uploaded by another user"
        )

    if created:
        return Response(status_code=status.HTTP_202_ACCEPTED)
    return Response(status_code=status.HTTP_200_OK)

@router.get(
    "/orders",
    response_model=List[OrderRead],
    response_model_exclude_none=True,
    summary="List uploaded orders",
    description="Caller's orders, oldest first; 204 when there are none"
)
async def list_orders(
    user: UserRecord = Depends(get_current_user),
    store: LedgerStore = Depends(get_ledger_store)
):
    orders = await run_in_threadpool(store.list_user_orders, user.id)
    if not orders:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [_order_read(o) for o in orders]
