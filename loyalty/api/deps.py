"""
Dependencies for authentication and the ledger store.
"""
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from loyalty import database
from loyalty.services.ledger_store import LedgerStore, UserRecord
from loyalty.utils import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)

_ledger_store: Optional[LedgerStore] = None

def get_ledger_store() -> LedgerStore:
    """
    Process-wide ledger store.
    One instance so every request shares the same per-owner withdrawal locks.
    """
    global _ledger_store
    if _ledger_store is None:
        _ledger_store = LedgerStore(database.SessionLocal)
    return _ledger_store

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: LedgerStore = Depends(get_ledger_store),
) -> UserRecord:
    """
    Resolve the caller from ``Authorization: Bearer <api_key>``.

    Raises:
        HTTPException: 401 when the header is missing or the key is unknown
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    api_key = credentials.credentials
    user = await run_in_threadpool(store.get_user_by_api_key, api_key)
    if user is None:
        logger.warning(
            "Authentication failed: invalid API key",
            api_key_prefix=api_key[:6] + "..." if len(api_key) > 6 else api_key
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug("User authenticated", user_id=user.id, login=user.login)
    return user

def require_json_content_type(request: Request) -> None:
    """JSON endpoints reject other media types with 400, as /orders does for text/plain."""
    content_type = request.headers.get("Content-Type", "")
    if not content_type.lower().startswith("application/json"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Content-Type must be application/json"
        )
