"""
Registration and login endpoints.

Both return the caller's API key, in the body and in the ``Authorization``
response header, to be sent back as ``Authorization: Bearer <key>``.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
import time
from loyalty.api.deps import get_ledger_store, require_json_content_type
from loyalty.exceptions import UserAlreadyExistsError
from loyalty.models.schemas.users import UserCredentials, TokenRead
from loyalty.security import hash_password, verify_password
from loyalty.services.ledger_store import LedgerStore, UserRecord
from loyalty.utils import get_logger, log_business_event, log_performance

router = APIRouter()
logger = get_logger(__name__)

async def _read_credentials(request: Request, request_id: str) -> UserCredentials:
    """Malformed bodies are a 400 here, not FastAPI's default 422."""
    require_json_content_type(request)
    raw = await request.body()
    try:
        return UserCredentials.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("Malformed credentials body", errors=e.error_count(), request_id=request_id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Body must be JSON with non-empty 'login' and 'password'"
        )

def _token_response(user: UserRecord, response: Response) -> TokenRead:
    response.headers["Authorization"] = f"Bearer {user.api_key}"
    return TokenRead(user_id=user.id, login=user.login, token=user.api_key)

@router.post(
    "/register",
    response_model=TokenRead,
    status_code=status.HTTP_200_OK,
    summary="Register a new user",
    description="Create an account and return its API key"
)
async def register(
    request: Request,
    response: Response,
    store: LedgerStore = Depends(get_ledger_store)
) -> TokenRead:
    start_time = time.time()
    request_id = getattr(request.state, "request_id", "unknown")
    credentials = await _read_credentials(request, request_id)

    try:
        user = await run_in_threadpool(store.create_user, credentials.login, hash_password(credentials.password))
    except UserAlreadyExistsError:
        logger.warning("Registration failed: login taken", login=credentials.login, request_id=request_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Login '{credentials.login}' is already taken"
        )

    log_business_event(
        event_type="user_registered",
        details={"login": user.login},
        user_id=user.id,
        request_id=request_id
    )
    log_performance(
        operation="register_user",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"user_id": user.id}
    )
    return _token_response(user, response)

@router.post(
    "/login",
    response_model=TokenRead,
    summary="Log in",
    description="Exchange login and password for the account's API key"
)
async def login(
    request: Request,
    response: Response,
    store: LedgerStore = Depends(get_ledger_store)
) -> TokenRead:
    request_id = getattr(request.state, "request_id", "unknown")
    credentials = await _read_credentials(request, request_id)

    user = await run_in_threadpool(store.get_user_by_login, credentials.login)
    if user is None or not verify_password(credentials.password, user.password_hash):
        logger.warning("Login failed: bad credentials", login=credentials.login, request_id=request_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login or password"
        )

    logger.info("User logged in", user_id=user.id, request_id=request_id)
    return _token_response(user, response)
