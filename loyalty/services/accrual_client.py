"""Client for the external accrual calculation service.

One call to ``AccrualClient.fetch`` is exactly one ``GET /api/orders/{number}``
and yields one ``AccrualOutcome``. There are no retries here; retry, cooldown
and backoff policy belong to the reconciliation worker.

Outcome classification:
    200 -> Settled (body validated; accrual converted to minor units)
    204 -> NotFound (service does not know the order yet)
    429 -> RateLimited (retry_after from Retry-After header or body, if any)
    5xx -> ServiceUnavailable
    connection error / timeout / malformed body / anything else -> TransportFailure
"""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional, Union

import aiohttp
from pydantic import ValidationError

from loyalty import __version__
from loyalty.config import ACCRUAL_SETTINGS, ACCRUAL_SYSTEM_ADDRESS
from loyalty.models.db.enums import AccrualStatus
from loyalty.models.schemas.accrual import AccrualOrderResponse
from loyalty.utils import get_logger
from loyalty.utils.money import to_minor_units

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Settled:
    external_status: AccrualStatus
    amount: int | None = None  # minor units, PROCESSED only


@dataclass(frozen=True, slots=True)
class NotFound:
    pass


@dataclass(frozen=True, slots=True)
class RateLimited:
    retry_after: float | None = None  # seconds advertised by the service


@dataclass(frozen=True, slots=True)
class ServiceUnavailable:
    status_code: int


@dataclass(frozen=True, slots=True)
class TransportFailure:
    reason: str


AccrualOutcome = Union[Settled, NotFound, RateLimited, ServiceUnavailable, TransportFailure]


def normalize_base_url(address: str) -> str:
    """``:8080`` / ``localhost:8080`` -> ``http://localhost:8080`` (no trailing slash)."""
    address = address.strip()
    if "://" not in address:
        if address.startswith(":"):
            address = f"localhost{address}"
        address = f"http://{address}"
    return address.rstrip("/")


def parse_retry_after(header: Optional[str], body: str = "") -> float | None:
    """Seconds to wait from a Retry-After header (delta or HTTP date), else from the body.

    Body hints understood: a JSON object with ``retry_after`` / ``retryAfter``,
    or a bare number.
    """
    if header:
        header = header.strip()
        try:
            return max(0.0, float(header))
        except ValueError:
            pass
        try:
            when = parsedate_to_datetime(header)
        except (TypeError, ValueError):
            when = None
        if when is not None:
            if when.tzinfo is None:
                when = when.replace(tzinfo=timezone.utc)
            return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())

    text = (body or "").strip()
    if not text:
        return None
    try:
        payload: Any = json.loads(text)
    except ValueError:
        return None
    if isinstance(payload, (int, float)) and not isinstance(payload, bool):
        return max(0.0, float(payload))
    if isinstance(payload, dict):
        for key in ("retry_after", "retryAfter"):
            value = payload.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return max(0.0, float(value))
    return None


class AccrualClient:
    """Async client owning one pooled ``aiohttp.ClientSession``.

    Use as ``async with AccrualClient() as client`` or call ``close()``.
    An externally supplied session is not closed by the client.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = normalize_base_url(base_url or ACCRUAL_SYSTEM_ADDRESS)
        self.timeout_seconds = float(
            timeout_seconds if timeout_seconds is not None else ACCRUAL_SETTINGS["request_timeout_seconds"]
        )
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"User-Agent": f"loyalty-accrual-worker/{__version__}"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AccrualClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def fetch(self, order_number: str) -> AccrualOutcome:
        url = f"{self.base_url}/api/orders/{order_number}"
        session = self._get_session()
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)) as response:
                body = await response.text()
                return self._classify(order_number, response.status, response.headers.get("Retry-After"), body)
        except asyncio.TimeoutError:
            logger.warning("Accrual request timed out", order_number=order_number, timeout_seconds=self.timeout_seconds)
            return TransportFailure(reason="timeout")
        except aiohttp.ClientError as e:
            logger.warning("Accrual request failed", order_number=order_number, error=str(e), error_type=type(e).__name__)
            return TransportFailure(reason=f"{type(e).__name__}: {e}")
        except UnicodeDecodeError:
            logger.warning("Undecodable accrual response body", order_number=order_number)
            return TransportFailure(reason="malformed body")

    def _classify(self, order_number: str, status: int, retry_after_header: Optional[str], body: str) -> AccrualOutcome:
        if status == 200:
            try:
                parsed = AccrualOrderResponse.model_validate_json(body)
            except ValidationError as e:
                logger.warning("Malformed accrual response body", order_number=order_number, error=str(e))
                return TransportFailure(reason="malformed body")
            if parsed.order != order_number:
                logger.warning(
                    "Accrual response for a different order",
                    order_number=order_number,
                    response_order=parsed.order,
                )
                return TransportFailure(reason="order mismatch")
            amount = None
            if parsed.status == AccrualStatus.PROCESSED and parsed.accrual is not None:
                try:
                    amount = to_minor_units(parsed.accrual)
                except ValueError as e:
                    logger.warning(
                        "Accrual amount out of range",
                        order_number=order_number,
                        accrual=str(parsed.accrual),
                        error=str(e),
                    )
                    return TransportFailure(reason="malformed body")
            elif parsed.status == AccrualStatus.PROCESSED:
                amount = 0
            return Settled(external_status=parsed.status, amount=amount)
        if status == 204:
            return NotFound()
        if status == 429:
            retry_after = parse_retry_after(retry_after_header, body)
            logger.warning(
                "Accrual service rate limit hit",
                order_number=order_number,
                retry_after=retry_after,
                body=body[:200] or None,
            )
            return RateLimited(retry_after=retry_after)
        if 500 <= status < 600:
            logger.warning("Accrual service error", order_number=order_number, status_code=status)
            return ServiceUnavailable(status_code=status)
        logger.warning("Unexpected accrual response status", order_number=order_number, status_code=status)
        return TransportFailure(reason=f"unexpected status {status}")


__all__ = [
    "AccrualClient",
    "AccrualOutcome",
    "Settled",
    "NotFound",
    "RateLimited",
    "ServiceUnavailable",
    "TransportFailure",
    "normalize_base_url",
    "parse_retry_after",
]
