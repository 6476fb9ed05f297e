"""Account balance lookup against the OpenAI billing dashboard endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from openai import AsyncOpenAI

LOGGER = logging.getLogger(__name__)

CREDIT_GRANTS_PATH = "/dashboard/billing/credit_grants"


@dataclass
class Balance:
    total_granted: float
    total_used: float
    total_available: float
    effective_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


def _timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def parse_balance(payload: Dict[str, Any]) -> Balance:
    """Build a Balance from a ``credit_grants`` response body.

    The validity window comes from the first grant, when one is listed.

    Raises:
        ValueError: If the payload lacks the quota totals.
    """
    try:
        granted = float(payload["total_granted"])
        used = float(payload["total_used"])
        available = float(payload["total_available"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Unexpected balance payload: {payload!r}") from exc

    grants = (payload.get("grants") or {}).get("data") or []
    first = grants[0] if grants else {}
    return Balance(
        total_granted=granted,
        total_used=used,
        total_available=available,
        effective_at=_timestamp(first.get("effective_at")),
        expires_at=_timestamp(first.get("expires_at")),
    )


class BalanceService:
    """Query the remaining API quota of the configured key."""

    def __init__(self, client: AsyncOpenAI) -> None:
        if client is None:
            raise ValueError("OpenAI client is required.")
        self.client = client

    async def get_balance(self) -> Balance:
        try:
            response = await self.client.get(CREDIT_GRANTS_PATH, cast_to=httpx.Response)
            response.raise_for_status()
        except Exception as exc:
            LOGGER.error("Balance query failed: %s", exc)
            raise
        return parse_balance(response.json())
