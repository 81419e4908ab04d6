"""HTTP client for the Decision Oracle's streaming "act" endpoint.

Each operation issues exactly one ``POST`` carrying ``{message,
actionControl}`` with the acting user's bearer token, reads the complete
Server-Sent-Events reply, reassembles the token deltas, parses the JSON and
normalizes it into a typed record.
"""

from __future__ import annotations

import asyncio
import time
from decimal import Decimal
from typing import Any

import httpx
import structlog

from haggle.domain.errors import OracleMalformedResponseError, OracleUnavailableError
from haggle.observability.metrics import ORACLE_CALLS
from haggle.oracle.models import (
    BuyerOpening,
    MarketCandidate,
    OracleDecision,
    Pick,
    normalize_decision,
    normalize_opening,
    normalize_picks,
)
from haggle.oracle.prompts import (
    buyer_counter_prompt,
    buyer_open_prompt,
    format_price,
    pick_prompt,
    seller_prompt,
)
from haggle.oracle.stream import assemble_stream, parse_payload
from haggle.resilience.retry import resilient_api_call

logger = structlog.get_logger()

ACT_STREAM_PATH = "/api/secondme/act/stream"


class OracleClient:
    """Decision Oracle client over ``httpx``.

    Transport failures (connection errors, timeouts, non-2xx status) are
    retried up to *max_attempts* times and then raised as
    ``OracleUnavailableError``.  Replies that arrive but cannot be parsed
    raise ``OracleMalformedResponseError`` without a retry.

    Args:
        base_url: Oracle API base URL (no trailing path).
        timeout: Budget for one attempt in seconds.  It bounds every read and
            also the whole request, so a stream that keeps trickling lines
            cannot outlive it.
        connect_timeout: Connect timeout in seconds.
        max_attempts: Attempts per call, including the first.
        http_client: Optional pre-built ``httpx.AsyncClient``; one is created
            (and owned) otherwise.
        retry_wait: Initial backoff and jitter bound between attempts in seconds.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        connect_timeout: float = 10.0,
        max_attempts: int = 3,
        http_client: httpx.AsyncClient | None = None,
        retry_wait: float = 1.0,
    ) -> None:
        self._url = base_url.rstrip("/") + ACT_STREAM_PATH
        self._total_timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            follow_redirects=True,
        )

        async def act(token: str, message: str, action_control: str, operation: str) -> str:
            return await self._act_once(token, message, action_control, operation)

        self._act = resilient_api_call(
            "decision_oracle",
            retry_on=OracleUnavailableError,
            attempts=max_attempts,
            initial_wait=retry_wait,
            jitter=retry_wait,
        )(act)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _act_once(self, token: str, message: str, action_control: str, operation: str) -> str:
        """Send one act request and return the reassembled answer text."""
        try:
            async with asyncio.timeout(self._total_timeout):
                return await self._stream_answer(token, message, action_control, operation)
        except TimeoutError as exc:
            raise OracleUnavailableError(
                f"Act API timeout after {self._total_timeout}s", operation
            ) from exc

    async def _stream_answer(
        self, token: str, message: str, action_control: str, operation: str
    ) -> str:
        try:
            async with self._http.stream(
                "POST",
                self._url,
                json={"message": message, "actionControl": action_control},
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                    "Accept": "text/event-stream",
                },
            ) as response:
                if response.status_code < 200 or response.status_code >= 300:
                    await response.aread()
                    raise OracleUnavailableError(
                        f"Act API error: {response.status_code}", operation
                    )
                return await assemble_stream(response.aiter_lines())
        except httpx.TimeoutException as exc:
            raise OracleUnavailableError(f"Act API timeout: {exc}", operation) from exc
        except httpx.HTTPError as exc:
            raise OracleUnavailableError(f"Act API unreachable: {exc}", operation) from exc

    async def _call(self, operation: str, token: str, message: str, action_control: str) -> Any:
        """Run one oracle operation end to end and return the parsed JSON value."""
        started = time.monotonic()
        try:
            text = await self._act(token, message, action_control, operation)
        except OracleUnavailableError:
            ORACLE_CALLS.labels(operation=operation, result="unavailable").inc()
            raise

        try:
            value = parse_payload(text)
        except ValueError as exc:
            ORACLE_CALLS.labels(operation=operation, result="malformed").inc()
            logger.warning(
                "oracle_reply_unparseable",
                operation=operation,
                payload_chars=len(text),
                error=str(exc),
            )
            raise OracleMalformedResponseError(str(exc), operation) from exc

        ORACLE_CALLS.labels(operation=operation, result="ok").inc()
        logger.debug(
            "oracle_call_completed",
            operation=operation,
            payload_chars=len(text),
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return value

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def decide_buyer_open(
        self,
        token: str,
        title: str,
        list_price: Decimal,
        min_price: Decimal | None = None,
    ) -> BuyerOpening:
        """Ask the buyer agent whether it wants the item and what to bid.

        ``min_price`` is the seller's secret and is never rendered
        into the buyer's prompt.
        """
        message, control = buyer_open_prompt(title, list_price)
        raw = await self._call("decide_buyer_open", token, message, control)
        return normalize_opening(raw, list_price, "decide_buyer_open")

    async def decide_seller(
        self,
        token: str,
        title: str,
        list_price: Decimal,
        min_price: Decimal | None,
        offer_price: Decimal,
    ) -> OracleDecision:
        """Ask the seller agent to accept, counter or reject *offer_price*."""
        message, control = seller_prompt(title, list_price, min_price, offer_price)
        raw = await self._call("decide_seller", token, message, control)
        return normalize_decision(raw, "decide_seller")

    async def decide_buyer_counter(
        self,
        token: str,
        title: str,
        list_price: Decimal,
        seller_counter_price: Decimal,
    ) -> OracleDecision:
        """Ask the buyer agent to answer the seller's counter-price."""
        message, control = buyer_counter_prompt(title, list_price, seller_counter_price)
        raw = await self._call("decide_buyer_counter", token, message, control)
        return normalize_decision(raw, "decide_buyer_counter")

    async def pick_interesting(
        self,
        token: str,
        candidates: list[MarketCandidate],
    ) -> list[Pick]:
        """Ask the buyer agent to shortlist listings worth negotiating on."""
        rendered = [
            {
                "id": c.id,
                "title": c.title,
                "price": format_price(c.price),
                "category": c.category,
                "condition": c.condition,
            }
            for c in candidates
        ]
        message, control = pick_prompt(rendered)
        raw = await self._call("pick_interesting", token, message, control)
        return normalize_picks(raw, "pick_interesting")
