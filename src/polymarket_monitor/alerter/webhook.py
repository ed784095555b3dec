"""Webhook delivery with bounded retries and a backlog sweep.

Immediate delivery and the backlog sweep are independent: an alert that
fails its immediate send is next attempted by the following cycle's sweep,
and each failed sweep attempt moves it one step closer to exclusion.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from polymarket_monitor.alerter.formatter import build_payload
from polymarket_monitor.alerter.models import Alert
from polymarket_monitor.storage.repos import DEFAULT_PENDING_BATCH, MAX_ALERT_RETRIES, AlertRepository

if TYPE_CHECKING:
    from polymarket_monitor.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_TIMEOUT_MS = 5000
BASE_RETRY_DELAY_SECONDS = 1.0

SleepFn = Callable[[float], Awaitable[None]]


class WebhookDeliveryError(Exception):
    """Raised internally when one POST attempt does not succeed."""


@dataclass
class SweepResult:
    """Outcome of one backlog sweep."""

    attempted: int = 0
    sent: int = 0
    failed: int = 0


class WebhookDelivery:
    """POSTs alert envelopes to a single configured endpoint.

    Example:
        ```python
        delivery = WebhookDelivery(db, "https://example.com/hook")
        ok = await delivery.send_alert(alert)
        await delivery.process_pending_alerts()
        ```
    """

    def __init__(
        self,
        db: DatabaseManager,
        url: str,
        *,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        base_delay: float = BASE_RETRY_DELAY_SECONDS,
        stop_event: asyncio.Event | None = None,
        sleep: SleepFn | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the delivery service.

        Args:
            db: Database manager used by the backlog sweep.
            url: Webhook endpoint.
            retry_attempts: Attempts per send; at least one is always made.
            timeout_ms: Per-request timeout.
            base_delay: Backoff before retry ``n`` is ``base_delay * 2**n`` seconds.
            stop_event: When set, pending backoff waits end and the send gives up.
            sleep: Replacement for the backoff wait (used by tests).
            transport: Optional httpx transport (used by tests).
        """
        self._db = db
        self._url = url
        self._retry_attempts = retry_attempts
        self._base_delay = base_delay
        self._stop_event = stop_event
        self._sleep = sleep
        self._client = httpx.AsyncClient(timeout=timeout_ms / 1000, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, payload: dict[str, Any]) -> None:
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            raise WebhookDeliveryError(f"POST failed: {e!r}") from e
        if not response.is_success:
            raise WebhookDeliveryError(f"Webhook returned HTTP {response.status_code}")

    async def _backoff(self, delay: float) -> bool:
        """Wait ``delay`` seconds; return False if shutdown was requested meanwhile."""
        if self._sleep is not None:
            await self._sleep(delay)
        elif self._stop_event is not None:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except TimeoutError:
                pass
        else:
            await asyncio.sleep(delay)
        return not (self._stop_event is not None and self._stop_event.is_set())

    async def send_payload(self, payload: dict[str, Any]) -> bool:
        """POST ``payload`` with bounded retries. Never raises."""
        attempts = max(1, self._retry_attempts)
        for attempt in range(attempts):
            try:
                await self._post(payload)
                logger.debug("Webhook delivered on attempt %d", attempt + 1)
                return True
            except Exception as e:
                logger.warning("Webhook attempt %d/%d failed: %s", attempt + 1, attempts, e)
                if attempt == attempts - 1:
                    break
                delay = self._base_delay * (2**attempt)
                if not await self._backoff(delay):
                    logger.info("Shutdown requested; abandoning webhook retries")
                    break
        return False

    async def send_alert(self, alert: Alert) -> bool:
        """Send one alert envelope. Returns success, never raises."""
        return await self.send_payload(build_payload(alert))

    async def process_pending_alerts(
        self,
        *,
        limit: int = DEFAULT_PENDING_BATCH,
        created_before: datetime | None = None,
    ) -> SweepResult:
        """Replay stored, unsent alerts that still have retries left, oldest first.

        ``created_before`` keeps alerts from the current cycle out of the
        sweep, so their next attempt waits for the following cycle.
        """
        result = SweepResult()
        try:
            async with self._db.session() as session:
                pending = await AlertRepository(session).find_pending(limit=limit, created_before=created_before)
        except Exception as e:
            logger.error("Failed to load pending alerts: %s", e)
            return result

        if not pending:
            return result
        logger.info("Retrying %d pending alert(s)", len(pending))

        for stored in pending:
            result.attempted += 1
            delivered = await self.send_alert(stored.to_alert())
            try:
                async with self._db.session() as session:
                    repo = AlertRepository(session)
                    if delivered:
                        await repo.mark_sent(stored.id)
                    else:
                        await repo.increment_retry_count(stored.id)
            except Exception as e:
                logger.error("Failed to record delivery state of alert %s: %s", stored.id, e)
            if delivered:
                result.sent += 1
            else:
                result.failed += 1
                logger.warning(
                    "Alert %s still undelivered (retry %d of %d)",
                    stored.id,
                    stored.retry_count + 1,
                    MAX_ALERT_RETRIES,
                )
        return result
