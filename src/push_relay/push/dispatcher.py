"""Notification dispatcher — registry lookup + provider delivery per device.

Failures never raise out of the dispatcher: every call resolves to a
:class:`NotificationResult`, and fan-out collects one result per device
without letting one device's error affect the rest.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from push_relay.errors.relay_errors import PushError
from push_relay.push.provider import PushMessage

if TYPE_CHECKING:
    from collections.abc import Iterable

    from push_relay.metrics.collector import RelayMetrics
    from push_relay.push.provider import PushProvider, PushTicket
    from push_relay.registry.service import SubscriptionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPayload:
    """Formatted notification content."""

    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> PushMessage:
        return PushMessage(title=self.title, body=self.body, data=dict(self.data))


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of delivering one notification to one device."""

    success: bool
    ticket: PushTicket | None = None
    error: str | None = None

    @classmethod
    def failed(cls, error: str, ticket: PushTicket | None = None) -> NotificationResult:
        return cls(success=False, ticket=ticket, error=error)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.ticket is not None:
            out["ticket"] = self.ticket.to_dict()
        if self.error is not None:
            out["error"] = self.error
        return out


class NotificationDispatcher:
    """Delivers payloads to devices resolved through the registry."""

    def __init__(
        self,
        registry: SubscriptionRegistry,
        provider: PushProvider,
        *,
        timeout: float | None = 15.0,
        metrics: RelayMetrics | None = None,
    ) -> None:
        self._registry = registry
        self._provider = provider
        self._timeout = timeout
        self._metrics = metrics

    async def send_notification(
        self, device_token: str, payload: NotificationPayload
    ) -> NotificationResult:
        """Send *payload* to one device.

        Pre-flight failures (unknown device, no push token), provider errors,
        error tickets and timeouts all come back as ``success=False``.
        """
        result = await self._send(device_token, payload)
        if self._metrics is not None:
            self._metrics.record_notification(success=result.success)
        return result

    async def send_many(
        self, device_tokens: Iterable[str], payload: NotificationPayload
    ) -> dict[str, NotificationResult]:
        """Send *payload* to every device concurrently, one result per device."""
        tokens = list(dict.fromkeys(device_tokens))
        if not tokens:
            return {}
        outcomes = await asyncio.gather(
            *(self.send_notification(token, payload) for token in tokens),
            return_exceptions=True,
        )
        results: dict[str, NotificationResult] = {}
        for token, outcome in zip(tokens, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error("Unexpected error notifying device %s: %r", token, outcome)
                outcome = NotificationResult.failed(str(outcome) or type(outcome).__name__)
            results[token] = outcome
        return results

    async def broadcast(self, payload: NotificationPayload) -> dict[str, NotificationResult]:
        """Send *payload* to every subscribed device."""
        tokens = [sub.device_token for sub in self._registry.list_subscriptions()]
        results = await self.send_many(tokens, payload)
        failed = sum(1 for r in results.values() if not r.success)
        logger.info("Broadcast to %d devices (%d failed)", len(results), failed)
        return results

    async def _send(self, device_token: str, payload: NotificationPayload) -> NotificationResult:
        sub = self._registry.get_subscription(device_token)
        if sub is None:
            logger.warning("No subscription found for device %s", device_token)
            return NotificationResult.failed("No subscription found")
        if not sub.push_token:
            logger.warning("No Expo push token for device %s", device_token)
            return NotificationResult.failed("No Expo push token")

        tracker = self._metrics.track_send() if self._metrics is not None else nullcontext()
        try:
            with tracker:
                ticket = await self._deliver(sub.push_token, payload)
        except TimeoutError:
            logger.warning("Push to device %s timed out after %ss", device_token, self._timeout)
            return NotificationResult.failed("Push provider timed out")
        except PushError as exc:
            logger.warning("Push to device %s failed: %s", device_token, exc.message)
            return NotificationResult.failed(exc.message)

        if not ticket.is_ok:
            logger.warning("Provider rejected push to device %s: %s", device_token, ticket.message)
            return NotificationResult.failed(ticket.message or "Unknown error", ticket)

        logger.info("Notification sent to device %s (ticket %s)", device_token, ticket.id)
        return NotificationResult(success=True, ticket=ticket)

    async def _deliver(self, push_token: str, payload: NotificationPayload) -> PushTicket:
        return await asyncio.wait_for(
            self._provider.send(push_token, payload.to_message()),
            timeout=self._timeout,
        )
