"""Notification dispatcher: renders per tier and fans out to the sink."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from scorewatch.core.logging import get_logger
from scorewatch.monitoring.models import Subscriber, Tier
from scorewatch.notifications.templates import (
    DEFAULT_TEMPLATES,
    NotificationContext,
    RenderedNotification,
    Template,
    select_template,
)

logger = get_logger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """Where rendered notifications end up (in-app table, email, ...)."""

    async def deliver(self, subscriber: Subscriber, notification: RenderedNotification) -> None:
        """Deliver one notification. Raises on failure."""
        ...


@dataclass(frozen=True)
class Delivery:
    subscriber: Subscriber
    tier: Tier
    context: NotificationContext


@dataclass(frozen=True)
class DeliveryFailure:
    user_id: str
    email: str
    tier: Tier
    error: str


@dataclass
class DispatchResult:
    sent: int = 0
    failures: list[DeliveryFailure] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.sent + len(self.failures)


class NotificationDispatcher:
    """Delivers one change to every subscriber, isolating per-recipient failures.

    Every delivery is attempted concurrently; a failing recipient is recorded
    in the result and never prevents the others.
    """

    def __init__(
        self,
        sink: NotificationSink,
        templates: Mapping[Tier, Template] = DEFAULT_TEMPLATES,
    ) -> None:
        self._sink = sink
        self._templates = templates

    async def _deliver(self, delivery: Delivery) -> None:
        template = select_template(delivery.tier, self._templates)
        notification = template(delivery.context)
        await self._sink.deliver(delivery.subscriber, notification)

    async def dispatch(self, deliveries: Sequence[Delivery]) -> DispatchResult:
        """Attempt every delivery and report successes and failures."""
        result = DispatchResult()
        if not deliveries:
            return result

        outcomes = await asyncio.gather(
            *[self._deliver(d) for d in deliveries],
            return_exceptions=True,
        )
        for delivery, outcome in zip(deliveries, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Notification delivery failed",
                    ticker=delivery.context.ticker,
                    user_id=delivery.subscriber.user_id,
                    tier=delivery.tier.value,
                    error=str(outcome),
                )
                result.failures.append(
                    DeliveryFailure(
                        user_id=delivery.subscriber.user_id,
                        email=delivery.subscriber.email,
                        tier=delivery.tier,
                        error=str(outcome),
                    )
                )
            else:
                result.sent += 1
        return result

    async def dispatch_change(
        self,
        subscribers: Sequence[Subscriber],
        context: NotificationContext,
    ) -> DispatchResult:
        """Partition subscribers by tier and dispatch one change to all of them."""
        premium = [s for s in subscribers if s.tier == Tier.premium]
        free = [s for s in subscribers if s.tier == Tier.free]
        logger.debug(
            "Dispatching change notifications",
            ticker=context.ticker,
            premium=len(premium),
            free=len(free),
        )

        deliveries = [Delivery(s, Tier.premium, context) for s in premium]
        deliveries += [Delivery(s, Tier.free, context) for s in free]
        result = await self.dispatch(deliveries)

        logger.info(
            "Change notifications dispatched",
            ticker=context.ticker,
            sent=result.sent,
            failed=len(result.failures),
        )
        return result
