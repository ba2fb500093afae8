"""Tests for notification templates, dispatcher and in-app sink."""

from unittest.mock import AsyncMock
from uuid import uuid4

import asyncpg
import pytest

from scorewatch.core.exceptions import DeliveryError
from scorewatch.monitoring.models import ChangeDirection, Subscriber, Tier
from scorewatch.notifications.dispatcher import Delivery, NotificationDispatcher
from scorewatch.notifications.in_app import InAppNotificationSink
from scorewatch.notifications.templates import (
    NotificationContext,
    NotificationKind,
    RenderedNotification,
    render_free,
    render_premium,
    select_template,
)


def make_context(**overrides: object) -> NotificationContext:
    defaults: dict[str, object] = {
        "company_id": 1,
        "ticker": "PETR4",
        "company_name": "Petrobras",
        "report_id": uuid4(),
        "report_url": "https://precojusto.ai/acao/petr4/relatorios/abc",
        "report_summary": "A" * 300 + "...",
        "direction": ChangeDirection.positive,
        "previous_score": 60.0,
        "current_score": 66.4,
    }
    defaults.update(overrides)
    return NotificationContext(**defaults)  # type: ignore[arg-type]


def make_subscriber(user_id: str, premium: bool) -> Subscriber:
    return Subscriber(user_id=user_id, email=f"{user_id}@example.com", is_premium=premium)


# =============================================================================
# Templates
# =============================================================================


class TestTemplates:
    """Tests for tier templates."""

    def test_select_template_by_tier(self) -> None:
        assert select_template(Tier.premium) is render_premium
        assert select_template(Tier.free) is render_free

    def test_select_template_custom_mapping(self) -> None:
        def custom(ctx: NotificationContext) -> RenderedNotification:
            return RenderedNotification(title="x", message="y", kind=NotificationKind.ai_report)

        assert select_template(Tier.free, {Tier.free: custom}) is custom

    def test_premium_improved(self) -> None:
        rendered = render_premium(make_context())

        assert rendered.kind == NotificationKind.asset_change
        assert rendered.title == "PETR4: overall score improved"
        assert "Score: 60.0 → 66.4." in rendered.message
        assert rendered.link == "https://precojusto.ai/acao/petr4/relatorios/abc"

    def test_premium_worsened(self) -> None:
        rendered = render_premium(make_context(direction=ChangeDirection.negative))

        assert rendered.title == "PETR4: overall score worsened"

    def test_premium_truncates_summary_to_200_chars(self) -> None:
        rendered = render_premium(make_context())

        assert rendered.message.endswith("A" * 200 + "...")
        assert "A" * 201 not in rendered.message

    def test_premium_metadata(self) -> None:
        ctx = make_context()
        rendered = render_premium(ctx)

        assert rendered.metadata["report_id"] == str(ctx.report_id)
        assert rendered.metadata["change_direction"] == "positive"
        assert rendered.metadata["previous_score"] == 60.0

    def test_free_has_no_score_detail(self) -> None:
        rendered = render_free(make_context())

        assert rendered.kind == NotificationKind.ai_report
        assert rendered.title == "Change detected in PETR4"
        assert "Upgrade to Premium" in rendered.message
        assert "60.0" not in rendered.message
        assert "AAAA" not in rendered.message
        assert rendered.metadata["report_type"] == "FREE_USER_ASSET_CHANGE"


# =============================================================================
# Dispatcher
# =============================================================================


class TestNotificationDispatcher:
    """Tests for NotificationDispatcher."""

    @pytest.mark.asyncio
    async def test_dispatch_empty(self) -> None:
        sink = AsyncMock()
        dispatcher = NotificationDispatcher(sink)

        result = await dispatcher.dispatch([])

        assert result.sent == 0
        assert result.failures == []
        sink.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dispatch_change_partitions_by_tier(self) -> None:
        sink = AsyncMock()
        dispatcher = NotificationDispatcher(sink)
        subscribers = [
            make_subscriber("p1", True),
            make_subscriber("f1", False),
            make_subscriber("p2", True),
        ]

        result = await dispatcher.dispatch_change(subscribers, make_context())

        assert result.sent == 3
        assert result.attempted == 3
        kinds = {
            call.args[0].user_id: call.args[1].kind for call in sink.deliver.await_args_list
        }
        assert kinds == {
            "p1": NotificationKind.asset_change,
            "p2": NotificationKind.asset_change,
            "f1": NotificationKind.ai_report,
        }

    @pytest.mark.asyncio
    async def test_failure_does_not_short_circuit(self) -> None:
        """3 premium + 2 free with one premium failure: all 5 attempted, 4 sent."""

        async def deliver(subscriber: Subscriber, notification: RenderedNotification) -> None:
            if subscriber.user_id == "p2":
                raise RuntimeError("connection reset")

        sink = AsyncMock()
        sink.deliver.side_effect = deliver
        dispatcher = NotificationDispatcher(sink)
        subscribers = [
            make_subscriber("p1", True),
            make_subscriber("p2", True),
            make_subscriber("p3", True),
            make_subscriber("f1", False),
            make_subscriber("f2", False),
        ]

        result = await dispatcher.dispatch_change(subscribers, make_context())

        assert sink.deliver.await_count == 5
        assert result.sent == 4
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.user_id == "p2"
        assert failure.email == "p2@example.com"
        assert failure.tier == Tier.premium
        assert failure.error == "connection reset"

    @pytest.mark.asyncio
    async def test_dispatch_uses_delivery_tier(self) -> None:
        """The template follows the delivery's tier, not the subscriber flag."""
        sink = AsyncMock()
        dispatcher = NotificationDispatcher(sink)

        await dispatcher.dispatch([Delivery(make_subscriber("u1", True), Tier.free, make_context())])

        notification = sink.deliver.await_args.args[1]
        assert notification.kind == NotificationKind.ai_report


# =============================================================================
# In-app sink
# =============================================================================


class TestInAppNotificationSink:
    """Tests for InAppNotificationSink."""

    @pytest.mark.asyncio
    async def test_inserts_and_queues_email(self) -> None:
        notification_id = uuid4()
        db = AsyncMock()
        db.insert_notification.return_value = notification_id
        db.get_email_notifications_enabled.return_value = True
        sink = InAppNotificationSink(db)
        rendered = render_premium(make_context())

        await sink.deliver(make_subscriber("u1", True), rendered)

        db.insert_notification.assert_awaited_once_with(
            user_id="u1",
            title=rendered.title,
            message=rendered.message,
            link=rendered.link,
            kind="ASSET_CHANGE",
            metadata=rendered.metadata,
        )
        db.enqueue_email.assert_awaited_once()
        kwargs = db.enqueue_email.await_args.kwargs
        assert kwargs["email"] == "u1@example.com"
        assert kwargs["notification_id"] == notification_id
        assert kwargs["subject"] == rendered.title

    @pytest.mark.asyncio
    async def test_skips_email_when_disabled(self) -> None:
        db = AsyncMock()
        db.insert_notification.return_value = uuid4()
        db.get_email_notifications_enabled.return_value = False
        sink = InAppNotificationSink(db)

        await sink.deliver(make_subscriber("u1", False), render_free(make_context()))

        db.insert_notification.assert_awaited_once()
        db.enqueue_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insert_failure_raises_delivery_error(self) -> None:
        db = AsyncMock()
        db.insert_notification.side_effect = OSError("db down")
        sink = InAppNotificationSink(db)

        with pytest.raises(DeliveryError, match="user u1 not stored: db down"):
            await sink.deliver(make_subscriber("u1", True), render_premium(make_context()))

        db.enqueue_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_email_queue_failure_keeps_notification(self) -> None:
        db = AsyncMock()
        db.insert_notification.return_value = uuid4()
        db.get_email_notifications_enabled.return_value = True
        db.enqueue_email.side_effect = asyncpg.PostgresError("connection reset")
        sink = InAppNotificationSink(db)

        await sink.deliver(make_subscriber("u1", True), render_premium(make_context()))

        db.insert_notification.assert_awaited_once()
        db.enqueue_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_preference_lookup_failure_keeps_notification(self) -> None:
        db = AsyncMock()
        db.insert_notification.return_value = uuid4()
        db.get_email_notifications_enabled.side_effect = OSError("db down")
        sink = InAppNotificationSink(db)

        await sink.deliver(make_subscriber("u1", False), render_free(make_context()))

        db.insert_notification.assert_awaited_once()
        db.enqueue_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stored_notification_counts_as_sent(self) -> None:
        """An email queue failure must not turn a stored notification into a failure."""
        db = AsyncMock()
        db.insert_notification.return_value = uuid4()
        db.get_email_notifications_enabled.return_value = True
        db.enqueue_email.side_effect = asyncpg.PostgresError("connection reset")
        dispatcher = NotificationDispatcher(InAppNotificationSink(db))

        result = await dispatcher.dispatch_change(
            [make_subscriber("p1", True), make_subscriber("f1", False)], make_context()
        )

        assert result.sent == 2
        assert result.failures == []
