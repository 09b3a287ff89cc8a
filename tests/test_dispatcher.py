"""Tests for the notification dispatcher and channels."""

import asyncio
from typing import List, Optional, Set

import aiohttp
import pytest

from safetrack.config.models import NotificationChannelType, NotificationConfig
from safetrack.detection.channels import (
    ConsoleChannel,
    EmailJSChannel,
    NotificationChannel,
    NotificationError,
)
from safetrack.detection.channels.email import build_template_params, render_subject
from safetrack.detection.dispatcher import (
    NotificationDispatcher,
    create_notification_channel,
    create_notification_dispatcher,
)

from tests.conftest import FIXED_NOW


class FakeChannel:
    """Channel that records sends and fails for selected alert ids."""

    name = "fake"

    def __init__(self, failing_ids: Optional[Set[str]] = None) -> None:
        self.failing_ids = failing_ids or set()
        self.sent: List[str] = []
        self.closed = False

    async def send(self, alert) -> None:
        if alert.id in self.failing_ids:
            raise NotificationError(f"EmailJS error: 400 rejected {alert.id}")
        self.sent.append(alert.id)

    async def close(self) -> None:
        self.closed = True


class FakeResponse:
    def __init__(self, status: int, body: str = "OK") -> None:
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        return None


class FakeSession:
    """Minimal stand-in for aiohttp.ClientSession.post."""

    def __init__(self, status: int = 200, body: str = "OK", error: Optional[Exception] = None):
        self.status = status
        self.body = body
        self.error = error
        self.closed = False
        self.requests = []

    def post(self, url, json=None):
        self.requests.append((url, json))
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status, self.body)

    async def close(self) -> None:
        self.closed = True


class TestSendAlert:
    """Test single-alert delivery."""

    async def test_success_marks_email_sent(self, store, make_alert):
        """Test a delivered alert is flagged in the store."""
        alert = make_alert()
        store.submit(alert)
        dispatcher = NotificationDispatcher(store, FakeChannel(), send_delay_seconds=0)

        result = await dispatcher.send_alert(alert)

        assert result.success is True
        assert result.recorded is True
        assert store.get(alert.id).email_sent is True

    async def test_failure_leaves_alert_pending(self, store, make_alert):
        """Test a failed send returns the error and does not flag the alert."""
        alert = make_alert()
        store.submit(alert)
        dispatcher = NotificationDispatcher(
            store, FakeChannel(failing_ids={alert.id}), send_delay_seconds=0
        )

        result = await dispatcher.send_alert(alert)

        assert result.success is False
        assert "400" in result.error
        assert store.get(alert.id).email_sent is False

    async def test_send_by_unknown_id(self, store):
        """Test an unknown id returns None."""
        dispatcher = NotificationDispatcher(store, FakeChannel(), send_delay_seconds=0)
        assert await dispatcher.send_alert_by_id("missing") is None


class TestSendPending:
    """Test bulk delivery."""

    async def test_continues_past_failures(self, store, make_alert):
        """Test one failing alert does not stop the rest."""
        alerts = [make_alert(id=f"band-{i}") for i in range(3)]
        for alert in alerts:
            store.submit(alert)
        channel = FakeChannel(failing_ids={alerts[1].id})
        dispatcher = NotificationDispatcher(store, channel, send_delay_seconds=0)

        result = await dispatcher.send_pending()

        assert result.attempted == 3
        assert result.succeeded == 2
        assert result.failed == 1
        assert len(channel.sent) == 2
        pending = [a.id for a in store.list_active() if not a.email_sent]
        assert pending == [alerts[1].id]

    async def test_skips_already_sent(self, store, make_alert):
        """Test alerts already emailed are not resent."""
        sent = make_alert(id="band-1")
        store.submit(sent)
        store.submit(make_alert(id="band-2"))
        store.mark_email_sent(sent.id)
        channel = FakeChannel()

        result = await NotificationDispatcher(store, channel, send_delay_seconds=0).send_pending()

        assert result.attempted == 1
        assert sent.id not in channel.sent

    async def test_nothing_pending(self, store):
        """Test an empty store sends nothing."""
        result = await NotificationDispatcher(store, FakeChannel()).send_pending()
        assert result.attempted == 0
        assert result.results == []

    async def test_pauses_between_sends(self, store, make_alert, monkeypatch):
        """Test the delay is applied between sends but not before the first."""
        for i in range(3):
            store.submit(make_alert(id=f"band-{i}"))
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        await NotificationDispatcher(store, FakeChannel(), send_delay_seconds=0.5).send_pending()

        assert delays == [0.5, 0.5]

    async def test_close_closes_channel(self, store):
        """Test closing the dispatcher closes its channel."""
        channel = FakeChannel()
        await NotificationDispatcher(store, channel).close()
        assert channel.closed is True


class TestEmailJSChannel:
    """Test the EmailJS channel."""

    def make_channel(self, session, private_key=None) -> EmailJSChannel:
        return EmailJSChannel(
            service_id="service_1",
            template_id="template_1",
            public_key="public_1",
            recipient="ops@example.com",
            private_key=private_key,
            session=session,
            clock=lambda: FIXED_NOW,
        )

    async def test_posts_payload(self, make_alert):
        """Test the request body carries the ids and template params."""
        session = FakeSession()
        channel = self.make_channel(session, private_key="secret")
        alert = make_alert()

        await channel.send(alert)

        url, payload = session.requests[0]
        assert url == "https://api.emailjs.com/api/v1.0/email/send"
        assert payload["service_id"] == "service_1"
        assert payload["template_id"] == "template_1"
        assert payload["user_id"] == "public_1"
        assert payload["accessToken"] == "secret"
        assert payload["template_params"]["to_email"] == "ops@example.com"
        assert payload["template_params"]["device_id"] == alert.device_id

    async def test_non_200_raises(self, make_alert):
        """Test a rejected request raises NotificationError."""
        channel = self.make_channel(FakeSession(status=400, body="Bad template"))
        with pytest.raises(NotificationError, match="400"):
            await channel.send(make_alert())

    async def test_transport_error_raises(self, make_alert):
        """Test connection errors are wrapped."""
        channel = self.make_channel(FakeSession(error=aiohttp.ClientError("refused")))
        with pytest.raises(NotificationError, match="refused"):
            await channel.send(make_alert())

    async def test_timeout_raises(self, make_alert):
        """Test timeouts are wrapped."""
        channel = self.make_channel(FakeSession(error=asyncio.TimeoutError()))
        with pytest.raises(NotificationError, match="timeout"):
            await channel.send(make_alert())

    async def test_injected_session_is_not_closed(self):
        """Test the channel leaves a caller-owned session open."""
        session = FakeSession()
        await self.make_channel(session).close()
        assert session.closed is False

    def test_template_params(self, make_alert):
        """Test the rendered subject and labels."""
        alert = make_alert(id="band-7", panicstatus=False, fallstatus=True)
        params = build_template_params(alert, "ops@example.com", "2024-06-01T12:00:00.000Z")

        assert len(params) == 12
        assert params["subject"] == "🚨 CRITICAL ALERT: FALL Detected - Device band-7"
        assert params["alert_type"] == "⚠️ FALL ALERT"
        assert params["priority"] == "MEDIUM"
        assert "band-7" in params["html_content"]
        assert "Generated at: 2024-06-01T12:00:00.000Z" in params["text_content"]

    def test_panic_subject(self, make_alert):
        """Test PANIC alerts are high priority."""
        alert = make_alert(id="band-7")
        assert render_subject(alert) == "🚨 CRITICAL ALERT: PANIC Detected - Device band-7"


class TestChannelFactory:
    """Test channel selection from configuration."""

    def test_unconfigured_email_falls_back_to_console(self):
        """Test missing EmailJS ids select the console channel."""
        channel = create_notification_channel(NotificationConfig())
        assert isinstance(channel, ConsoleChannel)
        assert isinstance(channel, NotificationChannel)

    def test_configured_email(self):
        """Test complete EmailJS ids select the email channel."""
        config = NotificationConfig(
            service_id="s",
            template_id="t",
            public_key="p",
            recipient="ops@example.com",
        )
        assert isinstance(create_notification_channel(config), EmailJSChannel)

    def test_console_requested(self):
        """Test the console channel can be selected explicitly."""
        config = NotificationConfig(channel=NotificationChannelType.CONSOLE)
        assert isinstance(create_notification_channel(config), ConsoleChannel)

    async def test_console_dispatch(self, store, make_alert):
        """Test the console channel records deliveries."""
        alert = make_alert()
        store.submit(alert)
        dispatcher = create_notification_dispatcher(
            store, NotificationConfig(channel=NotificationChannelType.CONSOLE, send_delay_seconds=0)
        )

        result = await dispatcher.send_pending()

        assert result.succeeded == 1
        assert dispatcher.channel.sent == [alert.id]
