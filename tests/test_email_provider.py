"""Tests for email provider selection and the Resend/SMTP senders."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from riskwatch.notifications.email_provider import (
    TYPE_HEADER,
    ConsoleProvider,
    EmailMessage,
    ResendProvider,
    SMTPProvider,
    get_email_provider,
)

SMTP_CONFIG = {
    "host": "smtp.acme.io",
    "port": 587,
    "username": "alerts",
    "password": "secret",
    "from_email": "alerts@acme.io",
}


@pytest.fixture
def message():
    return EmailMessage(
        to="pm@acme.io",
        content=("Project Deadline Risk", "<p>Scope locked</p>", "Scope locked"),
        notification_type="PM_DEADLINE_RISK",
    )


def mock_http_client(response):
    client_cls = MagicMock()
    client = client_cls.return_value.__aenter__.return_value
    client.post = AsyncMock(return_value=response)
    return client_cls, client


class TestFactory:

    def test_console_mode_wins(self):
        provider = get_email_provider(resend_api_key="re_key", smtp_config=SMTP_CONFIG, console_mode=True)
        assert isinstance(provider, ConsoleProvider)

    def test_resend_before_smtp(self):
        provider = get_email_provider(resend_api_key="re_key", smtp_config=SMTP_CONFIG)
        assert isinstance(provider, ResendProvider)

    def test_smtp(self):
        provider = get_email_provider(smtp_config=SMTP_CONFIG)
        assert isinstance(provider, SMTPProvider)
        assert provider.host == "smtp.acme.io"

    def test_console_fallback(self):
        assert isinstance(get_email_provider(), ConsoleProvider)


class TestResend:

    @pytest.mark.asyncio
    async def test_success(self, message):
        response = MagicMock(status_code=200)
        response.json.return_value = {"id": "re_123"}
        client_cls, client = mock_http_client(response)

        with patch("httpx.AsyncClient", client_cls):
            result = await ResendProvider("re_key", "alerts@acme.io").send(message)

        assert result.success is True
        assert result.message_id == "re_123"
        assert result.to == "pm@acme.io"
        assert result.notification_type == "PM_DEADLINE_RISK"
        assert result.provider == "resend"
        payload = client.post.call_args.kwargs["json"]
        assert payload["to"] == ["pm@acme.io"]
        assert payload["from"] == "alerts@acme.io"
        assert payload["subject"] == "Project Deadline Risk"
        assert payload["tags"] == [{"name": "notification_type", "value": "PM_DEADLINE_RISK"}]
        assert client.post.call_args.kwargs["headers"]["Authorization"] == "Bearer re_key"

    @pytest.mark.asyncio
    async def test_untyped_message_has_no_tags(self):
        response = MagicMock(status_code=200)
        response.json.return_value = {"id": "re_124"}
        client_cls, client = mock_http_client(response)
        message = EmailMessage(to="owner@acme.io", content=("Trial ending", "<p>Soon</p>", "Soon"))

        with patch("httpx.AsyncClient", client_cls):
            result = await ResendProvider("re_key", "alerts@acme.io").send(message)

        assert result.notification_type is None
        assert "tags" not in client.post.call_args.kwargs["json"]

    @pytest.mark.asyncio
    async def test_api_error(self, message):
        response = MagicMock(status_code=422, text="invalid from address")
        client_cls, _ = mock_http_client(response)

        with patch("httpx.AsyncClient", client_cls):
            result = await ResendProvider("re_key", "alerts@acme.io").send(message)

        assert result.success is False
        assert result.error == "invalid from address"
        assert result.to == "pm@acme.io"

    @pytest.mark.asyncio
    async def test_unconfigured(self, message):
        result = await ResendProvider("", "alerts@acme.io").send(message)
        assert result.success is False
        assert result.error == "Resend API key not configured"


class TestSMTP:

    @pytest.mark.asyncio
    async def test_sends_multipart(self, message):
        with patch("aiosmtplib.send", new_callable=AsyncMock) as send:
            result = await SMTPProvider(**SMTP_CONFIG).send(message)

        assert result.success is True
        assert result.provider == "smtp"
        sent, = send.call_args.args
        assert sent["To"] == "pm@acme.io"
        assert sent["From"] == "alerts@acme.io"
        assert sent[TYPE_HEADER] == "PM_DEADLINE_RISK"
        assert sent.is_multipart()
        assert send.call_args.kwargs["hostname"] == "smtp.acme.io"

    @pytest.mark.asyncio
    async def test_connection_failure(self, message):
        with patch("aiosmtplib.send", new_callable=AsyncMock, side_effect=OSError("connection refused")):
            result = await SMTPProvider(**SMTP_CONFIG).send(message)

        assert result.success is False
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_unconfigured(self, message):
        provider = SMTPProvider(host="smtp.acme.io", port=587, username="", password="", from_email="a@acme.io")
        result = await provider.send(message)
        assert result.success is False
        assert result.error == "SMTP relay not configured"


class TestConsole:

    @pytest.mark.asyncio
    async def test_logs_instead_of_sending(self, message, caplog):
        with caplog.at_level("INFO"):
            result = await ConsoleProvider().send(message)

        assert result.success is True
        assert result.provider == "console"
        assert "Scope locked" in caplog.text
