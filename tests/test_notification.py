import smtplib
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from apartment_admin.core.config import Settings
from apartment_admin.core.errors import NotificationError
from apartment_admin.services.notification_service import EmailNotifier


def make_booking(email="jane@example.com"):
    return SimpleNamespace(
        id=42,
        guest=SimpleNamespace(name="Jane Doe", email=email),
        apartment=SimpleNamespace(name="Sea View"),
        unit_no="1A",
        from_datetime=datetime(2030, 3, 1, 14, 0),
        to_datetime=datetime(2030, 3, 4, 11, 0),
        days=3,
        base_rate=Decimal("100.00"),
        multiplier=Decimal("1.00"),
        discount=Decimal("0.00"),
        subtotal=Decimal("300.00"),
        tax=Decimal("30.00"),
        grand_total=Decimal("330.00"),
        amount_paid=Decimal("0.00"),
        currency="USD",
    )


def email_settings(**overrides):
    values = dict(email_host="smtp.test", email_from="bookings@example.com")
    values.update(overrides)
    return Settings(**values)


def test_message_renders_both_parts():
    msg = EmailNotifier(email_settings()).build_message(make_booking())

    assert msg["To"] == "jane@example.com"
    assert msg["Bcc"] == "bookings@example.com"
    assert msg["Subject"] == "Booking Confirmation #42"
    text = msg.get_body(preferencelist=("plain",)).get_content()
    html = msg.get_body(preferencelist=("html",)).get_content()
    assert "USD 330.00" in text
    assert "Sea View" in html


@pytest.mark.asyncio
async def test_sends_through_transport():
    transport = MagicMock()
    notifier = EmailNotifier(email_settings(), transport=transport)

    await notifier.send_booking_confirmation(make_booking())

    transport.assert_called_once()
    sent = transport.call_args.args[0]
    assert sent["To"] == "jane@example.com"


@pytest.mark.asyncio
async def test_transport_failure_becomes_notification_error():
    transport = MagicMock(side_effect=smtplib.SMTPException("connection refused"))
    notifier = EmailNotifier(email_settings(), transport=transport)

    with pytest.raises(NotificationError):
        await notifier.send_booking_confirmation(make_booking())


@pytest.mark.asyncio
async def test_guest_without_email():
    notifier = EmailNotifier(email_settings(), transport=MagicMock())
    with pytest.raises(NotificationError):
        await notifier.send_booking_confirmation(make_booking(email=None))


@pytest.mark.asyncio
async def test_not_configured():
    notifier = EmailNotifier(email_settings(email_host=""))
    assert not notifier.enabled
    with pytest.raises(NotificationError):
        await notifier.send_booking_confirmation(make_booking())


@pytest.mark.asyncio
async def test_default_transport_uses_smtp():
    notifier = EmailNotifier(email_settings(email_user="user", email_pass="pass"))
    with patch("apartment_admin.services.notification_service.smtplib.SMTP") as smtp_cls:
        await notifier.send_booking_confirmation(make_booking())

    smtp = smtp_cls.return_value.__enter__.return_value
    smtp.starttls.assert_called_once()
    smtp.login.assert_called_once_with("user", "pass")
    smtp.send_message.assert_called_once()


@pytest.mark.asyncio
async def test_unexpected_transport_error_becomes_notification_error():
    transport = MagicMock(side_effect=RuntimeError("boom"))
    notifier = EmailNotifier(email_settings(), transport=transport)

    with pytest.raises(NotificationError):
        await notifier.send_booking_confirmation(make_booking())


@pytest.mark.asyncio
async def test_header_injection_becomes_notification_error():
    transport = MagicMock()
    notifier = EmailNotifier(email_settings(), transport=transport)

    with pytest.raises(NotificationError):
        await notifier.send_booking_confirmation(
            make_booking(email="jane@example.com\nBcc: x@evil.com")
        )
    transport.assert_not_called()
