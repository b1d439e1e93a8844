import asyncio
import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Callable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from apartment_admin.core.config import Settings
from apartment_admin.core.errors import NotificationError
from apartment_admin.models import Booking

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

Transport = Callable[[EmailMessage], None]


def _format_money(value, currency: str) -> str:
    return f"{currency} {value:,.2f}"


class EmailNotifier:
    """Sends booking confirmation emails rendered from Jinja2 templates."""

    def __init__(self, settings: Settings, transport: Optional[Transport] = None):
        self.settings = settings
        self._transport = transport
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["money"] = _format_money

    @property
    def enabled(self) -> bool:
        return self._transport is not None or bool(self.settings.email_host)

    def build_message(self, booking: Booking) -> EmailMessage:
        guest = booking.guest
        context = {
            "booking": booking,
            "guest": guest,
            "apartment": booking.apartment,
        }
        msg = EmailMessage()
        msg["Subject"] = f"Booking Confirmation #{booking.id}"
        msg["From"] = self.settings.email_from or self.settings.email_user
        msg["To"] = guest.email
        if self.settings.email_from:
            msg["Bcc"] = self.settings.email_from
        msg.set_content(self.env.get_template("email/booking_confirmation.txt").render(context))
        msg.add_alternative(
            self.env.get_template("email/booking_confirmation.html").render(context),
            subtype="html",
        )
        return msg

    def _smtp_send(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.settings.email_host, self.settings.email_port, timeout=30) as smtp:
            smtp.starttls()
            if self.settings.email_user:
                smtp.login(self.settings.email_user, self.settings.email_pass)
            smtp.send_message(msg)

    async def send_booking_confirmation(self, booking: Booking) -> None:
        """
        Raises NotificationError when the guest has no email or sending is not
        configured. Any failure while rendering or sending is raised as
        NotificationError too.
        """
        if not booking.guest or not booking.guest.email:
            raise NotificationError("Guest has no email address", booking_id=booking.id)
        if not self.enabled:
            raise NotificationError("Email sending is not configured", booking_id=booking.id)

        transport = self._transport or self._smtp_send
        try:
            msg = self.build_message(booking)
            # smtplib блокирующий, отправляем в отдельном потоке
            await asyncio.to_thread(transport, msg)
        except Exception as e:
            logger.error(f"Failed to send confirmation for booking {booking.id}: {e}")
            raise NotificationError("Failed to send confirmation email", booking_id=booking.id) from e

        logger.info(f"📧 Confirmation email sent for booking {booking.id} to {booking.guest.email}")
