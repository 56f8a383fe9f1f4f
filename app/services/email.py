"""Customer emails sent through Resend.

Senders are best-effort: every public method logs and returns ``False`` on
failure instead of raising into the booking flow.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import resend
from jinja2 import Environment, FileSystemLoader

from app.core import config
from app.core.logging_config import get_logger
from app.utils.pricing import format_idr

logger = get_logger("notification")

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def build_template_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["idr"] = format_idr
    return env


templates = build_template_env()


def render_email(name: str, data) -> str:
    template = templates.get_template(f"email/{name}.html")
    return template.render(data=data, site_url=config.SITE_URL)


@dataclass
class BookingEmailData:
    customer_name: str
    customer_email: str
    booking_ref: str
    court_name: str
    date: str
    time: str
    total_amount: int = 0
    number_of_players: int = 0
    require_deposit: bool = False
    deposit_amount: int = 0
    remaining_balance: int = 0
    payment_method: str | None = None
    venue_payment_received: bool = False


@dataclass
class RefundEmailData:
    customer_name: str
    customer_email: str
    booking_ref: str
    court_name: str
    date: str
    time: str
    original_amount: int
    refund_amount: int
    refund_method: str | None = None
    reason: str | None = None
    refund_eligible: bool = True
    hours_before_booking: float | None = None


class EmailSender(Protocol):
    def send_confirmation(self, data: BookingEmailData) -> bool: ...

    def send_reminder(self, data: BookingEmailData) -> bool: ...

    def send_refund_notice(self, data: RefundEmailData) -> bool: ...

    def send_cancellation_notice(self, data: RefundEmailData) -> bool: ...


def booking_email_data(booking) -> BookingEmailData:
    return BookingEmailData(
        customer_name=booking.customer_name,
        customer_email=booking.customer_email,
        booking_ref=booking.booking_ref,
        court_name=booking.court.name if booking.court else "",
        date=booking.date.strftime("%A, %d %B %Y"),
        time=booking.time,
        total_amount=booking.total_amount,
        number_of_players=booking.number_of_players,
        require_deposit=booking.require_deposit,
        deposit_amount=booking.deposit_amount,
        remaining_balance=booking.remaining_balance,
        payment_method=booking.payment_method,
        venue_payment_received=booking.venue_payment_received,
    )


def refund_email_data(booking, refund_amount: int, reason: str | None,
                      refund_method: str | None = None, hours_before: float | None = None) -> RefundEmailData:
    return RefundEmailData(
        customer_name=booking.customer_name,
        customer_email=booking.customer_email,
        booking_ref=booking.booking_ref,
        court_name=booking.court.name if booking.court else "",
        date=booking.date.strftime("%A, %d %B %Y"),
        time=booking.time,
        original_amount=booking.subtotal,
        refund_amount=refund_amount,
        refund_method=refund_method,
        reason=reason,
        refund_eligible=refund_amount > 0,
        hours_before_booking=hours_before,
    )


class ResendEmailSender:
    def __init__(self, api_key: str | None = None, sender: str | None = None):
        resend.api_key = api_key or config.RESEND_API_KEY
        self.sender = sender or config.EMAIL_FROM

    def _recipient(self, customer_email: str):
        if config.IS_PRODUCTION:
            return customer_email
        return config.EMAIL_TEST_RECIPIENT

    def _send(self, kind: str, subject: str, data) -> bool:
        recipient = self._recipient(data.customer_email)
        if not recipient:
            logger.error(f"No recipient for {kind} email ({subject})")
            return False
        try:
            result = resend.Emails.send({
                "from": self.sender,
                "to": [recipient],
                "subject": subject,
                "html": render_email(kind, data),
            })
            logger.info(f"{kind} email sent | {subject} | id={result.get('id') if result else None}")
            return True
        except Exception:
            # resend raises its own error types as well as requests errors
            logger.exception(f"Failed to send {kind} email ({subject})")
            return False

    def send_confirmation(self, data: BookingEmailData) -> bool:
        return self._send("confirmation", f"Booking Confirmed - {data.booking_ref}", data)

    def send_reminder(self, data: BookingEmailData) -> bool:
        return self._send("reminder", f"Booking Reminder - {data.booking_ref}", data)

    def send_refund_notice(self, data: RefundEmailData) -> bool:
        return self._send("refund", f"Refund Processed - {data.booking_ref}", data)

    def send_cancellation_notice(self, data: RefundEmailData) -> bool:
        return self._send("cancellation", f"Booking Cancelled - {data.booking_ref}", data)
