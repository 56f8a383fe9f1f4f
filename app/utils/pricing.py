"""Deposit split, refund policy and gateway fee calculations.

Everything here is side-effect free; callers persist the results.
"""
from dataclasses import dataclass
from datetime import datetime

from app.core import config
from app.core.exceptions import ValidationError
from app.models.enums import PaymentChoice
from app.utils.time_window import session_window, hours_until


# ---------------------------------------------------------------------
# DEPOSIT SPLIT
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PaymentSplit:
    deposit_amount: int
    remaining_balance: int


def compute_payment_split(full_amount: int, deposit_percentage: int, choice) -> PaymentSplit:
    if full_amount <= 0:
        raise ValidationError("Full amount must be greater than 0")

    if choice != PaymentChoice.DEPOSIT:
        return PaymentSplit(deposit_amount=0, remaining_balance=0)

    if not 0 < deposit_percentage < 100:
        raise ValidationError("Deposit percentage must be between 1 and 99")

    deposit = round(full_amount * deposit_percentage / 100)
    return PaymentSplit(deposit_amount=deposit, remaining_balance=full_amount - deposit)


# ---------------------------------------------------------------------
# CUSTOMER CANCELLATION POLICY
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RefundPolicy:
    full_refund_hours: float = 24
    partial_refund_hours: float | None = None
    partial_refund_percentage: int = 50

    @classmethod
    def from_config(cls):
        return cls(
            full_refund_hours=config.REFUND_FULL_HOURS,
            partial_refund_hours=config.REFUND_PARTIAL_HOURS,
            partial_refund_percentage=config.REFUND_PARTIAL_PERCENTAGE,
        )

    def describe(self) -> str:
        if self.partial_refund_hours is None:
            return f">{self.full_refund_hours:g}hrs=full, otherwise none"
        return (
            f">{self.full_refund_hours:g}hrs=full, "
            f">{self.partial_refund_hours:g}hrs={self.partial_refund_percentage}%, otherwise none"
        )


@dataclass(frozen=True)
class RefundDecision:
    eligible: bool
    amount: int
    refund_type: str  # FULL / PARTIAL / NONE
    hours_until_start: float


def compute_cancellation_refund(booking, now: datetime, policy: RefundPolicy | None = None) -> RefundDecision:
    policy = policy or RefundPolicy.from_config()
    start, _ = session_window(booking.date, booking.time)
    hours = hours_until(start, now)

    if hours > policy.full_refund_hours:
        return RefundDecision(True, booking.total_amount, "FULL", hours)

    if policy.partial_refund_hours is not None and hours > policy.partial_refund_hours:
        amount = round(booking.total_amount * policy.partial_refund_percentage / 100)
        return RefundDecision(amount > 0, amount, "PARTIAL", hours)

    return RefundDecision(False, 0, "NONE", hours)


# ---------------------------------------------------------------------
# ADMIN REFUND
# ---------------------------------------------------------------------
def validate_admin_refund_amount(amount: int, total_amount: int) -> int:
    if amount is None or amount <= 0:
        raise ValidationError("Refund amount must be greater than 0")
    if amount > total_amount:
        raise ValidationError(f"Refund amount cannot exceed {format_idr(total_amount)}")
    return amount


# ---------------------------------------------------------------------
# GATEWAY FEES
# ---------------------------------------------------------------------
# method -> (flat fee, percentage)
PAYMENT_FEES = {
    "bank_transfer": (4000, 0),
    "gopay": (0, 2),
    "shopeepay": (0, 2),
    "dana": (0, 1.5),
    "qris": (0, 0.7),
    "credit_card": (2000, 2.9),
}


# Gateway payment_type values billed like one of the methods above
PAYMENT_FEE_ALIASES = {
    "other_qris": "qris",
    "echannel": "bank_transfer",
    "permata_va": "bank_transfer",
    "bca_va": "bank_transfer",
    "bni_va": "bank_transfer",
    "bri_va": "bank_transfer",
    "cimb_va": "bank_transfer",
}


def calculate_payment_fee(amount: int, method: str | None) -> int:
    method = PAYMENT_FEE_ALIASES.get(method, method)
    if not method or method not in PAYMENT_FEES:
        return 0
    flat, percentage = PAYMENT_FEES[method]
    return round(amount * percentage / 100) + flat


def format_idr(amount: int) -> str:
    return "IDR " + f"{amount:,}".replace(",", ".")
