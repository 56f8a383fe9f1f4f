from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


TERMINAL_PAYMENT_STATUSES = (PaymentStatus.PAID, PaymentStatus.CANCELLED, PaymentStatus.REFUNDED)


class SessionStatus(str, Enum):
    UPCOMING = "UPCOMING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentChoice(str, Enum):
    FULL = "FULL"
    DEPOSIT = "DEPOSIT"


class RefundStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class PaymentRecordStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class NotificationType(str, Enum):
    NEW_BOOKING = "NEW_BOOKING"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    CANCELLATION = "CANCELLATION"
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_COMPLETED = "SESSION_COMPLETED"
    REFUND_PROCESSED = "REFUND_PROCESSED"
