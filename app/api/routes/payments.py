from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_db, get_email_sender, get_gateway, get_notifier
from app.core.exceptions import ValidationError
from app.models.enums import TERMINAL_PAYMENT_STATUSES
from app.schemas.payment import (
    CancelFailedRequest, CheckStatusRequest, PaymentCreate, PaymentCreated, ReconcileResult,
)
from app.services.email import EmailSender
from app.services.notifications import NotificationEmitter
from app.services.payment_reconciler import PaymentReconciler, ReconcileOutcome
from app.services.payment_service import start_payment
from app.utils.midtrans_client import PaymentGateway

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_reconciler(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    notifier: NotificationEmitter = Depends(get_notifier),
    mailer: EmailSender = Depends(get_email_sender),
) -> PaymentReconciler:
    return PaymentReconciler(db, gateway, notifier, mailer)


def _result(outcome: ReconcileOutcome) -> ReconcileResult:
    return ReconcileResult(
        booking_ref=outcome.booking.booking_ref,
        status=outcome.status,
        message=outcome.message,
        already_processed=not outcome.changed and outcome.status in TERMINAL_PAYMENT_STATUSES,
    )


# ---------------------------------------------------------------------
# CREATE PAYMENT
# ---------------------------------------------------------------------
@router.post("/create", response_model=PaymentCreated)
def create_payment(
    data: PaymentCreate,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return start_payment(db, data.booking_id, gateway)


# ---------------------------------------------------------------------
# WEBHOOK (gateway push)
# ---------------------------------------------------------------------
@router.post("/webhook")
def payment_webhook(payload: dict, reconciler: PaymentReconciler = Depends(get_reconciler)):
    if not payload.get("order_id"):
        raise ValidationError("Invalid notification payload")

    outcome = reconciler.handle_notification(payload)
    if outcome is None:
        # Acknowledged so the gateway stops retrying; the redirect poll settles it
        return {"success": True, "message": "Notification could not be verified"}

    return {"success": True, "status": outcome.status.value}


# ---------------------------------------------------------------------
# CHECK STATUS (redirect poll)
# ---------------------------------------------------------------------
@router.post("/check-status", response_model=ReconcileResult)
def check_status(data: CheckStatusRequest, reconciler: PaymentReconciler = Depends(get_reconciler)):
    return _result(reconciler.poll(data.booking_ref))


# ---------------------------------------------------------------------
# CANCEL FAILED (client-reported failure)
# ---------------------------------------------------------------------
@router.post("/cancel-failed", response_model=ReconcileResult)
def cancel_failed(data: CancelFailedRequest, reconciler: PaymentReconciler = Depends(get_reconciler)):
    return _result(reconciler.cancel_failed(data.booking_ref, data.status_code, data.reason))
