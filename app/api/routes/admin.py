from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_admin, get_db, get_email_sender, get_notifier
from app.core.exceptions import NotFoundError
from app.models.admin import Admin
from app.models.admin_notification import AdminNotification
from app.schemas.admin import NotificationOut
from app.schemas.booking import (
    AdminCancelRequest, BookingOut, RefundRequest, SessionNotes,
    VenuePaymentCreate, VenuePaymentOut,
)
from app.services import booking_actions
from app.services.booking_service import get_booking
from app.services.email import EmailSender
from app.services.notifications import NotificationEmitter

router = APIRouter(prefix="/admin", tags=["Admin"])


# ---------------------------------------------------------------------
# BOOKING DETAIL
# ---------------------------------------------------------------------
@router.get("/bookings/{booking_id}", response_model=BookingOut)
def booking_detail(booking_id: int, db: Session = Depends(get_db), admin: Admin = Depends(get_current_admin)):
    return get_booking(db, booking_id)


# =====================================================================
# SESSION ACTIONS
# =====================================================================
@router.post("/bookings/{booking_id}/check-in", response_model=BookingOut)
def check_in(
    booking_id: int,
    data: SessionNotes | None = None,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    return booking_actions.check_in(db, booking_id, notifier, notes=data.notes if data else None)


@router.post("/bookings/{booking_id}/check-out", response_model=BookingOut)
def check_out(
    booking_id: int,
    data: SessionNotes | None = None,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    return booking_actions.check_out(db, booking_id, notifier, notes=data.notes if data else None)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(
    booking_id: int,
    data: AdminCancelRequest | None = None,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    return booking_actions.admin_cancel(db, booking_id, notifier, reason=data.reason if data else None)


# =====================================================================
# MONEY
# =====================================================================
@router.post("/bookings/{booking_id}/refund", response_model=BookingOut)
def refund_booking(
    booking_id: int,
    data: RefundRequest,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
    notifier: NotificationEmitter = Depends(get_notifier),
    mailer: EmailSender = Depends(get_email_sender),
):
    return booking_actions.refund(
        db, booking_id, admin, data.refund_amount, data.refund_method, notifier, mailer,
        reason=data.reason, notes=data.notes,
    )


@router.post("/bookings/{booking_id}/venue-payment", response_model=VenuePaymentOut, status_code=201)
def venue_payment(
    booking_id: int,
    data: VenuePaymentCreate,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    return booking_actions.record_venue_payment(
        db, booking_id, admin, data.amount, data.payment_method, notifier, notes=data.notes
    )


@router.post("/bookings/{booking_id}/resend-confirmation")
def resend_confirmation(
    booking_id: int,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
    mailer: EmailSender = Depends(get_email_sender),
):
    sent = booking_actions.resend_confirmation(db, booking_id, mailer)
    return {"success": sent}


# =====================================================================
# NOTIFICATION FEED
# =====================================================================
@router.get("/notifications", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = False,
    limit: int = 50,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
):
    query = db.query(AdminNotification)
    if unread_only:
        query = query.filter(AdminNotification.read.is_(False))
    return query.order_by(AdminNotification.created_at.desc(), AdminNotification.id.desc()).limit(limit).all()


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
):
    notification = db.get(AdminNotification, notification_id)
    if not notification:
        raise NotFoundError("Notification not found")

    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification
