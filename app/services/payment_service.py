from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, PersistenceError
from app.core.logging_config import get_logger
from app.models.booking import Booking
from app.models.enums import PaymentRecordStatus, PaymentStatus
from app.models.payment import Payment
from app.services.booking_service import get_booking
from app.utils.midtrans_client import PaymentGateway

logger = get_logger("payment")


def build_item_details(booking: Booking) -> list[dict]:
    court_name = booking.court.name if booking.court else "Court"
    if booking.require_deposit:
        return [{
            "id": "court-booking-deposit",
            "price": booking.total_amount,
            "quantity": 1,
            "name": f"{court_name} - {booking.time} (Deposit)",
        }]

    items = [{
        "id": "court-booking",
        "price": booking.subtotal,
        "quantity": 1,
        "name": f"{court_name} - {booking.time}",
    }]
    if booking.payment_fee > 0:
        items.append({
            "id": "payment-fee",
            "price": booking.payment_fee,
            "quantity": 1,
            "name": "Payment Processing Fee",
        })
    return items


def start_payment(db: Session, booking_id: int, gateway: PaymentGateway) -> dict:
    booking = get_booking(db, booking_id)

    if booking.payment_status == PaymentStatus.PAID:
        raise ConflictError("Booking already paid", code="ALREADY_PAID")
    if booking.payment_status != PaymentStatus.PENDING:
        raise ConflictError(f"Booking is already {booking.payment_status.value}")

    # Raises GatewayError before anything is stored
    transaction = gateway.create_transaction(
        booking.order_id,
        booking.total_amount,
        build_item_details(booking),
        {
            "first_name": booking.customer_name,
            "email": booking.customer_email,
            "phone": booking.customer_phone,
        },
    )

    try:
        db.add(Payment(
            booking_id=booking.id,
            order_id=booking.order_id,
            amount=booking.total_amount,
            status=PaymentRecordStatus.PENDING,
            gateway_response=transaction,
        ))
        booking.payment_url = transaction["redirect_url"]
        booking.payment_token = transaction["token"]
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to store payment record for {booking.booking_ref}")
        raise PersistenceError("Failed to create payment")

    logger.info(
        f"Payment started | {booking.order_id} | amount={booking.total_amount} | "
        f"deposit={booking.require_deposit}"
    )
    return {
        "payment_url": transaction["redirect_url"],
        "token": transaction["token"],
        "order_id": booking.order_id,
    }
