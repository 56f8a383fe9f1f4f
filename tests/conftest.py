import os
import tempfile

os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "padel-booking-test-logs"))
os.environ.pop("REDIS_URL", None)

from datetime import date, datetime, time, timedelta  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.config import VENUE_TIMEZONE  # noqa: E402
from app.core.dependencies import (  # noqa: E402
    get_current_admin, get_db, get_email_sender, get_gateway,
)
from app.core.exceptions import GatewayError, TransactionNotFoundError  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.admin import Admin  # noqa: E402
from app.models.booking import Booking  # noqa: E402
from app.models.court import Court  # noqa: E402
from app.models.enums import PaymentChoice, PaymentStatus, SessionStatus  # noqa: E402
from app.models.time_slot import TimeSlot  # noqa: E402
from app.services.notifications import DbNotificationEmitter  # noqa: E402
from app.utils.midtrans_client import GatewayStatus  # noqa: E402

VENUE_TZ = ZoneInfo(VENUE_TIMEZONE)
SESSION_DATE = date(2030, 6, 15)


def venue_time(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=VENUE_TZ)


# ---------------------------------------------------------------------
# COLLABORATOR FAKES
# ---------------------------------------------------------------------
class FakeGateway:
    """In-memory stand-in for the Snap API.

    ``statuses`` maps order id to the status the next query returns;
    ``errors`` maps order id to an exception to raise instead.
    """

    def __init__(self):
        self.created = []
        self.statuses = {}
        self.errors = {}
        self.fail_create = False
        self.reject_notifications = False
        self.query_calls = []

    def create_transaction(self, order_id, amount, items, customer):
        if self.fail_create:
            raise GatewayError("Payment gateway error")
        self.created.append({"order_id": order_id, "amount": amount, "items": items, "customer": customer})
        return {"redirect_url": f"https://pay.example/{order_id}", "token": f"tok-{order_id}"}

    def set_status(self, order_id, transaction_status, fraud_status=None, payment_type="bank_transfer"):
        self.statuses[order_id] = GatewayStatus(
            order_id=order_id,
            transaction_status=transaction_status,
            fraud_status=fraud_status,
            payment_type=payment_type,
            transaction_id=f"trx-{order_id}",
            raw={"order_id": order_id, "transaction_status": transaction_status},
        )

    def query_status(self, order_id):
        self.query_calls.append(order_id)
        if order_id in self.errors:
            raise self.errors[order_id]
        if order_id not in self.statuses:
            raise TransactionNotFoundError("Transaction not found")
        return self.statuses[order_id]

    def verify_notification(self, payload):
        if self.reject_notifications:
            raise GatewayError("Notification could not be verified")
        return GatewayStatus.from_response(payload)


class RecordingEmailSender:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def _record(self, kind, data):
        self.sent.append((kind, data))
        return self.succeed

    def send_confirmation(self, data):
        return self._record("confirmation", data)

    def send_reminder(self, data):
        return self._record("reminder", data)

    def send_refund_notice(self, data):
        return self._record("refund", data)

    def send_cancellation_notice(self, data):
        return self._record("cancellation", data)

    def kinds(self):
        return [kind for kind, _ in self.sent]


# ---------------------------------------------------------------------
# DATABASE
# ---------------------------------------------------------------------
@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notifier(db):
    return DbNotificationEmitter(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def mailer():
    return RecordingEmailSender()


# ---------------------------------------------------------------------
# FACTORIES
# ---------------------------------------------------------------------
@pytest.fixture
def court(db):
    court = Court(name="Court 1", description="Panoramic glass court")
    db.add(court)
    db.commit()
    db.refresh(court)
    return court


def make_slot(db, court, day=SESSION_DATE, start=time(18, 0), end=time(19, 0),
              price_per_person=100_000, available=True):
    slot = TimeSlot(
        court_id=court.id,
        date=day,
        time_start=start,
        time_end=end,
        period="EVENING",
        price_per_person=price_per_person,
        available=available,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


_ref_counter = {"value": 0}


def make_booking(db, slot, payment_status=PaymentStatus.PAID, session_status=SessionStatus.UPCOMING,
                 deposit=False, total_amount=400_000, **overrides):
    """Inserts a booking directly in the requested state."""
    _ref_counter["value"] += 1
    full_amount = total_amount
    values = dict(
        booking_ref=f"BAP{_ref_counter['value']:08d}",
        court_id=slot.court_id,
        time_slot_id=slot.id,
        date=slot.date,
        time=slot.label,
        customer_name="Budi Santoso",
        customer_email="budi@example.com",
        customer_phone="081234567890",
        number_of_players=4,
        subtotal=total_amount,
        payment_fee=0,
        total_amount=total_amount,
        full_amount=full_amount,
        deposit_amount=0,
        remaining_balance=0,
        payment_choice=PaymentChoice.FULL,
        require_deposit=False,
        payment_status=payment_status,
        session_status=session_status,
    )
    if deposit:
        half = full_amount // 2
        values.update(
            total_amount=half,
            deposit_amount=half,
            remaining_balance=full_amount - half,
            payment_choice=PaymentChoice.DEPOSIT,
            require_deposit=True,
        )
    values.update(overrides)

    booking = Booking(**values)
    db.add(booking)
    if payment_status != PaymentStatus.CANCELLED and session_status in (
        SessionStatus.UPCOMING, SessionStatus.IN_PROGRESS
    ):
        slot.available = False
    db.commit()
    db.refresh(booking)
    return booking


@pytest.fixture
def admin(db):
    admin = Admin(name="Venue Admin", email="admin@example.com", password_hash="not-used")
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


# ---------------------------------------------------------------------
# HTTP CLIENT
# ---------------------------------------------------------------------
@pytest.fixture
def client(session_factory, gateway, mailer):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_email_sender] = lambda: mailer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client, admin):
    app.dependency_overrides[get_current_admin] = lambda: admin
    return client


def upcoming_day(days: int = 3) -> date:
    return datetime.now(VENUE_TZ).date() + timedelta(days=days)
