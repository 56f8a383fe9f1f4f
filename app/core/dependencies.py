import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core import config
from app.core.auth_utils import decode_token
from app.db.session import SessionLocal
from app.models.admin import Admin
from app.services.email import EmailSender, ResendEmailSender
from app.services.notifications import DbNotificationEmitter, NotificationEmitter
from app.utils.midtrans_client import MidtransGateway, PaymentGateway

security = HTTPBearer()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Admin:
    payload = decode_token(credentials.credentials)

    if payload["role"] != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admins only")

    admin = db.query(Admin).filter(Admin.email == payload["sub"]).first()
    if not admin:
        raise HTTPException(status_code=404, detail="Admin not found")

    return admin


def verify_cron_secret(credentials: HTTPAuthorizationCredentials = Depends(security)):
    expected = config.CRON_SECRET
    if not expected or not hmac.compare_digest(credentials.credentials, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


# ---------------- COLLABORATORS ----------------
_gateway: PaymentGateway | None = None
_email_sender: EmailSender | None = None


def get_gateway() -> PaymentGateway:
    global _gateway
    if _gateway is None:
        _gateway = MidtransGateway(
            server_key=config.MIDTRANS_SERVER_KEY,
            client_key=config.MIDTRANS_CLIENT_KEY,
            is_production=config.MIDTRANS_IS_PRODUCTION,
            timeout=config.MIDTRANS_TIMEOUT_SECONDS,
        )
    return _gateway


def get_email_sender() -> EmailSender:
    global _email_sender
    if _email_sender is None:
        _email_sender = ResendEmailSender()
    return _email_sender


def get_notifier(db: Session = Depends(get_db)) -> NotificationEmitter:
    return DbNotificationEmitter(db)
