from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError
from app.core.logging_config import get_logger
from app.core.security import hash_password
from app.models.admin import Admin

logger = get_logger("admin")


def create_admin(db: Session, name: str, email: str, password: str, created_by: str | None = None) -> Admin:
    if db.query(Admin).filter(Admin.email == email).first():
        raise ConflictError("Admin already exists", code="ADMIN_EXISTS")

    admin = Admin(name=name, email=email, password_hash=hash_password(password))
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info(f"Admin registered | {email} | by {created_by or 'cli'}")
    return admin
