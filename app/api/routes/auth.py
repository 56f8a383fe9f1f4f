from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_admin, get_db
from app.core.jwt import create_access_token
from app.core.logging_config import get_logger
from app.core.security import verify_password
from app.models.admin import Admin
from app.services.admin_accounts import create_admin
from app.schemas.admin import AdminCreate, AdminLogin

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = get_logger("admin")


# =====================================================================
#                           ADMIN REGISTER
# =====================================================================
# The first admin is created with `python -m app.create_admin`.
@router.post("/admin/register", status_code=201)
def admin_register(
    data: AdminCreate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    create_admin(db, data.name, data.email, data.password, created_by=current_admin.email)
    return {"message": "Admin registered successfully"}


# =====================================================================
#                           ADMIN LOGIN
# =====================================================================
@router.post("/admin/login")
def admin_login(data: AdminLogin, db: Session = Depends(get_db)):
    admin = db.query(Admin).filter(Admin.email == data.email).first()

    if not admin or not verify_password(data.password, admin.password_hash):
        logger.warning(f"Failed admin login | {data.email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token({"sub": admin.email, "role": "admin"})

    return {
        "access_token": token,
        "role": "admin",
        "token_type": "bearer"
    }
