from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_db, get_email_sender, verify_cron_secret
from app.schemas.scheduler import ReminderSummaryOut
from app.services.email import EmailSender
from app.services.reminders import send_due_reminders

router = APIRouter(prefix="/emails", tags=["Emails"])


# =====================================================================
# REMINDER SWEEP (cron)
# =====================================================================
@router.post("/send-reminders", response_model=ReminderSummaryOut, dependencies=[Depends(verify_cron_secret)])
def send_reminders(
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_email_sender),
):
    return send_due_reminders(db, mailer).as_dict()
