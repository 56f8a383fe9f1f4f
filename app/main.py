from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import admin, auth, bookings, emails, payments
from app.core.exceptions import register_exception_handlers
from app.core.logging_config import get_logger
import app.db.base  # noqa: F401  registers every model on the metadata

logger = get_logger()

app = FastAPI(
    title="Padel Court Booking API",
    version="1.0.0",
    description="API for court bookings, payments, session check-in and refunds"
)

register_exception_handlers(app)


# ⭐ Request Logging Middleware
@app.middleware("http")
async def log_requests(request, call_next):
    logger.info(f"REQUEST: {request.method} {request.url}")

    try:
        response = await call_next(request)
        logger.info(f"RESPONSE: {response.status_code} {request.url}")
        return response

    except Exception as e:
        logger.error(f"ERROR: {request.url} -> {str(e)}")
        raise e


# ⭐ CORS (important for frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -------- ROUTERS --------
app.include_router(auth.router)
app.include_router(bookings.router)
app.include_router(payments.router)
app.include_router(emails.router)
app.include_router(admin.router)


@app.get("/", tags=["Root"])
def root():
    return {"message": "Backend running successfully"}
