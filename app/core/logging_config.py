from loguru import logger
import os

from app.core.config import LOG_DIR

# Create folder if missing
if not os.path.exists(LOG_DIR):
    os.makedirs(LOG_DIR)

# Remove default handler
logger.remove()

# General application log
logger.add(
    f"{LOG_DIR}/app.log",
    rotation="1 week",
    retention="4 weeks",
    level="INFO",
    enqueue=True,
    format="{time} | {level} | {message}"
)


def _channel(log_type: str):
    return lambda record: record["extra"].get("log_type") == log_type


# One file per channel: bookings, payments, admin, scheduler, notifications
for _log_type, _file in (
    ("booking", "bookings.log"),
    ("payment", "payments.log"),
    ("admin", "admin.log"),
    ("scheduler", "scheduler.log"),
    ("notification", "notifications.log"),
):
    logger.add(
        f"{LOG_DIR}/{_file}",
        rotation="1 week",
        retention="4 weeks",
        level="INFO",
        enqueue=True,
        filter=_channel(_log_type),
        format="{time} | {level} | {message}"
    )

# Error logs
logger.add(
    f"{LOG_DIR}/errors.log",
    rotation="1 week",
    retention="8 weeks",
    level="ERROR",
    enqueue=True,
)


def get_logger(log_type: str | None = None):
    if log_type:
        return logger.bind(log_type=log_type)
    return logger
