# ================== LOGURU LOGGER CONFIG =====================
import sys
import os
from loguru import logger

LOG_DIR = os.environ.get("LOG_DIR") or "logs"
os.makedirs(LOG_DIR, exist_ok=True)

log_format = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>tx:{extra[tx_ref]}</cyan> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

logger.remove()
logger = logger.patch(lambda record: record["extra"].setdefault("tx_ref", "-"))
logger.add(sys.stderr, colorize=True, format=log_format, level="INFO")
logger.add(
    os.path.join(LOG_DIR, "carrental_service.json"),
    rotation="100 MB",
    retention="10 days",
    compression="zip",
    serialize=True,
    level="DEBUG",
    enqueue=True,
    catch=True,
)
logger.add(
    os.path.join(LOG_DIR, "payment.log"),
    rotation="50 MB",
    retention="30 days",
    format=log_format,
    level="INFO",
    filter=lambda record: record["extra"].get("channel") == "payment",
    enqueue=True,
)


# ================== PAYMENT LOGGING =====================
def log_payment_message(message, tx_ref=None, level="INFO"):
    """Log a payment lifecycle event to the main sinks and payment.log."""
    logger.bind(channel="payment", tx_ref=tx_ref or "-").log(level, message)

