import logging
import sys

from payhook.utils.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - [%(levelname)s] - %(message)s"


def configure_logging(log_level: str | None = None) -> None:
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
