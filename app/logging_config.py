import logging
import sys

from app.config import settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once for the backend process.

    Existing root handlers are replaced so repeated calls (reloads, tests)
    never duplicate output.
    """
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    logging.root.setLevel(str(level or settings.log_level or "INFO").upper())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logging.root.addHandler(console_handler)

    logging.captureWarnings(True)
