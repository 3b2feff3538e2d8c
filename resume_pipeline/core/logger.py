import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
import sys
from typing import List, Optional

from .config import Settings, get_settings

LOGGER_NAME = "resume_pipeline"
DEFAULT_LOG_DIR = Path(__file__).parent / "logs"

SIMPLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(process)d | %(threadName)s | %(message)s"
ERROR_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(process)d | %(threadName)s | %(pathname)s:%(lineno)d | %(funcName)s | %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"

# access logs, model HTTP retries and SQL echo drown out pipeline transitions
NOISY_LOGGERS = ("uvicorn.access", "urllib3", "sqlalchemy.engine", "asyncio")


def build_handlers(log_dir: Path, console_level: str) -> List[logging.Handler]:
    """stdout at ``console_level``, plus daily-rotated all and error files"""
    log_dir.mkdir(parents=True, exist_ok=True)
    simple_formatter = logging.Formatter(SIMPLE_FORMAT, datefmt=DATEFMT)

    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setLevel(console_level.upper())
    console_handler.setFormatter(simple_formatter)

    file_all_handler = TimedRotatingFileHandler(
        filename=str(log_dir / "pipeline.log"), when="midnight", backupCount=14, encoding="utf8"
    )
    file_all_handler.setLevel(logging.INFO)
    file_all_handler.setFormatter(simple_formatter)

    file_error_handler = TimedRotatingFileHandler(
        filename=str(log_dir / "error.log"), when="midnight", backupCount=30, encoding="utf8"
    )
    file_error_handler.setLevel(logging.ERROR)
    file_error_handler.setFormatter(logging.Formatter(ERROR_FORMAT, datefmt=DATEFMT))

    return [console_handler, file_all_handler, file_error_handler]


def setup_logger(settings: Optional[Settings] = None, name: str = LOGGER_NAME) -> logging.Logger:
    """Configure ``name`` once from settings; later calls return it untouched"""
    settings = settings or get_settings()
    configured = logging.getLogger(name)
    configured.setLevel(logging.DEBUG)

    if not configured.handlers:
        log_dir = Path(settings.LOG_DIR) if settings.LOG_DIR else DEFAULT_LOG_DIR
        for handler in build_handlers(log_dir, settings.LOG_LEVEL):
            configured.addHandler(handler)

    configured.propagate = False

    for noisy_logger in NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)
    return configured


logger = setup_logger()
