import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
NOISY_LOGGERS = ('uvicorn', 'sqlalchemy', 'urllib3', 'PIL', 'multipart')


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Route all guestpass logging to stdout and, when configured, a rotating file"""
    level = level.upper()
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        try:
            handlers.append(RotatingFileHandler(log_file, maxBytes=10485760, backupCount=5))  # 10MB
        except OSError as e:
            # Unwritable log path; keep console logging
            print(f"Could not open log file {log_file}: {e}", file=sys.stderr)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
