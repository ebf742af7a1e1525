"""
FILE DESCRIPTION: Foundational module for global configuration and logging.
KEY FUNCTIONS/CLASSES: setup_logger, CompanyFormatter
"""

import logging
import os
import sys
from datetime import datetime

from dotenv import load_dotenv

# === CONFIGURATION SECTION ===

# Load .env (if any) before reading settings
load_dotenv()

# Network timeout for HTTP requests (seconds)
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", 10))

USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/58.0.3029.110 Safari/537.3",
)

# Buffer size of the crawler -> supervisor channel. Tune with the peak
# reported in the run summary.
CHANNEL_CAPACITY = int(os.getenv("CHANNEL_CAPACITY", 5))

# "dfs" pops the most recently discovered link first, "bfs" the oldest
TRAVERSAL_ORDER = os.getenv("TRAVERSAL_ORDER", "dfs").lower()

RESULTS_DIR = os.getenv("RESULTS_DIR", "results")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# How often blocked sends / the supervisor wait re-check for closure and cancellation
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", 0.1))


# === LOGGING SECTION ===

class CompanyFormatter(logging.Formatter):
    """
    FLOW: Receives a log record -> Extracts timestamp -> Formats according to company standard
    (e.g., [ Tue Jan 06 05:32:41 AM UTC 2026 ]) -> Prepends level and context -> Returns final string.
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        context = getattr(record, 'context', 'root')
        message = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logger(name="crawler", log_file=None, level=None):
    """
    FLOW: Initializes/Retrieves logger -> Checks for existing handlers to prevent duplicates ->
    Sets propagation for child loggers -> Attaches Console and optional File handlers with CompanyFormatter.
    """
    if level is None:
        level = getattr(logging, LOG_LEVEL, logging.INFO)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if name != "crawler":
        logger.propagate = True
        setup_logger("crawler", log_file=log_file, level=level)
        return logger

    formatter = CompanyFormatter()

    if not any(getattr(h, "_crawler_console", False) for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler._crawler_console = True
        logger.addHandler(console_handler)

    # File handler (optional); only one per path
    if log_file:
        target = os.path.abspath(log_file)
        if not any(getattr(h, "baseFilename", None) == target for h in logger.handlers):
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


# Global logger instance
logger = setup_logger()
