"""Logging setup for CLI"""

import logging
import os

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(debug: bool = False, level: str = "warning", log_file: str = "mail_delegate_debug.log") -> None:
    """
    Configure root logging for a CLI run

    Args:
        debug: Log everything to the console and append to log_file
        level: Console level when debug is off
        log_file: Debug log path
    """
    root_logger = logging.getLogger()

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if not debug:
        root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
        return

    root_logger.setLevel(logging.DEBUG)
    console_handler.setLevel(logging.DEBUG)

    log_path = os.path.abspath(log_file)
    file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # httpx logs full URLs at INFO, including authorization codes
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Debug logging enabled - appending to {log_path}")
