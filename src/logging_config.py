# src/logging_config.py
import logging
import sys

from src.settings import settings


def setup_logging():
    """
    Set up logging configuration for the application.
    """
    # Create a logger
    logger = logging.getLogger("internship_grading")
    logger.setLevel(settings.LOG_LEVEL)

    # Reloads (uvicorn --reload, test collection) must not stack handlers
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(settings.LOG_LEVEL)

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger


# Call the setup function to configure logging
app_logger = setup_logging()
