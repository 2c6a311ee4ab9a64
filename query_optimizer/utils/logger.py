"""
Logging configuration for the query optimizer.
Sets up console and optional file logging with appropriate formatting.
"""
import logging
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = 'query_optimizer'


def setup_logger(level: Union[int, str] = logging.INFO, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure logging with console and file handlers."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Reconfiguring replaces earlier handlers instead of stacking them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter('%(message)s'))
    logger.addHandler(console)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        logger.addHandler(file_handler)

    return logger
