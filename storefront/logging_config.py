import logging
from pathlib import Path
from typing import Optional

from storefront.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure logging for the application.

    Reads LOG_LEVEL and LOG_FILE from settings unless overridden. A file
    handler is only added when a log file is configured.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    handlers = [logging.StreamHandler()]

    file_path = log_file if log_file is not None else settings.LOG_FILE
    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers, force=True)
