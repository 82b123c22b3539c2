import logging
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(debug: bool = False, log_path: Optional[Path] = None, console: Optional[Console] = None) -> logging.Logger:
    """
    Setup logging configuration for autoenc.

    Console output goes through rich; a plain-text log file is added when
    log_path is given. Returns the configured logger instance.

    Args:
        debug: If True, enable DEBUG level logging (every watch, command and event)
        log_path: Optional path to a log file
        console: Optional rich Console for the console handler (stderr by default)
    """
    level = logging.DEBUG if debug else logging.INFO

    handlers: List[logging.Handler] = [
        RichHandler(
            console=console or Console(stderr=True),
            show_path=debug,
            rich_tracebacks=True,
            markup=False,
        )
    ]

    log_file = None
    if log_path:
        log_file = Path(log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format='%(message)s',
        datefmt='[%X]',
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    # watchdog is chatty at DEBUG; keep it at INFO unless something breaks
    logging.getLogger("watchdog").setLevel(logging.INFO)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: file={log_file or '-'} (debug={'ON' if debug else 'OFF'})")

    return logger
