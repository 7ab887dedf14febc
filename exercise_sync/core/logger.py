"""Log sinks for the API process and its integration workers.

Push and pull jobs run on dispatcher worker threads, so every line carries
the thread name ("integration-worker_0", ...) and the structured context the
workers pass as keyword arguments (msel_id, step, policy, ...). The file sink
can write one JSON object per line for log shipping.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{thread.name}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level> {extra}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | {name}:{function}:{line} - {message} {extra}"


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    *,
    json_file: bool = False,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Replace loguru's default sink with the service sinks.

    Args:
        level: Minimum level for both sinks
        log_file: Optional file sink. Writes go through loguru's queue
            (enqueue=True) since many worker threads log at once.
        json_file: Serialize file records as JSON instead of FILE_FORMAT
        rotation: When the file sink rolls over
        retention: How long rolled files are kept
    """
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            serialize=json_file,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    logger.bind(log_file=log_file, json_file=json_file).info(f"Logger initialized with level={level}")
