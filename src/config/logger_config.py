import sys
from pathlib import Path

from loguru import logger

DEFAULT_LOG_DIR = Path("logs")


def configure_logging(
    verbose: bool = False,
    log_dir: str | Path = DEFAULT_LOG_DIR,
    level: str = "INFO",
) -> None:
    log_file = Path(log_dir) / "indexer_{time}.log"

    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    logger.add(
        log_file,
        rotation="256 MB",  # split files at 256MB
        retention="10 days",
        compression="zip",
        encoding="utf-8",
        level="DEBUG",
        enqueue=True,
    )


configure_logging()
