"""
Inventory MRP Logging Configuration
Console plus rotating file logs for the application and its subsystems
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional
from .config import settings

MB = 1024 * 1024

CONSOLE_FORMAT = logging.Formatter(
    fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

FILE_FORMAT = logging.Formatter(
    fmt="%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(funcName)s() - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

# (logger, file, size in MB, backups); the inventory file is the movement trail
MODULE_LOGS = (
    ("inventory_mrp.inventory", "inventory.log", 5, 10),
    ("inventory_mrp.mrp", "mrp.log", 5, 3),
    ("inventory_mrp.database", "database.log", 5, 3),
    ("inventory_mrp.api", "api.log", 5, 5),
)


def _rotating_handler(path: Path, max_mb: int, backups: int,
                      level: int = logging.NOTSET) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_mb * MB, backupCount=backups, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(FILE_FORMAT)
    return handler


def _close_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    log_level: Optional[str] = None,
    log_to_file: Optional[bool] = None,
    log_to_console: bool = True
) -> logging.Logger:
    """
    Configure the "inventory_mrp" logger tree

    Args:
        log_level: Level name; defaults to settings.LOG_LEVEL
        log_to_file: Write rotating files under settings.LOG_DIR
            (defaults to settings.LOG_TO_FILE)
        log_to_console: Echo records to stdout

    Returns:
        The root application logger
    """
    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO)
    if log_to_file is None:
        log_to_file = settings.LOG_TO_FILE

    root = logging.getLogger("inventory_mrp")
    root.setLevel(level)
    _close_handlers(root)

    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.setFormatter(CONSOLE_FORMAT)
        root.addHandler(console)

    log_dir = settings.LOG_DIR if log_to_file else None
    if log_dir is not None:
        log_dir.mkdir(exist_ok=True, parents=True)
        root.addHandler(_rotating_handler(log_dir / settings.LOG_FILE, 10, 5, level))
        root.addHandler(_rotating_handler(log_dir / settings.ERROR_LOG_FILE, 5, 3, logging.ERROR))

    for name, filename, max_mb, backups in MODULE_LOGS:
        module_logger = logging.getLogger(name)
        module_logger.setLevel(level)
        _close_handlers(module_logger)
        if log_dir is not None:
            module_logger.addHandler(_rotating_handler(log_dir / filename, max_mb, backups))

    return root


def get_logger(name: str) -> logging.Logger:
    """Logger below the application root, e.g. get_logger("api")"""
    return logging.getLogger(f"inventory_mrp.{name}")


__all__ = [
    "setup_logging",
    "get_logger",
]
