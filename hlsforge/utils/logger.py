import logging
import sys
from pathlib import Path

# Global logger instance
_LOGGER = None

NO_BOLD = "\033[22m"
RESET = "\033[0m"


class InterceptHandler(logging.Handler):
    """Intercept standard logging records and route them to the hlsforge logger."""

    def __init__(self, prefix: str | None = None):
        super().__init__()
        self.prefix = prefix

    def emit(self, record: logging.LogRecord) -> None:
        logger = get_logger()
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        message = record.getMessage()
        if self.prefix is not None:
            message = f"[{self.prefix}] {message}"
        logger.opt(depth=depth, exception=record.exc_info).log(level, message)


def setup_logger(
    log_level: str = "info",
    log_file: Path | None = None,
    append: bool = False,
    tag: str | None = None,
):
    global _LOGGER

    # Format message with optional tag prefix
    tag_prefix = f"[{tag}] " if tag else ""
    message = "".join(
        [
            " <level>{level: >7}</level>",
            f" <level>{NO_BOLD}",
            f"{tag_prefix}{{message}}",
            f"{RESET}</level>",
        ]
    )
    time = "<dim>{time:HH:mm:ss}</dim>"
    if log_level.upper() != "DEBUG":
        debug = ""
    else:
        debug = "".join([f"<level>{NO_BOLD}", " [{file}::{line}]", f"{RESET}</level>"])
    format = time + message + debug

    # Modules keep the instance returned by get_logger() at import time, so a
    # second setup swaps the sinks of that instance instead of replacing it.
    if _LOGGER is not None:
        logger = _LOGGER
        logger.remove()
    else:
        # NOTE: hlsforge gets its own "module-level" logger instance so that third-party code cannot reconfigure it.
        # loguru does not publicly expose the logger class, hence the private import.
        from loguru._logger import Core as _Core
        from loguru._logger import Logger as _Logger

        logger = _Logger(
            core=_Core(),
            exception=None,
            depth=0,
            record=False,
            lazy=False,
            colors=False,
            raw=False,
            capture=True,
            patchers=[],
            extra={},
        )

    logger.add(sys.stderr, format=format, level=log_level.upper(), colorize=True)

    # If specified, install file handler
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if not append and log_file.exists():
            log_file.unlink()
        logger.add(log_file, format=format, level=log_level.upper(), colorize=False)

    # Set the global logger instance
    _LOGGER = logger

    return logger


def get_logger():
    global _LOGGER
    if _LOGGER is None:
        _LOGGER = setup_logger()
    return _LOGGER


def intercept_stdlib_logging(level: str = "info", prefix: str | None = None) -> None:
    """Route records of the ``hlsforge`` stdlib loggers into the loguru sinks."""
    stdlib_logger = logging.getLogger("hlsforge")
    stdlib_logger.handlers = [InterceptHandler(prefix)]
    stdlib_logger.setLevel(level.upper())
    stdlib_logger.propagate = False
