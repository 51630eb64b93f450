import json
import logging
import os
import sys

DEFAULT_LOG_FILE = "~/.cmdify/cmdify-sync.log"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_NOISY_LOGGERS = ("urllib3", "requests", "charset_normalizer")


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON line: time, level, logger, msg[, exc]."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(style: str, show_logger: bool) -> logging.Formatter:
    if style == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    name = " %(name)s" if show_logger else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s", datefmt=_DATEFMT
    )


def _resolve_level(mode: str, debug: bool, level: str | None) -> int:
    if debug:
        return logging.DEBUG
    fallback = level or ("WARNING" if mode == "file" else "INFO")
    name = (os.getenv("LOG_LEVEL") or fallback).upper()
    return getattr(logging, name, logging.INFO)


def _file_handler(path: str, style: str) -> logging.FileHandler:
    path = os.path.expanduser(path)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(_formatter(style, show_logger=True))
    return handler


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Install root logging handlers for the given mode.

    Args:
        mode: "cli" writes to stderr so stdout carries only command output,
            plus *log_file* when one is set.  "file" writes to the log file
            alone, for runs without a terminal.
        debug: Force DEBUG regardless of LOG_LEVEL.
        log_file: Log file path; takes priority over LOG_FILE.
        debug_format: "text" or "json" (one object per line).
        level: Level name from config.yml, used when LOG_LEVEL is unset.

    Environment variables:
        LOG_LEVEL: DEBUG, INFO, WARNING or ERROR.  Defaults to INFO in cli
                   mode and WARNING in file mode.
        LOG_FILE: Log file path.  File mode falls back to
                  ~/.cmdify/cmdify-sync.log
    """
    log_level = _resolve_level(mode, debug, level)
    target = log_file or os.getenv("LOG_FILE")

    handlers: list[logging.Handler] = []
    if mode == "file":
        handlers.append(_file_handler(target or DEFAULT_LOG_FILE, debug_format))
    else:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_formatter(debug_format, show_logger=False))
        handlers.append(console)
        if target:
            handlers.append(_file_handler(target, debug_format))

    logging.basicConfig(level=log_level, handlers=handlers)

    if log_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
