from __future__ import annotations

import logging
import os
import sys
import threading
from logging.handlers import TimedRotatingFileHandler


_hooks_installed = False
_setup_lock = threading.Lock()


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)) or default)
    except ValueError:
        return default


def _pick_logs_dir() -> str:
    candidates = []
    env_dir = os.getenv("RAIDGATE_LOG_DIR")
    if env_dir:
        candidates.append(env_dir)
    candidates.append(os.path.join(os.getcwd(), "logs"))
    xdg_state = os.getenv("XDG_STATE_HOME")
    home = os.path.expanduser("~")
    if xdg_state:
        candidates.append(os.path.join(xdg_state, "raidgate", "logs"))
    elif home:
        candidates.append(os.path.join(home, ".local", "state", "raidgate", "logs"))
    try:
        uid = os.getuid()  # type: ignore[attr-defined]
    except AttributeError:
        uid = os.getpid()
    candidates.append(os.path.join("/tmp", f"raidgate-{uid}", "logs"))
    for d in candidates:
        try:
            os.makedirs(d, exist_ok=True)
            # quick write test
            p = os.path.join(d, ".write-test")
            with open(p, "a", encoding="utf-8"):
                pass
            os.remove(p)
            return d
        except OSError:
            continue
    return "/tmp"


class _NonErrorFilter(logging.Filter):
    """Keep ERROR and CRITICAL out of the app log; they go to errors.log."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.ERROR


def _rotating(path: str, retention_days: int, formatter: logging.Formatter) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(path, when="midnight", interval=1, backupCount=retention_days, encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def _install_exception_hooks() -> None:
    global _hooks_installed
    with _setup_lock:
        if _hooks_installed:
            return
        _hooks_installed = True

    orig_excepthook = sys.excepthook

    def _log_excepthook(exc_type, exc, tb):
        try:
            logging.getLogger("unhandled").error("Unhandled exception", exc_info=(exc_type, exc, tb))
        finally:
            orig_excepthook(exc_type, exc, tb)

    sys.excepthook = _log_excepthook

    def _thread_excepthook(args: threading.ExceptHookArgs) -> None:
        logging.getLogger("threading").error(
            "Unhandled thread exception in %s",
            getattr(args.thread, "name", "thread"),
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    threading.excepthook = _thread_excepthook


def setup_logging(level: str = "INFO") -> str:
    """Configure console and rotating file logging. Returns the logs directory."""
    logs_dir = _pick_logs_dir()

    root = logging.getLogger()
    root.setLevel(level.upper())

    fmt = os.getenv("RAIDGATE_LOG_FORMAT", "%(asctime)s %(levelname)s %(name)s: %(message)s")
    datefmt = os.getenv("RAIDGATE_LOG_DATEFMT", "%Y-%m-%d %H:%M:%S")
    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    # App log (INFO/DEBUG/WARNING) with daily rotation
    app_log = _rotating(os.path.join(logs_dir, "raidgate.log"), _int_env("LOG_RETENTION_DAYS", 14), formatter)
    app_log.addFilter(_NonErrorFilter())

    # Error-only log with longer retention
    error_log = _rotating(os.path.join(logs_dir, "errors.log"), _int_env("ERROR_LOG_RETENTION_DAYS", 90), formatter)
    error_log.setLevel(logging.ERROR)

    root.handlers.clear()
    root.addHandler(console_handler)
    root.addHandler(app_log)
    root.addHandler(error_log)

    # Library chatter goes to its own file only
    discord_logger = logging.getLogger("discord")
    discord_logger.handlers.clear()
    discord_logger.addHandler(
        _rotating(os.path.join(logs_dir, "discord.log"), _int_env("DISCORD_LOG_RETENTION_DAYS", 14), formatter)
    )
    discord_level = os.getenv("DISCORD_LOG_LEVEL", "INFO").upper()
    discord_logger.setLevel(getattr(logging, discord_level, logging.INFO))
    discord_logger.propagate = False

    logging.captureWarnings(True)
    _install_exception_hooks()
    return logs_dir
