# backend/factory_pulse/utils/logging.py
import logging
import sys
from logging.handlers import RotatingFileHandler

from ..config import settings

LOG_DIR = settings.STORAGE_PATH / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

console_formatter = logging.Formatter(
    '\033[1;36m%(asctime)s\033[0m - \033[1;33m%(name)s\033[0m - \033[1;35m%(levelname)s\033[0m [\033[1;34m%(module)s:%(lineno)d\033[0m] - %(message)s'
)
file_formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s [%(module)s:%(lineno)d] - %(message)s'
)

# LogRecord attributes that must not be overwritten through `extra`
RESERVED_ATTRS = frozenset({
    'args', 'asctime', 'created', 'exc_info', 'exc_text', 'filename',
    'funcName', 'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'msg', 'name', 'pathname', 'process', 'processName',
    'relativeCreated', 'stack_info', 'thread', 'threadName', 'taskName'
})


class FactoryPulseLogger:
    """Component logger: one rotating log file per component plus the console.

    Structured context goes in `extra`; keys that clash with LogRecord
    attributes are stored as `extra_<key>`.
    """

    def __init__(self, component: str):
        self.component = component
        self.logger = logging.getLogger(f"factory_pulse.{component}")
        self.logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
        self.logger.propagate = False
        if not self.logger.handlers:
            self._add_handlers()

    def _add_handlers(self):
        file_handler = RotatingFileHandler(
            LOG_DIR / f"{self.component}.log",
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT
        )
        file_handler.setFormatter(file_formatter)
        self.logger.addHandler(file_handler)

        if settings.LOG_TO_CONSOLE:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

    @staticmethod
    def sanitize_extra(extra):
        if extra is None:
            return None
        return {
            (f"extra_{key}" if key in RESERVED_ATTRS else key): value
            for key, value in extra.items()
        }

    def _log(self, level, msg, extra=None, exc_info=None):
        # stacklevel points %(module)s/%(lineno)d at the caller, not this wrapper
        self.logger.log(level, msg, extra=self.sanitize_extra(extra), exc_info=exc_info, stacklevel=3)

    def debug(self, msg, extra=None, exc_info=None):
        self._log(logging.DEBUG, msg, extra, exc_info)

    def info(self, msg, extra=None, exc_info=None):
        self._log(logging.INFO, msg, extra, exc_info)

    def warning(self, msg, extra=None, exc_info=None):
        self._log(logging.WARNING, msg, extra, exc_info)

    def error(self, msg, extra=None, exc_info=None):
        self._log(logging.ERROR, msg, extra, exc_info)

    def exception(self, msg, extra=None):
        self._log(logging.ERROR, msg, extra, exc_info=True)


api_logger = FactoryPulseLogger("api")
db_logger = FactoryPulseLogger("database")
service_logger = FactoryPulseLogger("service")

__all__ = ["FactoryPulseLogger", "api_logger", "db_logger", "service_logger"]
