import logging
from typing import Any, Dict, Optional, Union


LogMessage = Union[str, Dict[str, Any]]


class LoggerMixin:
    """
    Mixin giving services and repositories a named logger.

    Messages may be plain strings or dicts. Dicts are used for structured
    events and are expected to carry an ``"event"`` key, e.g.:

        self.log_info({"event": "snapshot_saved", "patient_id": "P-001", "version": 3})

    The logger is named after the concrete class so log output can be
    filtered per component (``SessionLedgerService``, ``CompletionWorkflow``...).
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._logger: Optional[logging.Logger] = None

    @property
    def logger(self) -> logging.Logger:
        """Lazy initialization of logger instance."""
        if getattr(self, "_logger", None) is None:
            self._logger = logging.getLogger(self.__class__.__name__)
        return self._logger

    def _format_message(self, message: LogMessage) -> str:
        if isinstance(message, dict):
            return " ".join(f"{key}={value}" for key, value in message.items())
        return message

    def log_info(self, message: LogMessage, **kwargs) -> None:
        self.logger.info(self._format_message(message), **kwargs)

    def log_warning(self, message: LogMessage, **kwargs) -> None:
        self.logger.warning(self._format_message(message), **kwargs)

    def log_error(
        self, message: LogMessage, exc_info: bool = False, **kwargs
    ) -> None:
        """
        Log an error level message.

        Args:
            message: Message to log (string or dict)
            exc_info: Include exception information if True
        """
        self.logger.error(self._format_message(message), exc_info=exc_info, **kwargs)

    def log_debug(self, message: LogMessage, **kwargs) -> None:
        self.logger.debug(self._format_message(message), **kwargs)


class _ModuleLevelLogger(LoggerMixin):
    """Module-level logger instance that uses a fixed name."""

    def __init__(self):
        self._logger = logging.getLogger("app.ledger")


logger = _ModuleLevelLogger()


def configure_logging(level: str = "INFO") -> None:
    """Apply the configured root log level and a single stream handler."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
