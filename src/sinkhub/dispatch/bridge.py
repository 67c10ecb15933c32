# src/sinkhub/dispatch/bridge.py
"""stdlib logging -> Dispatcher bridge.

Lets code that logs through ``logging.getLogger(__name__)`` reach the
configured sinks:

    handler = DispatcherHandler(dispatcher)
    logging.getLogger().addHandler(handler)

Records from sinkhub itself and from the HTTP client stack are ignored;
they are emitted while a sink is writing or flushing and would loop back
into the sinks.
"""

import logging

from sinkhub.contracts.enums import Level
from sinkhub.dispatch.dispatcher import Dispatcher

IGNORED_LOGGERS: tuple[str, ...] = ("sinkhub", "httpx", "httpcore", "urllib3")


def level_from_levelno(levelno: int) -> Level:
    """Map a stdlib level number to the nearest Level at or below it."""
    if levelno >= logging.CRITICAL:
        return Level.CRITICAL
    if levelno >= logging.ERROR:
        return Level.ERROR
    if levelno >= logging.WARNING:
        return Level.WARNING
    if levelno >= logging.INFO:
        return Level.INFO
    return Level.DEBUG


class DispatcherHandler(logging.Handler):
    """logging.Handler forwarding records to a Dispatcher."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        level: int = logging.NOTSET,
        ignored_loggers: tuple[str, ...] = IGNORED_LOGGERS,
    ) -> None:
        super().__init__(level)
        self.dispatcher = dispatcher
        self._ignored = ignored_loggers
        self._ignored_prefixes = tuple(f"{name}." for name in ignored_loggers)

    def _ignored_record(self, record: logging.LogRecord) -> bool:
        return record.name in self._ignored or record.name.startswith(self._ignored_prefixes)

    def emit(self, record: logging.LogRecord) -> None:
        if self._ignored_record(record):
            return
        try:
            context = {"logger": record.name, "module": record.module, "line": record.lineno}
            if record.exc_info and record.exc_info[0] is not None:
                context["exception"] = record.exc_info[0].__name__
            self.dispatcher.log(level_from_levelno(record.levelno), record.getMessage(), context=context)
        except Exception:
            self.handleError(record)
