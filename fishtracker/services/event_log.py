import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Literal, Optional

Level = Literal["info", "success", "warning", "error"]

MAX_ENTRIES = 100

_logger = logging.getLogger("fishtracker")
_STD_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: Level
    message: str
    details: Optional[dict] = None


Observer = Callable[[LogEntry], None]


@dataclass
class EventLog:
    """Event channel handed to every component that reports progress.

    Keeps the last MAX_ENTRIES entries for the /logs endpoint and fans each
    entry out to subscribers.
    """
    entries: List[LogEntry] = field(default_factory=list)
    _observers: List[Observer] = field(default_factory=list, repr=False)

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def log(self, msg: str, level: Level = "info", details: Optional[dict] = None):
        entry = LogEntry(
            timestamp=datetime.now().isoformat(timespec="milliseconds"),
            level=level,
            message=msg,
            details=details,
        )
        _logger.log(_STD_LEVELS[level], msg)
        self.entries.append(entry)
        if len(self.entries) > MAX_ENTRIES:
            self.entries = self.entries[-MAX_ENTRIES:]
        for observer in list(self._observers):
            try:
                observer(entry)
            except Exception:
                _logger.exception("event log observer failed")

    def success(self, msg: str, details: Optional[dict] = None):
        self.log(msg, "success", details)

    def warning(self, msg: str, details: Optional[dict] = None):
        self.log(msg, "warning", details)

    def error(self, msg: str, details: Optional[dict] = None):
        self.log(msg, "error", details)

    def clear(self):
        self.entries = []
        self.log("log cleared")
