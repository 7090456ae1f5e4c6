import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional

logger = logging.getLogger(__name__)

INFO = "info"
SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class Notification:
    title: str
    message: str
    level: str = INFO


class Notifier:
    """Keeps the most recent user-facing notices (toasts) and forwards them to an optional sink."""

    def __init__(self, sink: Optional[Callable[[Notification], None]] = None, max_items: int = 50):
        self._sink = sink
        self.items: Deque[Notification] = deque(maxlen=max_items)

    def __call__(self, title: str, message: str, level: str = INFO) -> Notification:
        notice = Notification(title, message, level)
        self.items.append(notice)
        if level == ERROR:
            logger.warning("%s: %s", title, message)
        else:
            logger.info("%s: %s", title, message)
        if self._sink is not None:
            self._sink(notice)
        return notice

    @property
    def last(self) -> Optional[Notification]:
        return self.items[-1] if self.items else None

    def clear(self) -> None:
        self.items.clear()
