import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"


@dataclass
class Notice:
    message: str
    type: str
    expires_at: float

    def to_dict(self) -> dict:
        return {"message": self.message, "type": self.type}


class NotificationCenter:
    """Holds the single transient notice shown to the user.

    A new notice replaces the previous one; a notice disappears once its TTL
    has elapsed.
    """

    def __init__(self, ttl_seconds: float = 3.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._notice: Optional[Notice] = None

    def notify(self, message: str, type: str = SUCCESS) -> Notice:
        self._notice = Notice(message=message, type=type, expires_at=self._clock() + self.ttl_seconds)
        if type == ERROR:
            logger.warning(f"[Notice] {message}")
        else:
            logger.info(f"[Notice] {message}")
        return self._notice

    def success(self, message: str) -> Notice:
        return self.notify(message, SUCCESS)

    def error(self, message: str) -> Notice:
        return self.notify(message, ERROR)

    def current(self) -> Optional[Notice]:
        if self._notice is not None and self._clock() >= self._notice.expires_at:
            self._notice = None
        return self._notice
