"""Alert sinks for non-fatal warnings raised while resolving configurations."""
import logging
from collections import deque
from datetime import datetime
from typing import Deque, Dict, List, Protocol

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    def warn(self, message: str) -> None:
        ...


class AlertLog:
    """
    Alert sink that logs warnings and keeps the most recent ones
    so the host can surface them to the user.
    """

    def __init__(self, history_size: int = 50):
        self.history: Deque[Dict] = deque(maxlen=history_size)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.history.append({
            "level": "warning",
            "message": message,
            "time": datetime.now().isoformat()
        })

    def recent(self) -> List[Dict]:
        return list(self.history)

    def clear(self):
        self.history.clear()
