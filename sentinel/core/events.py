"""
Журнал событий (уведомлений) реестра и очереди заявок.

Компоненты накапливают события внутри операции и публикуют их только
после успешного коммита, поэтому неудачные операции событий не оставляют.
"""

import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """Уведомление о свершившемся изменении."""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "args": dict(self.args),
            "timestamp": self.timestamp,
            "source": self.source,
        }


class EventLog:
    """
    Ограниченный по размеру журнал событий с подписчиками.

    Подписчик — обычная функция или корутина, принимающая Event.
    Ошибка подписчика логируется и не откатывает уже закоммиченную операцию.
    """

    def __init__(self, max_size: int = 1000):
        self._events: Deque[Event] = deque(maxlen=max_size)
        self._subscribers: List[Callable[[Event], Any]] = []

    def subscribe(self, callback: Callable[[Event], Any]) -> None:
        self._subscribers.append(callback)

    async def publish(self, events: List[Event]) -> None:
        for event in events:
            self._events.append(event)
            logger.info(f"Event {event.source}.{event.name}: {event.args}")
            for callback in self._subscribers:
                try:
                    result = callback(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"Event subscriber failed on {event.name}: {e}")

    def recent(self, limit: int = 50, name: Optional[str] = None) -> List[Event]:
        """Последние события (старые первыми)."""
        events = [e for e in self._events if name is None or e.name == name]
        return events[-limit:] if limit else events

    def __len__(self) -> int:
        return len(self._events)
