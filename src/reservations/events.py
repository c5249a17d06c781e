import logging
import threading
from typing import Callable, List

from src.reservations.schemas import ReservationEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[ReservationEvent], None]


class EventPublisher:
    """Fire-and-forget fan-out of reservation events.

    Subscribers are the notification collaborators (websocket push, email,
    ...). A failing subscriber is logged and skipped; it never affects the
    operation that emitted the event.
    """

    def __init__(self):
        self._callbacks: List[EventCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: EventCallback):
        with self._lock:
            self._callbacks.append(callback)

    def unsubscribe(self, callback: EventCallback):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def publish(self, event: ReservationEvent):
        with self._lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Event subscriber failed for %s on reservation %s",
                    event.event_type, event.reservation_id
                )


class RecordingEventSink:
    """Keeps every published event in memory"""

    def __init__(self):
        self.events: List[ReservationEvent] = []

    def publish(self, event: ReservationEvent):
        self.events.append(event)

    def of_type(self, event_type: str) -> List[ReservationEvent]:
        return [event for event in self.events if event.event_type == event_type]
