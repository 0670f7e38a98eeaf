from typing import Type, Callable, List, Dict, Any, Optional
from flvtools.domain.events import Event

class EventBus:
    """A simple synchronous event bus for decoupled communication."""

    def __init__(self):
        self._subscribers: Dict[Type[Event], List[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: Type[Event], callback: Optional[Callable[[Any], None]] = None):
        """Subscribes a callback to a specific event type. Can be used as a decorator."""
        if callback is None:
            def decorator(func: Callable[[Any], None]):
                self.subscribe(event_type, func)
                return func
            return decorator

        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(callback)

    def publish(self, event: Event):
        """Publishes an event to all subscribers of its type and its base types."""
        for event_type in type(event).__mro__:
            for callback in self._subscribers.get(event_type, ()):
                callback(event)


def publish(bus: Optional[EventBus], event: Event) -> None:
    """Publishes ``event`` when a bus is wired, no-op otherwise."""
    if bus is not None:
        bus.publish(event)
