import logging
from typing import Type, Callable, List, Dict, Any, Optional
from autoenc.domain.events import Event

class EventBus:
    """Synchronous pub/sub used for observability of the pipeline.

    Subscribers run on the publishing thread. A failing subscriber is logged
    and does not interrupt the publisher or the remaining subscribers.
    """

    def __init__(self):
        self._subscribers: Dict[Type[Event], List[Callable[[Any], None]]] = {}
        self.logger = logging.getLogger(__name__)

    def subscribe(self, event_type: Type[Event], callback: Optional[Callable[[Any], None]] = None):
        """Subscribes a callback to an event type (and its subclasses). Can be used as a decorator."""
        if callback is None:
            def decorator(func: Callable[[Any], None]):
                self.subscribe(event_type, func)
                return func
            return decorator

        self._subscribers.setdefault(event_type, []).append(callback)
        return callback

    def unsubscribe(self, event_type: Type[Event], callback: Callable[[Any], None]) -> bool:
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)
            return True
        return False

    def publish(self, event: Event):
        """Delivers an event to subscribers of its type and of its base classes."""
        for event_type in type(event).__mro__:
            for callback in list(self._subscribers.get(event_type, [])):
                try:
                    callback(event)
                except Exception:
                    self.logger.exception(f"Subscriber {callback!r} failed on {type(event).__name__}")
