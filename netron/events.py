"""Callback registry shared by the aggregator, manager and feedback center."""

from typing import Any, Callable, Dict, List
import logging

logger = logging.getLogger(__name__)


class EventEmitter:
    """Minimal on/off/emit event registry. Callback errors are logged, never raised."""

    def __init__(self) -> None:
        self._callbacks: Dict[str, List[Callable]] = {}

    def on(self, event: str, callback: Callable) -> None:
        """
        Register event callback.

        Args:
            event: Event name
            callback: Callback function taking one argument
        """
        if event not in self._callbacks:
            self._callbacks[event] = []
        self._callbacks[event].append(callback)

    def off(self, event: str, callback: Callable) -> None:
        """
        Unregister event callback.

        Args:
            event: Event name
            callback: Callback function
        """
        if event in self._callbacks:
            self._callbacks[event] = [
                cb for cb in self._callbacks[event] if cb != callback
            ]

    def _emit(self, event: str, data: Any) -> None:
        """Emit event to registered callbacks."""
        for callback in self._callbacks.get(event, []):
            try:
                callback(data)
            except Exception as e:
                logger.error(f"Error in {event} callback: {e}")
