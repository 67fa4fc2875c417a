"""
In-process playback monitor.

Hosts push PlaybackState snapshots through publish(); subscribers are called
synchronously on the publishing thread.
"""
import logging
import threading
from typing import Callable, List

from .interfaces import PlaybackMonitor, PlaybackState, Subscription

logger = logging.getLogger(__name__)

Callback = Callable[[PlaybackState], None]


class CallbackSubscription(Subscription):
    """Subscription that unregisters its callback on cancel()."""

    def __init__(self, monitor: "ManualPlaybackMonitor", callback: Callback):
        self._monitor = monitor
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._active = False
            self._monitor._unsubscribe(self._callback)


class ManualPlaybackMonitor(PlaybackMonitor):
    """PlaybackMonitor driven by explicit publish() calls."""

    def __init__(self):
        self._lock = threading.Lock()
        self._callbacks: List[Callback] = []

    def subscribe(self, callback: Callback) -> CallbackSubscription:
        with self._lock:
            self._callbacks.append(callback)
        return CallbackSubscription(self, callback)

    def _unsubscribe(self, callback: Callback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def publish(self, state: PlaybackState) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(state)
            except Exception:
                logger.exception("Playback subscriber failed")
