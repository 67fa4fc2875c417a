"""
Auto-mode: keeps the play queue topped up without user interaction.

A subscription to the playback monitor starts a background run whenever the
queue runs low. Triggers arriving while a run is in flight are dropped, never
queued.
"""
import logging
import threading
from typing import Optional

from .host.interfaces import PlaybackMonitor, PlaybackState, SelectionSource, Subscription
from .orchestrator import CancellationToken, Orchestrator, RunResult

logger = logging.getLogger(__name__)


class AutoModeListener:
    """Starts one auto-mode run per low-queue event, at most one at a time"""

    def __init__(
        self,
        orchestrator: Orchestrator,
        monitor: PlaybackMonitor,
        selection: SelectionSource,
        *,
        threshold: int = 2,
    ):
        """
        Args:
            orchestrator: Orchestrator executing the runs
            monitor: Source of playback events
            selection: Seed source (the playing track is the usual seed)
            threshold: Start a run when this many tracks or fewer remain
        """
        if threshold < 0:
            raise ValueError("threshold must be >= 0")
        self.orchestrator = orchestrator
        self.monitor = monitor
        self.selection = selection
        self.threshold = threshold

        self._lock = threading.Lock()
        self._subscription: Optional[Subscription] = None
        self._worker: Optional[threading.Thread] = None
        self._token: Optional[CancellationToken] = None

        self.triggered_runs = 0
        self.dropped_triggers = 0
        self.last_result: Optional[RunResult] = None

    @property
    def running(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._subscription = self.monitor.subscribe(self.on_playback_changed)
        logger.info(f"Auto-mode started (threshold: {self.threshold} remaining tracks)")

    def stop(self) -> None:
        """Unsubscribe and cancel the run in flight, if any."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        with self._lock:
            token = self._token
        if token is not None:
            token.cancel()
        logger.info("Auto-mode stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current run finishes; False on timeout."""
        with self._lock:
            worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def on_playback_changed(self, state: PlaybackState) -> bool:
        """
        Handle a playback event.

        Returns:
            True if a run was started
        """
        if state.remaining_tracks > self.threshold:
            return False

        with self._lock:
            if (self._worker is not None and self._worker.is_alive()) or self.orchestrator.is_running:
                self.dropped_triggers += 1
                logger.debug(f"Auto-mode trigger dropped; run in progress ({self.dropped_triggers} dropped)")
                return False

            token = CancellationToken()
            worker = threading.Thread(
                target=self._run,
                args=(token,),
                name="similar-artists-auto",
                daemon=True,
            )
            self._token = token
            self._worker = worker
            self.triggered_runs += 1

        logger.info(f"Auto-mode: {state.remaining_tracks} track(s) left in queue, starting run")
        worker.start()
        return True

    def _run(self, token: CancellationToken) -> None:
        try:
            result = self.orchestrator.run(self.selection, auto_mode=True, cancel_token=token)
            with self._lock:
                if result.busy:
                    self.dropped_triggers += 1
                self.last_result = result
            logger.info(f"Auto-mode run finished: {result.message}")
        finally:
            with self._lock:
                if self._token is token:
                    self._token = None
