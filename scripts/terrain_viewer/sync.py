"""
Camera synchronization between the primary and secondary map views.

In split-screen mode the secondary view mirrors every move of the primary
one. The secondary's own move events would otherwise echo back, so a
short ``syncing`` guard suppresses them. Settled camera poses are written
to the shareable view state through a debounced commit.
"""

import logging
import threading
from typing import Callable, Optional, Protocol

from .viewport import Camera, MapHandle


logger = logging.getLogger(__name__)

SYNC_RELEASE_DELAY = 0.05  # seconds
COMMIT_DEBOUNCE_DELAY = 0.5  # seconds


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> Cancellable:
    """Run callback once after delay seconds on a daemon timer thread."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class ViewportSynchronizer:
    """Mirrors primary camera moves onto the secondary view."""

    def __init__(
        self,
        primary: MapHandle,
        commit: Optional[Callable[[Camera], None]] = None,
        scheduler: Scheduler = timer_scheduler,
        dual_view: bool = False,
    ):
        """Initialize the synchronizer.

        Args:
            primary: The interactive map; never moved by the synchronizer
            commit: Receives the rounded camera once the view settles
            scheduler: Deferred-call primitive returning a cancellable handle
            dual_view: Whether split-screen is active
        """
        self.primary = primary
        self.secondary: Optional[MapHandle] = None
        self.commit = commit
        self.scheduler = scheduler
        self.dual_view = dual_view
        self.syncing = False
        self._pending_commit: Optional[Cancellable] = None
        self._lock = threading.Lock()

    def set_dual_view(self, enabled: bool) -> None:
        self.dual_view = enabled
        if enabled and self.secondary is not None:
            self.secondary.jump_to(self.primary.get_camera())

    def attach_secondary(self, handle: MapHandle) -> None:
        """Register the secondary view and align it with the primary."""
        self.secondary = handle
        if self.dual_view:
            handle.jump_to(self.primary.get_camera())

    def detach_secondary(self) -> None:
        self.secondary = None

    def _release(self) -> None:
        with self._lock:
            self.syncing = False

    def on_move(self, camera: Camera) -> None:
        """Handle a primary move event."""
        with self._lock:
            secondary = self.secondary
            if self.syncing or not self.dual_view or secondary is None:
                return
            self.syncing = True
        secondary.jump_to(camera)
        self.scheduler(SYNC_RELEASE_DELAY, self._release)

    def on_move_end(self, camera: Camera) -> None:
        """Handle a primary move-end event by scheduling a debounced commit."""
        with self._lock:
            if self.syncing:
                return
            if self._pending_commit is not None:
                self._pending_commit.cancel()
            rounded = camera.rounded()
            self._pending_commit = self.scheduler(
                COMMIT_DEBOUNCE_DELAY, lambda: self._commit(rounded)
            )

    def _commit(self, camera: Camera) -> None:
        with self._lock:
            self._pending_commit = None
        logger.debug(f"Committing view {camera}")
        if self.commit is not None:
            self.commit(camera)

    def cancel_pending(self) -> None:
        """Cancel any pending commit (used when tearing the views down)."""
        with self._lock:
            if self._pending_commit is not None:
                self._pending_commit.cancel()
                self._pending_commit = None
