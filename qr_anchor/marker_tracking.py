"""
Marker Tracking Module

Turns anchor placement events into the two-slot marker model: the first
anchor becomes the base marker, the second the movable marker, and every
later placement is ignored. The separation vector is computed once, when the
movable marker is placed.
"""

import logging
import threading
from typing import Callable, List, Optional

from . import geometry
from .data_types import Anchor, MarkerRole, MarkerState, SeparationResult
from .errors import PlacementOutcome

logger = logging.getLogger(__name__)


class ResultChannel:
    """
    Publishes the separation result of a session.

    Set once per session by a single writer and cleared on restart.
    Subscribers are called with the result (or None when cleared).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._result: Optional[SeparationResult] = None
        self._subscribers: List[Callable[[Optional[SeparationResult]], None]] = []

    @property
    def latest(self) -> Optional[SeparationResult]:
        with self._lock:
            return self._result

    def subscribe(self, callback: Callable[[Optional[SeparationResult]], None]):
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Optional[SeparationResult]], None]):
        with self._lock:
            self._subscribers.remove(callback)

    def publish(self, result: SeparationResult):
        with self._lock:
            if self._result is not None:
                raise RuntimeError("Separation result already published for this session")
            self._result = result
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(result)

    def clear(self):
        with self._lock:
            had_result = self._result is not None
            self._result = None
            subscribers = list(self._subscribers)
        if had_result:
            for callback in subscribers:
                callback(None)


def _log_status(message: str):
    logger.info(message)


class MarkerTrackingController:
    """Assigns placed anchors to the base and movable marker slots."""

    def __init__(self,
                 results: ResultChannel = None,
                 reporter: Callable[[str], None] = None):
        """
        Initialize marker tracking controller.

        Args:
            results: Channel receiving the separation result (a private one if None)
            reporter: User-facing status callback, logs the message if None
        """
        self.results = results or ResultChannel()
        self.reporter = reporter or _log_status
        self._lock = threading.Lock()
        self._base: Optional[Anchor] = None
        self._movable: Optional[Anchor] = None
        self._separation: Optional[SeparationResult] = None
        self._ignored = 0

    def on_anchor_placed(self, anchor: Anchor) -> PlacementOutcome:
        """
        Assign an anchor to the first empty slot.

        Returns:
            Which slot was filled, or PlacementOutcome.IGNORED when both are taken
        """
        with self._lock:
            if self._base is None:
                self._base = anchor
                outcome, role, separation = PlacementOutcome.BASE_PLACED, MarkerRole.BASE, None
            elif self._movable is None:
                self._movable = anchor
                self._separation = self.compute_separation(self._base, self._movable)
                outcome, role, separation = (PlacementOutcome.MOVABLE_PLACED, MarkerRole.MOVABLE,
                                             self._separation)
            else:
                self._ignored += 1
                logger.debug("Both markers placed, ignoring anchor %s", anchor.name)
                return PlacementOutcome.IGNORED

        width = anchor.target.physical_width if anchor.target is not None else -1
        logger.info("%s marker placed from %s", role.value, anchor.name)
        self.reporter(f"Detected image {width} meters")

        if separation is not None:
            self.reporter(f"Distance {separation.distance}")
            self.results.publish(separation)

        return outcome

    @staticmethod
    def compute_separation(base: Anchor, movable: Anchor) -> SeparationResult:
        """Separation from the base marker to the movable marker."""
        vector = geometry.subtract(movable.position, base.position)
        return SeparationResult(
            vector=vector,
            distance=geometry.distance(movable.position, base.position),
            base=base,
            movable=movable
        )

    def snapshot(self) -> MarkerState:
        with self._lock:
            return MarkerState(base=self._base, movable=self._movable,
                               separation=self._separation,
                               ignored_placements=self._ignored)

    def reset(self):
        """Clear both slots and the published separation result."""
        with self._lock:
            self._base = None
            self._movable = None
            self._separation = None
            self._ignored = 0
        self.results.clear()
