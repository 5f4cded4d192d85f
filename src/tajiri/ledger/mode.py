"""Ledger operating mode (live or degraded).

The mode lives in a store passed to the ledger client, so tests and admin
tooling can inspect and reset it. Once degraded, only an explicit reset
brings the client back to live calls.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

logger = logging.getLogger(__name__)


class LedgerMode(str, Enum):
    """Ledger client operating modes."""

    LIVE = "live"
    DEGRADED = "degraded"


class ModeStore(ABC):
    """Storage for the ledger mode and the consecutive-failure count."""

    @abstractmethod
    def get_mode(self) -> LedgerMode:
        pass

    @abstractmethod
    def set_mode(self, mode: LedgerMode) -> None:
        pass

    @abstractmethod
    def get_failures(self) -> int:
        pass

    @abstractmethod
    def set_failures(self, count: int) -> None:
        pass


class InMemoryModeStore(ModeStore):
    """Mode store held in process memory."""

    def __init__(self, mode: LedgerMode = LedgerMode.LIVE):
        self._mode = mode
        self._failures = 0
        self.transitions: list[LedgerMode] = []

    def get_mode(self) -> LedgerMode:
        return self._mode

    def set_mode(self, mode: LedgerMode) -> None:
        if mode != self._mode:
            self.transitions.append(mode)
        self._mode = mode

    def get_failures(self) -> int:
        return self._failures

    def set_failures(self, count: int) -> None:
        self._failures = count


class DegradedModeTracker:
    """Counts consecutive exhausted calls and engages degraded mode.

    A successful live call resets the count. Nothing but reset() leaves
    degraded mode.
    """

    def __init__(self, store: ModeStore, failure_threshold: int = 3):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.store = store
        self.failure_threshold = failure_threshold

    @property
    def mode(self) -> LedgerMode:
        return self.store.get_mode()

    @property
    def is_degraded(self) -> bool:
        return self.store.get_mode() == LedgerMode.DEGRADED

    def record_success(self) -> None:
        if self.store.get_failures():
            self.store.set_failures(0)

    def record_exhausted(self, error: BaseException) -> None:
        """Record a call whose retries ran out."""
        failures = self.store.get_failures() + 1
        self.store.set_failures(failures)

        if failures >= self.failure_threshold and not self.is_degraded:
            self.store.set_mode(LedgerMode.DEGRADED)
            logger.error(
                f"Ledger unreachable after {failures} consecutive exhausted calls "
                f"(last error: {error}); switching to degraded mode"
            )

    def reset(self) -> None:
        """Return to live mode (explicit operator action)."""
        was_degraded = self.is_degraded
        self.store.set_failures(0)
        self.store.set_mode(LedgerMode.LIVE)
        if was_degraded:
            logger.warning("Ledger mode reset to live")
