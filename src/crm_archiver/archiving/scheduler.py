"""Run an iteration repeatedly on a fixed interval."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

LOGGER = logging.getLogger(__name__)


class RepeatingProcess:
    """Call ``iteration`` every ``interval_seconds`` until stopped.

    Iterations never overlap: the next wait starts only after the previous
    iteration returns. Exceptions from an iteration are logged and the loop
    carries on.
    """

    def __init__(
        self,
        name: str,
        iteration: Callable[[], None],
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self._iteration = iteration
        self._interval_seconds = interval_seconds
        self._stop_event = threading.Event()

    def run(self, iterations: int | None = None) -> int:
        """Loop until :meth:`stop` is called or ``iterations`` have run.

        Returns the number of iterations performed.
        """
        completed = 0
        LOGGER.info("%s started (interval %ss)", self.name, self._interval_seconds)
        while not self._stop_event.is_set():
            try:
                self._iteration()
            except Exception:  # pylint: disable=broad-except
                LOGGER.exception("%s iteration failed", self.name)
            completed += 1
            if iterations is not None and completed >= iterations:
                break
            self._stop_event.wait(self._interval_seconds)
        LOGGER.info("%s stopped after %s iteration(s)", self.name, completed)
        return completed

    def stop(self) -> None:
        """Ask the loop to finish after the current iteration."""
        self._stop_event.set()


__all__ = ["RepeatingProcess"]
