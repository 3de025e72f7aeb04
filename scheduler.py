import logging
import threading
from typing import Callable

from raftconfig import TICK_INTERVAL_S

logger = logging.getLogger(__name__)


class TickScheduler:
    """Calls `step` every `period_s` seconds on a background thread until stopped.

    Steps never overlap: there is a single thread and each step runs to completion
    before the next wait starts.
    """

    def __init__(self, step: Callable[[], None], period_s: float = TICK_INTERVAL_S):
        self.step = step
        self.period_s = period_s
        self._thread: threading.Thread | None = None
        self._stopped = threading.Event()

    def __repr__(self):
        return f"TickScheduler(period_s={self.period_s}, running={self.running})"

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stopped.is_set()

    def start(self):
        if self.running:
            return
        # a previous thread might still be finishing its last step
        self._join()
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stopped,), name="tick-scheduler", daemon=True)
        self._thread.start()
        logger.info("scheduler started, one tick every %ss", self.period_s)

    def stop(self):
        """No step starts after this returns (unless called from a step, which then is the last one)."""
        if self._thread is None:
            return
        self._stopped.set()
        self._join()
        logger.info("scheduler stopped")

    def _join(self):
        thread = self._thread
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join()
            self._thread = None

    def _run(self, stopped: threading.Event):
        # noinspection PyBroadException
        try:
            # the event doubles as an interruptible sleep
            while not stopped.wait(self.period_s):
                self.step()
        except Exception:
            # a broken step would break every following one too
            logger.exception("simulation step failed, stopping the scheduler")
            stopped.set()
