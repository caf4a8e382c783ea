from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from threading import Event, Lock
from time import time
from typing import Any, Dict, Optional, Tuple

import schedule

from models.cycle_report import CycleReport
from services.responder import VacationResponder

LOGGER = logging.getLogger(__name__)


@dataclass
class LoopStatus:
    state: str = "idle"
    label_id: Optional[str] = None
    cycles: int = 0
    next_delay: Optional[float] = None
    last_cycle: Optional[Dict[str, Any]] = None
    detail: Optional[str] = None
    updated_at: float = field(default_factory=time)


class ResponderLoop:
    """Self-rescheduling timer around :class:`VacationResponder`.

    The job is re-armed by ``schedule`` only after a cycle returns, so cycles
    never overlap. Each cycle draws the next delay from ``interval_range``
    inclusive and stores it as the job interval before ``schedule`` re-arms.
    """

    def __init__(
        self,
        responder: VacationResponder,
        interval_range: Tuple[int, int],
        scheduler: Optional[schedule.Scheduler] = None,
        tick: float = 1.0,
    ):
        self._responder = responder
        self._interval_range = interval_range
        self._scheduler = scheduler or schedule.Scheduler()
        self._tick = tick
        self._job: Optional[schedule.Job] = None
        self._stop = Event()
        self._lock = Lock()
        self._status = LoopStatus()

    def _update(self, **fields: Any) -> None:
        with self._lock:
            for key, value in fields.items():
                setattr(self._status, key, value)
            self._status.updated_at = time()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": self._status.state,
                "label_id": self._status.label_id,
                "cycles": self._status.cycles,
                "next_delay": self._status.next_delay,
                "last_cycle": self._status.last_cycle,
                "detail": self._status.detail,
                "updated_at": self._status.updated_at,
            }

    @property
    def next_delay(self) -> Optional[float]:
        if self._job is None:
            return None
        return float(self._job.interval)

    def _draw_delay(self) -> int:
        low, high = self._interval_range
        return random.randint(low, high)

    def _cycle(self) -> Optional[CycleReport]:
        report = None
        try:
            report = self._responder.run_cycle()
            summary, detail = report.summary(), None
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Responder cycle failed")
            summary, detail = None, f"Last cycle failed: {exc!r}"
        finally:
            # schedule reads the interval right after this returns.
            if self._job is not None:
                self._job.interval = self._draw_delay()
        with self._lock:
            cycles = self._status.cycles + 1
            last_cycle = summary if summary is not None else self._status.last_cycle
        self._update(cycles=cycles, last_cycle=last_cycle, detail=detail)
        return report

    def start(self) -> None:
        """Ensure the marker label, run the first cycle and arm the timer."""

        self._update(state="starting", detail="Ensuring marker label")
        label_id = self._responder.ensure_label()
        self._job = self._scheduler.every(self._draw_delay()).seconds.do(self._cycle)
        self._update(state="running", label_id=label_id, detail=None)
        self._job.run()
        self._update(next_delay=self.next_delay)
        LOGGER.info("Next cycle in %.0f seconds", self.next_delay)

    def run_forever(self) -> None:
        if self._job is None:
            self.start()
        while not self._stop.is_set():
            last_run = self._job.last_run
            self._scheduler.run_pending()
            if self._job.last_run != last_run:
                self._update(next_delay=self.next_delay)
                LOGGER.info("Next cycle in %.0f seconds", self.next_delay)
            self._stop.wait(self._tick)
        self._scheduler.clear()
        self._update(state="stopped")
        LOGGER.info("Responder loop stopped")

    def stop(self) -> None:
        self._stop.set()
