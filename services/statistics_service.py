from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from threading import Lock
from typing import Dict

from models.cycle_report import CycleReport

LOGGER = logging.getLogger(__name__)


class StatisticsService:
    """Very small JSON-backed store of responder cycle counters."""

    def __init__(self, stats_file: Path):
        self._stats_file = stats_file
        self._lock = Lock()
        self._stats_file.parent.mkdir(parents=True, exist_ok=True)
        self._stats_file.touch(exist_ok=True)
        if not self._stats_file.read_text(encoding="utf-8").strip():
            self._write({})

    def _read(self) -> Dict:
        try:
            return json.loads(self._stats_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Stats file was corrupt, resetting %s", self._stats_file)
            self._write({})
            return {}

    def _write(self, payload: Dict) -> None:
        self._stats_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def record_cycle(self, report: CycleReport) -> None:
        with self._lock:
            stats = self._read()
            stats["cycles"] = stats.get("cycles", 0) + 1
            stats["candidates_seen"] = stats.get("candidates_seen", 0) + report.candidates
            if report.error:
                stats["cycle_errors"] = stats.get("cycle_errors", 0) + 1
            outcomes = Counter(stats.get("outcomes", {}))
            outcomes.update(report.counts())
            stats["outcomes"] = dict(outcomes)
            stats["last_cycle"] = report.summary()
            self._write(stats)

    def snapshot(self) -> Dict:
        with self._lock:
            return self._read()
