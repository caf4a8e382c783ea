from __future__ import annotations

from models.cycle_report import REPLIED, CycleReport
from services.statistics_service import StatisticsService


def test_corrupt_stats_file_is_reset(tmp_path):
    stats_file = tmp_path / "stats.json"
    stats_file.write_text("{not json", encoding="utf-8")

    stats = StatisticsService(stats_file)

    assert stats.snapshot() == {}


def test_record_cycle_accumulates(tmp_path):
    stats = StatisticsService(tmp_path / "nested" / "stats.json")
    report = CycleReport()
    report.succeeded("m1")
    report.failed("m2", "bad From header")

    stats.record_cycle(report.finish())
    stats.record_cycle(CycleReport().finish())

    snapshot = stats.snapshot()
    assert snapshot["cycles"] == 2
    assert snapshot["candidates_seen"] == 2
    assert snapshot["outcomes"] == {REPLIED: 1, "failed": 1}
    assert snapshot["last_cycle"]["candidates"] == 0
