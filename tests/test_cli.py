from __future__ import annotations

import os

from click.testing import CliRunner

from main import cli
from services.persistence_service import SentReplyLedger


def test_stats_lists_replies_waiting_for_a_label(tmp_path, monkeypatch):
    monkeypatch.setattr(os, "environ", os.environ.copy())
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("DB_PATH", str(tmp_path / "replies.db"))
    monkeypatch.setenv("STATS_FILE", str(tmp_path / "stats.json"))
    monkeypatch.setenv("GMAIL_USER_ID", "me")
    (tmp_path / "stats.json").write_text('{"cycles": 2, "outcomes": {"replied": 2}}', encoding="utf-8")

    ledger = SentReplyLedger(tmp_path / "replies.db", account="me")
    ledger.record_reply("m1")
    ledger.record_marked("m1")
    ledger.record_reply("m2")

    result = CliRunner().invoke(cli, ["--env-file", str(tmp_path / "missing.env"), "stats"])

    assert result.exit_code == 0, result.output
    assert "Responder stats" in result.output
    assert "1 replied message(s) still waiting for the marker label: m2" in result.output
