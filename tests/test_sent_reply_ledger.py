from __future__ import annotations

from services.persistence_service import SentReplyLedger


def test_ledger_roundtrip(tmp_path):
    ledger = SentReplyLedger(tmp_path / "replies.db", account="me")

    assert ledger.has_replied("abc") is False

    ledger.record_reply("abc", thread_id="t1")
    assert ledger.has_replied("abc") is True
    assert ledger.unmarked() == ["abc"]

    ledger.record_marked("abc")
    assert ledger.unmarked() == []

    [entry] = ledger.recent_entries()
    assert entry.thread_id == "t1"
    assert entry.marked_at is not None


def test_ledger_survives_restart_and_separates_accounts(tmp_path):
    db_path = tmp_path / "replies.db"
    SentReplyLedger(db_path, account="me").record_reply("abc")

    assert SentReplyLedger(db_path, account="me").has_replied("abc") is True
    assert SentReplyLedger(db_path, account="other@example.com").has_replied("abc") is False


def test_recording_twice_keeps_first_reply(tmp_path):
    ledger = SentReplyLedger(tmp_path / "replies.db")
    ledger.record_reply("abc", thread_id="t1")
    ledger.record_reply("abc", thread_id="t2")

    assert [entry.thread_id for entry in ledger.recent_entries()] == ["t1"]
