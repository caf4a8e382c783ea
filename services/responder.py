from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from googleapiclient.errors import HttpError

from models.cycle_report import REMARKED, REPLIED, CycleReport
from models.email_message import CandidateMessage, MarkerLabel
from services.errors import LabelNotFoundError, ResponderError
from services.gmail_service import INBOX_LABEL, GmailService, is_conflict
from services.persistence_service import SentReplyLedger
from services.reply_composer import build_reply, encode_message, to_mime
from services.statistics_service import StatisticsService
from utils.config import ResponderConfig

LOGGER = logging.getLogger(__name__)

# Skip chats, anything the owner sent, and anything already carrying a user label.
UNREPLIED_QUERY = "-in:chats -from:me -has:userlabels"
REPLY_HEADERS = ("Subject", "From", "Message-ID")


class VacationResponder:
    """Find unanswered inbound mail, reply once, and label the thread."""

    def __init__(
        self,
        mail_store: GmailService,
        config: ResponderConfig,
        ledger: Optional[SentReplyLedger] = None,
        stats: Optional[StatisticsService] = None,
    ):
        self._mail = mail_store
        self._config = config
        self._ledger = ledger
        self._stats = stats
        self._label: Optional[MarkerLabel] = None

    @property
    def label(self) -> Optional[MarkerLabel]:
        return self._label

    def ensure_label(self, name: Optional[str] = None) -> str:
        """Create the marker label, or look it up if it already exists."""

        name = name or self._config.label_name
        try:
            label_id = self._mail.create_label(name)["id"]
            LOGGER.info("Created label %s with id %s", name, label_id)
        except HttpError as exc:
            if not is_conflict(exc):
                raise
            label_id = self._lookup_label(name)
            LOGGER.info("Label %s already exists as %s", name, label_id)
        if name == self._config.label_name:
            self._label = MarkerLabel(name=name, id=label_id)
        return label_id

    def _lookup_label(self, name: str) -> str:
        for label in self._mail.list_labels():
            if label.get("name") == name:
                return label["id"]
        raise LabelNotFoundError(name)

    def find_candidates(self) -> List[CandidateMessage]:
        stubs = self._mail.list_messages(UNREPLIED_QUERY)
        return [CandidateMessage(id=stub["id"], thread_id=stub.get("threadId")) for stub in stubs]

    def send_reply(self, candidate: CandidateMessage) -> None:
        candidate.headers = self._mail.get_headers(candidate.id, REPLY_HEADERS)
        draft = build_reply(candidate, self._config.reply_body)
        raw = encode_message(to_mime(draft))
        self._mail.send_raw(raw, thread_id=draft.thread_id)
        LOGGER.info("Reply sent to %s for message %s", draft.to, candidate.id)

    def apply_marker(self, candidate: CandidateMessage, label_id: str) -> None:
        self._mail.modify_labels(candidate.id, labels_to_add=[label_id], labels_to_remove=[INBOX_LABEL])
        LOGGER.info("Label %s applied to %s", label_id, candidate.id)

    def run_cycle(self) -> CycleReport:
        """One find, reply, mark pass over every current candidate."""

        if self._label is None:
            self.ensure_label()
        label_id = self._label.id
        report = CycleReport()

        try:
            candidates = self.find_candidates()
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Could not query for unreplied messages")
            report.error = str(exc)
            candidates = []
        LOGGER.info("Found %s unreplied message(s)", len(candidates))

        for candidate in candidates:
            try:
                status = self._process(candidate, label_id)
            except ResponderError as exc:
                LOGGER.error("Skipping message %s: %s", candidate.id, exc)
                report.failed(candidate.id, str(exc))
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Failed to process message %s", candidate.id)
                report.failed(candidate.id, str(exc))
            else:
                report.succeeded(candidate.id, status)

        report.finish()
        if self._stats is not None:
            self._stats.record_cycle(report)
        LOGGER.info("Cycle finished: %s", report.counts() or "nothing to do")
        return report

    def _process(self, candidate: CandidateMessage, label_id: str) -> str:
        if self._ledger is not None and self._ledger.has_replied(candidate.id):
            LOGGER.warning("Message %s was already answered, re-applying label only", candidate.id)
            self.apply_marker(candidate, label_id)
            self._record(self._ledger.record_marked, candidate)
            return REMARKED

        self.send_reply(candidate)
        if self._ledger is not None:
            self._record(self._ledger.record_reply, candidate, candidate.thread_id)
        # The reply is out; the label must be attempted whatever the ledger did.
        self.apply_marker(candidate, label_id)
        if self._ledger is not None:
            self._record(self._ledger.record_marked, candidate)
        return REPLIED

    def _record(self, write, candidate: CandidateMessage, *args) -> None:
        try:
            write(candidate.id, *args)
        except sqlite3.Error as exc:
            LOGGER.error("Could not update reply ledger for %s: %s", candidate.id, exc)
