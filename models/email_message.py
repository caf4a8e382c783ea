from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass(slots=True)
class CandidateMessage:
    """An inbound Gmail message that has not been answered yet.

    One message stands in for its whole thread when the marker label is applied.
    """

    id: str
    thread_id: str | None = None
    headers: Dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


@dataclass(slots=True, frozen=True)
class MarkerLabel:
    name: str
    id: str


@dataclass(slots=True)
class ReplyDraft:
    """Outbound auto-reply derived from a candidate message."""

    to: str
    subject: str
    body: str
    in_reply_to: str
    thread_id: str | None = None
