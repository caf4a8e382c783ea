from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

REPLIED = "replied"
REMARKED = "remarked"
FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class CandidateOutcome:
    message_id: str
    status: str
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != FAILED


@dataclass(slots=True)
class CycleReport:
    """Per-candidate outcomes collected during one find/reply/mark pass."""

    outcomes: List[CandidateOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

    def succeeded(self, message_id: str, status: str = REPLIED) -> None:
        self.outcomes.append(CandidateOutcome(message_id, status))

    def failed(self, message_id: str, reason: str) -> None:
        self.outcomes.append(CandidateOutcome(message_id, FAILED, reason))

    def finish(self) -> "CycleReport":
        self.finished_at = _utcnow()
        return self

    def counts(self) -> Dict[str, int]:
        return dict(Counter(outcome.status for outcome in self.outcomes))

    @property
    def candidates(self) -> int:
        return len(self.outcomes)

    def summary(self) -> Dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "candidates": self.candidates,
            "counts": self.counts(),
            "error": self.error,
            "failures": [
                {"message_id": outcome.message_id, "reason": outcome.reason}
                for outcome in self.outcomes
                if not outcome.ok
            ],
        }
