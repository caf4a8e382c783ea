from __future__ import annotations

import base64
import re
from email.message import EmailMessage
from email.utils import formatdate

from models.email_message import CandidateMessage, ReplyDraft
from services.errors import MalformedHeaderError

REPLY_PREFIX = "Re:"
NO_SUBJECT = "(no subject)"
_ANGLE_ADDRESS = re.compile(r"<([^<>\s]+@[^<>\s]+)>")


def extract_reply_address(message_id: str, from_header: str | None) -> str:
    """Pull the address out of ``Name <addr@example.com>``."""

    match = _ANGLE_ADDRESS.search(from_header or "")
    if match is None:
        raise MalformedHeaderError(message_id, "From", from_header)
    return match.group(1)


def reply_subject(subject: str | None) -> str:
    subject = (subject or "").strip() or NO_SUBJECT
    if subject[: len(REPLY_PREFIX)].lower() == REPLY_PREFIX.lower():
        return subject
    return f"{REPLY_PREFIX} {subject}"


def build_reply(candidate: CandidateMessage, body: str) -> ReplyDraft:
    return ReplyDraft(
        to=extract_reply_address(candidate.id, candidate.header("From")),
        subject=reply_subject(candidate.header("Subject")),
        body=body,
        in_reply_to=candidate.header("Message-ID") or candidate.id,
        thread_id=candidate.thread_id,
    )


def to_mime(draft: ReplyDraft) -> EmailMessage:
    message = EmailMessage()
    message["To"] = draft.to
    message["Subject"] = draft.subject
    message["Date"] = formatdate(localtime=True)
    message["In-Reply-To"] = draft.in_reply_to
    message["References"] = draft.in_reply_to
    # Marks the reply as machine generated so other responders stay quiet.
    message["Auto-Submitted"] = "auto-replied"
    message.set_content(draft.body)
    return message


def encode_message(message: EmailMessage) -> str:
    """URL-safe base64 of the raw RFC 5322 bytes, without padding."""

    return base64.urlsafe_b64encode(message.as_bytes()).rstrip(b"=").decode("ascii")
