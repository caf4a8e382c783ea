from __future__ import annotations

import base64
import email
import itertools
from dataclasses import dataclass, field
from email import policy
from typing import Dict, List, Optional, Sequence, Set

import httplib2
import pytest
from googleapiclient.errors import HttpError

from services.responder import UNREPLIED_QUERY
from utils.config import ResponderConfig


def http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b'{"error": {"message": "boom"}}')


@dataclass
class StoredMessage:
    id: str
    thread_id: str
    sender: str
    subject: str
    labels: Set[str] = field(default_factory=lambda: {"INBOX", "UNREAD"})
    from_me: bool = False
    chat: bool = False


class FakeMailbox:
    """In-memory stand-in for GmailService that honours the unreplied query."""

    def __init__(self) -> None:
        self.messages: Dict[str, StoredMessage] = {}
        self.labels: List[Dict[str, str]] = [{"id": "INBOX", "name": "INBOX"}]
        self.sent: List[Dict] = []
        self.created_labels: List[str] = []
        self.fail_modify: Set[str] = set()
        self.fail_get: Set[str] = set()
        self.fail_list = False
        self._ids = itertools.count(1)

    def add(self, sender: str, subject: str = "Hello", **kwargs) -> StoredMessage:
        number = next(self._ids)
        message = StoredMessage(id=f"m{number}", thread_id=f"t{number}", sender=sender, subject=subject, **kwargs)
        self.messages[message.id] = message
        return message

    def _has_user_label(self, message: StoredMessage) -> bool:
        return any(label.startswith("Label_") for label in message.labels)

    def list_messages(self, query: str) -> List[Dict]:
        assert query == UNREPLIED_QUERY
        if self.fail_list:
            raise http_error(500)
        return [
            {"id": message.id, "threadId": message.thread_id}
            for message in self.messages.values()
            if not message.chat and not message.from_me and not self._has_user_label(message)
        ]

    def get_headers(self, message_id: str, header_names: Sequence[str]) -> Dict[str, str]:
        if message_id in self.fail_get:
            raise http_error(503)
        message = self.messages[message_id]
        headers = {"subject": message.subject, "from": message.sender, "message-id": f"<{message_id}@mail.example>"}
        wanted = {name.lower() for name in header_names}
        return {name: value for name, value in headers.items() if name in wanted}

    def send_raw(self, raw: str, thread_id: Optional[str] = None) -> Dict:
        padded = raw + "=" * (-len(raw) % 4)
        parsed = email.message_from_bytes(base64.urlsafe_b64decode(padded), policy=policy.default)
        self.sent.append({"raw": raw, "thread_id": thread_id, "message": parsed})
        return {"id": f"sent{len(self.sent)}"}

    def modify_labels(self, message_id: str, labels_to_add=(), labels_to_remove=()) -> Dict:
        if message_id in self.fail_modify:
            raise http_error(500)
        message = self.messages[message_id]
        message.labels |= set(labels_to_add)
        message.labels -= set(labels_to_remove)
        return {"id": message_id}

    def create_label(self, label_name: str) -> Dict:
        if any(label["name"] == label_name for label in self.labels):
            raise http_error(409)
        label = {"id": f"Label_{len(self.labels)}", "name": label_name}
        self.labels.append(label)
        self.created_labels.append(label_name)
        return label

    def list_labels(self) -> List[Dict]:
        return list(self.labels)


@pytest.fixture()
def mailbox() -> FakeMailbox:
    return FakeMailbox()


@pytest.fixture()
def responder_config() -> ResponderConfig:
    return ResponderConfig(label_name="Away", reply_body="I am away until Monday.")
