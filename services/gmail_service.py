from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

import google_auth_httplib2
import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from services.auth_service import AuthService
from utils.config import AccountConfig

LOGGER = logging.getLogger(__name__)
INBOX_LABEL = "INBOX"


class GmailService:
    """Wrapper around the Gmail API calls the responder loop needs."""

    def __init__(
        self,
        account: AccountConfig,
        auth_service: AuthService,
        timeout: Optional[float] = None,
        client=None,
    ):
        self._account = account
        self._auth_service = auth_service
        self._client = client if client is not None else self._build_client(timeout)

    def _build_client(self, timeout: Optional[float]):
        creds = self._auth_service.authenticate()
        if timeout is None:
            return build("gmail", "v1", credentials=creds, cache_discovery=False)
        http = google_auth_httplib2.AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
        return build("gmail", "v1", http=http, cache_discovery=False)

    @property
    def user_id(self) -> str:
        return self._account.user_id

    def list_messages(self, query: str) -> List[Dict]:
        """Return every ``{id, threadId}`` stub matching a Gmail search query."""

        messages: List[Dict] = []
        page_token: Optional[str] = None
        while True:
            try:
                response = (
                    self._client.users()
                    .messages()
                    .list(userId=self.user_id, q=query, pageToken=page_token)
                    .execute()
                )
            except HttpError as exc:
                LOGGER.error("Failed to list messages for %r: %s", query, exc)
                raise
            messages.extend(response.get("messages", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        LOGGER.debug("Query %r matched %s message(s)", query, len(messages))
        return messages

    def get_headers(self, message_id: str, header_names: Sequence[str]) -> Dict[str, str]:
        """Fetch only the named headers of a message, keyed by lower-cased name."""

        response = (
            self._client.users()
            .messages()
            .get(
                userId=self.user_id,
                id=message_id,
                format="metadata",
                metadataHeaders=list(header_names),
            )
            .execute()
        )
        return headers_to_dict(response.get("payload", {}).get("headers", []))

    def send_raw(self, raw: str, thread_id: str | None = None) -> Dict:
        body: Dict[str, str] = {"raw": raw}
        if thread_id:
            body["threadId"] = thread_id
        response = self._client.users().messages().send(userId=self.user_id, body=body).execute()
        LOGGER.debug("Sent message %s", response.get("id"))
        return response

    def modify_labels(
        self,
        message_id: str,
        labels_to_add: Sequence[str] = (),
        labels_to_remove: Sequence[str] = (),
    ) -> Dict:
        body = {"addLabelIds": list(labels_to_add), "removeLabelIds": list(labels_to_remove)}
        response = (
            self._client.users()
            .messages()
            .modify(userId=self.user_id, id=message_id, body=body)
            .execute()
        )
        LOGGER.debug("Modified labels on %s: +%s -%s", message_id, labels_to_add, labels_to_remove)
        return response

    def create_label(self, label_name: str) -> Dict:
        body = {"name": label_name, "labelListVisibility": "labelShow", "messageListVisibility": "show"}
        return self._client.users().labels().create(userId=self.user_id, body=body).execute()

    def list_labels(self) -> List[Dict]:
        response = self._client.users().labels().list(userId=self.user_id).execute()
        return response.get("labels", [])


def headers_to_dict(headers: Sequence[Dict[str, str]]) -> Dict[str, str]:
    mapped: Dict[str, str] = {}
    for header in headers:
        name = header.get("name", "").lower()
        value = header.get("value", "")
        mapped[name] = value
    return mapped


def is_conflict(exc: HttpError) -> bool:
    return getattr(exc.resp, "status", None) == 409
