from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from utils.config import AccountConfig

LOGGER = logging.getLogger(__name__)
SCOPES: Sequence[str] = (
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.labels",
    "https://mail.google.com/",
)


class AuthService:
    """Credential provider: load, refresh or obtain OAuth2 tokens for the mailbox."""

    def __init__(self, account: AccountConfig, scopes: Sequence[str] = SCOPES):
        self._account = account
        self._scopes = list(scopes)

    def _save_credentials(self, creds: Credentials) -> None:
        LOGGER.debug("Persisting OAuth tokens to %s", self._account.token_file)
        self._account.token_file.parent.mkdir(parents=True, exist_ok=True)
        self._account.token_file.write_text(creds.to_json(), encoding="utf-8")

    def _load_existing_credentials(self) -> Credentials | None:
        token_path: Path = self._account.token_file
        if token_path.exists():
            LOGGER.debug("Loading cached credential from %s", token_path)
            return Credentials.from_authorized_user_file(str(token_path), self._scopes)
        return None

    def authenticate(self) -> Credentials:
        creds = self._load_existing_credentials()
        if creds and creds.valid:
            return creds

        if creds and creds.expired and creds.refresh_token:
            LOGGER.info("Refreshing expired Gmail token")
            try:
                creds.refresh(Request())
            except RefreshError as exc:
                LOGGER.warning("Token refresh failed, falling back to browser login: %s", exc)
            else:
                self._save_credentials(creds)
                return creds

        credentials_file = self._account.credentials_file
        if not credentials_file.exists():
            raise FileNotFoundError(
                f"Missing OAuth client secrets: {credentials_file}. "
                "Download the OAuth client JSON from Google Cloud Console."
            )
        LOGGER.info("Initiating OAuth flow using %s", credentials_file)
        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_file), scopes=self._scopes)
        creds = flow.run_local_server(port=0)
        self._save_credentials(creds)
        return creds
