from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_LABEL_NAME = "Vacation Auto-Reply"
DEFAULT_POLL_INTERVAL: Tuple[int, int] = (45, 120)
DEFAULT_REPLY_BODY = """Hello,

Thank you for reaching out. I am currently out of the office and on vacation.
During this time I will have limited access to email and may not be able to
respond promptly.

I will get back to you as soon as possible after my return.

Best regards"""


@dataclass(slots=True, frozen=True)
class ResponderConfig:
    """Settings consumed by the responder loop itself."""

    label_name: str = DEFAULT_LABEL_NAME
    poll_interval_range: Tuple[int, int] = DEFAULT_POLL_INTERVAL
    reply_body: str = DEFAULT_REPLY_BODY

    def __post_init__(self) -> None:
        low, high = self.poll_interval_range
        if low <= 0 or high < low:
            raise ValueError(f"Invalid poll interval range: {self.poll_interval_range}")
        if not self.label_name.strip():
            raise ValueError("Label name must not be empty")


@dataclass(slots=True)
class AccountConfig:
    credentials_file: Path
    token_file: Path
    user_id: str


@dataclass(slots=True)
class AppConfig:
    account: AccountConfig
    responder: ResponderConfig
    log_dir: Path
    log_level: str
    db_path: Path
    stats_file: Path
    http_timeout: Optional[float]
    host: str
    port: int


def _resolve_path(value: str | None, fallback: str) -> Path:
    candidate = Path(value or fallback)
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


def _maybe_write_secret_file(target: Path, inline_value: str | None, b64_value: str | None) -> None:
    if not inline_value and not b64_value:
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    if inline_value:
        target.write_text(inline_value, encoding="utf-8")
        return
    try:
        decoded = base64.b64decode(b64_value or "", validate=True)
    except ValueError as exc:
        raise ValueError("Failed to decode base64 secret payload") from exc
    target.write_bytes(decoded)


def _read_reply_body() -> str:
    if body_file := os.getenv("REPLY_BODY_FILE"):
        return _resolve_path(body_file, "").read_text(encoding="utf-8").strip()
    return os.getenv("REPLY_BODY") or DEFAULT_REPLY_BODY


def load_config(env_file: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load configuration values from a .env file and environment variables."""

    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    credentials_file = _resolve_path(os.getenv("GOOGLE_CLIENT_SECRETS"), "credentials.json")
    token_file = _resolve_path(os.getenv("GOOGLE_TOKEN_PATH"), "token.json")
    log_dir = _resolve_path(os.getenv("LOG_DIR"), "logs")
    db_path = _resolve_path(os.getenv("DB_PATH"), "data/vacation_responder.db")
    stats_file = _resolve_path(os.getenv("STATS_FILE"), "data/stats.json")

    log_dir.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    stats_file.parent.mkdir(parents=True, exist_ok=True)

    _maybe_write_secret_file(
        credentials_file,
        os.getenv("GOOGLE_CLIENT_SECRETS_JSON"),
        os.getenv("GOOGLE_CLIENT_SECRETS_B64"),
    )
    _maybe_write_secret_file(
        token_file,
        os.getenv("GOOGLE_TOKEN_JSON"),
        os.getenv("GOOGLE_TOKEN_B64"),
    )

    user_id = os.getenv("GMAIL_USER_ID", "me")
    responder = ResponderConfig(
        label_name=os.getenv("LABEL_NAME", DEFAULT_LABEL_NAME),
        poll_interval_range=(
            int(os.getenv("POLL_INTERVAL_MIN", str(DEFAULT_POLL_INTERVAL[0]))),
            int(os.getenv("POLL_INTERVAL_MAX", str(DEFAULT_POLL_INTERVAL[1]))),
        ),
        reply_body=_read_reply_body(),
    )

    timeout = os.getenv("HTTP_TIMEOUT_SECONDS")

    return AppConfig(
        account=AccountConfig(
            credentials_file=credentials_file,
            token_file=token_file,
            user_id=user_id,
        ),
        responder=responder,
        log_dir=log_dir,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        db_path=db_path,
        stats_file=stats_file,
        http_timeout=float(timeout) if timeout else None,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "1570")),
    )
