"""Structured logging for the LingoLoop API.

structlog で JSON 1行のイベントを出力する。リクエスト単位で request_id と
user_id を contextvars に束縛し、評価ログ（review_rated など）にも自動で載せる。
OpenAI の API キーなどがイベントに紛れ込んだ場合はレンダリング前に伏せる。
"""

from typing import Any

import logging
import structlog
from structlog import contextvars as structlog_contextvars
from .config import settings


SERVICE_NAME = "lingoloop"
_REQUEST_CONTEXT_KEYS = ("request_id", "user_id")
_SECRET_KEY_PARTS = ("api_key", "token", "secret", "authorization", "password", "key")
_HIDDEN = "***"


def mask_secret(raw: object) -> str:
    """Keep the first and last 4 characters of long values; hide short ones entirely."""

    text = "" if raw is None else str(raw).strip()
    if len(text) <= 8:
        return _HIDDEN
    return f"{text[:4]}…{text[-4:]}"


def _looks_secret(key: str) -> bool:
    return any(part in key.lower() for part in _SECRET_KEY_PARTS)


def _scrub(value: Any, key: str, known_secrets: tuple[str, ...]) -> Any:
    if isinstance(value, dict):
        return {k: _scrub(v, str(k), known_secrets) for k, v in value.items()}
    if isinstance(value, str):
        for secret in known_secrets:
            value = value.replace(secret, mask_secret(secret))
    if _looks_secret(key):
        return mask_secret(value)
    return value


def _sanitize_event_dict(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Mask secret-looking keys and known secret literals (nested dicts included).

    イベント名（`event`）自体は書き換えない。
    """

    known_secrets = tuple(s for s in (settings.openai_api_key,) if s)
    for key, value in list(event_dict.items()):
        if key == "event":
            continue
        event_dict[key] = _scrub(value, str(key), known_secrets)
    return event_dict


def _add_service(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def bind_request_context(request_id: str, user_id: str | None = None) -> None:
    """Bind request-scoped fields so every event logged during the request carries them."""

    structlog_contextvars.bind_contextvars(request_id=request_id)
    if user_id:
        structlog_contextvars.bind_contextvars(user_id=user_id)


def clear_request_context() -> None:
    structlog_contextvars.unbind_contextvars(*_REQUEST_CONTEXT_KEYS)


def configure_logging() -> None:
    """Configure stdlib logging and structlog for JSON output.

    標準 logging は INFO・メッセージのみのフォーマットに揃え（uvicorn のハンドラも
    force=True で置き換える）、structlog 側で ISO タイムスタンプ付き JSON を出す。
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog_contextvars.merge_contextvars,
            _add_service,
            _sanitize_event_dict,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()
