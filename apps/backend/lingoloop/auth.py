"""Request-scoped user resolution.

認証そのものは上流（ゲートウェイ / フロントエンド）で完了している前提とし、
バックエンドは `X-User-Id` ヘッダで渡されたユーザ ID でデータを分離するだけに留める。
"""

from __future__ import annotations

import re

from fastapi import Header, HTTPException

from .config import settings

# Firestore のドキュメント ID に使えない文字（/ など）を含む ID は拒否する
_USER_ID_RE = re.compile(r"^[A-Za-z0-9_.@+-]{1,128}$")


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    user_id = (x_user_id or "").strip() or settings.default_user_id
    if not _USER_ID_RE.match(user_id):
        raise HTTPException(status_code=400, detail="invalid X-User-Id header")
    return user_id
