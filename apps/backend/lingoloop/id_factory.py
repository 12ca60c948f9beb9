"""ID 生成ユーティリティ。

語彙アイテムの ID は Firestore のドキュメントパスにもそのまま使うため、
スラッシュ等を含まない UUID 文字列に限定する。
"""

from __future__ import annotations

import uuid


def generate_item_id() -> str:
    """語彙アイテムの新規 ID を生成する。"""

    return str(uuid.uuid4())


def generate_session_id() -> str:
    """復習セッションの ID を生成する。"""

    return f"rs:{uuid.uuid4().hex}"
