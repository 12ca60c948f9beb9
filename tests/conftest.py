"""Pytest configuration shared by the backend test suite."""

import os
import sys
from pathlib import Path

# lingoloop パッケージを未インストールのままでも import できるようにする
_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "apps" / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

# モジュール読み込み時に Settings() が評価されるため、import 前に既定値を与える。
# 外部サービス（OpenAI / Firestore）へは接続しない構成で起動する。
os.environ.setdefault("STRICT_MODE", "false")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LLM_PROVIDER", "local")
os.environ.setdefault("ENVIRONMENT", "test")
