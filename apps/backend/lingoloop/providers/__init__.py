"""プロバイダー向けの共有ステート初期化と公開APIを管理するパッケージ。"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

# LLM クライアントのシングルトン。オーバーライド付き呼び出しでは再生成される。
_LLM_INSTANCE: Any | None = None
# LLM 呼び出しをタイムアウト制御付きで実行するためのスレッドプール。
_llm_executor: ThreadPoolExecutor = ThreadPoolExecutor(max_workers=4)


def _get_llm_instance() -> Any | None:
    """LLM シングルトンの現在値を返す。"""

    return _LLM_INSTANCE


def _set_llm_instance(instance: Any | None) -> None:
    """LLM シングルトンを更新する。テストでは None へ戻し再初期化する。"""

    global _LLM_INSTANCE
    _LLM_INSTANCE = instance


def _get_llm_executor() -> ThreadPoolExecutor:
    """LLM ラッパーが共有するスレッドプールを返す。"""

    global _llm_executor
    if getattr(_llm_executor, "_shutdown", False):
        _llm_executor = ThreadPoolExecutor(max_workers=4)
    return _llm_executor


from .llm import LLMClient, get_llm_provider, shutdown_providers  # noqa: E402

__all__ = [
    "LLMClient",
    "get_llm_provider",
    "shutdown_providers",
]
