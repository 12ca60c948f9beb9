"""Flow 基盤ユーティリティ。lingoloop.providers の LLM と連携する。"""

from __future__ import annotations

import json
import re
from typing import Any

from langgraph.graph import END, START, StateGraph


class ContentGenerationError(RuntimeError):
    """LLM によるコンテンツ生成の失敗（空応答・JSON 不正・必須項目欠落）。"""

    def __init__(self, message: str, *, reason_code: str = "LLM_FAILURE") -> None:
        self.reason_code = reason_code
        super().__init__(message)


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_object(text: str) -> dict[str, Any]:
    """LLM 出力から JSON オブジェクトを取り出す。

    コードフェンスや前後の説明文が付いていても、最初の `{` から最後の `}` までを
    解析対象にする。オブジェクトでなければ ContentGenerationError。
    """

    cleaned = _FENCE_RE.sub("", (text or "").strip())
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start < 0 or end <= start:
        raise ContentGenerationError("LLM output contained no JSON object", reason_code="LLM_JSON_PARSE")
    try:
        parsed = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ContentGenerationError(
            f"LLM output is not valid JSON: {exc.msg}", reason_code="LLM_JSON_PARSE"
        ) from exc
    if not isinstance(parsed, dict):
        raise ContentGenerationError("LLM output is not a JSON object", reason_code="LLM_JSON_PARSE")
    return parsed


def build_linear_graph(state_schema: type, steps: list[tuple[str, Any]]) -> Any:
    """Compile a LangGraph pipeline that runs `steps` in order."""

    graph = StateGraph(state_schema)
    for name, fn in steps:
        graph.add_node(name, fn)
    graph.add_edge(START, steps[0][0])
    for (current, _), (following, _) in zip(steps, steps[1:]):
        graph.add_edge(current, following)
    graph.add_edge(steps[-1][0], END)
    return graph.compile()


__all__ = ["ContentGenerationError", "build_linear_graph", "parse_json_object"]
