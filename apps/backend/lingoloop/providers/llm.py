"""LLM プロバイダを司るモジュール。"""

from __future__ import annotations

import contextvars
import time
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any

from openai import OpenAI

from ..config import settings
from ..logging import logger
from . import _get_llm_executor, _get_llm_instance, _set_llm_instance


class LLMClient:
    """LLM クライアントが実装すべき最小インターフェース。"""

    def complete(self, prompt: str) -> str:  # pragma: no cover - interface definition
        raise NotImplementedError

    def complete_with_image(
        self, prompt: str, image_base64: str, mime_type: str
    ) -> str:  # pragma: no cover - interface definition
        raise NotImplementedError


class _LocalEchoLLM(LLMClient):
    """外部依存が利用できない環境でのフォールバック LLM。"""

    def complete(self, prompt: str) -> str:
        logger.info(
            "llm_complete_call",
            provider="local",
            model="echo",
            prompt_chars=len(prompt),
        )
        return ""

    def complete_with_image(self, prompt: str, image_base64: str, mime_type: str) -> str:
        logger.info(
            "llm_complete_call",
            provider="local",
            model="echo",
            prompt_chars=len(prompt),
            image_chars=len(image_base64),
            mime_type=mime_type,
        )
        return ""


class _OpenAILLM(LLMClient):  # pragma: no cover - オンライン利用が前提
    """OpenAI Responses API を利用する LLM ラッパー。"""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        vision_model: str | None = None,
        temperature: float | None = None,
    ) -> None:
        self._client = OpenAI(api_key=api_key)
        self._model = model
        self._vision_model = vision_model or model
        self._temperature = 0.2 if temperature is None else float(max(0.0, min(1.0, temperature)))

    def _extract_text(self, resp: Any) -> str:
        """Responses API のレスポンスから本文を抜き出す。"""

        txt = getattr(resp, "output_text", None)
        if isinstance(txt, str) and txt.strip():
            return txt.strip()
        data = resp if isinstance(resp, dict) else resp.model_dump()
        for output in data.get("output") or []:
            for content in (output or {}).get("content") or []:
                text = (content or {}).get("text")
                if isinstance(text, str) and text.strip():
                    return text.strip()
        return ""

    def _create(self, *, model: str, input_payload: Any, include_temperature: bool) -> Any:
        kwargs: dict[str, Any] = {
            "model": model,
            "input": input_payload,
            "max_output_tokens": int(settings.llm_max_tokens),
            "timeout": settings.llm_timeout_ms / 1000.0,
        }
        if include_temperature:
            kwargs["temperature"] = self._temperature
        return self._client.responses.create(**kwargs)

    def _call(self, *, model: str, input_payload: Any, prompt_chars: int) -> str:
        logger.info(
            "llm_complete_call",
            provider="openai",
            model=model,
            prompt_chars=prompt_chars,
        )
        try:
            resp = self._create(model=model, input_payload=input_payload, include_temperature=True)
        except Exception as exc:
            text = (str(exc) or "").lower()
            if "temperature" in text and ("unsupported" in text or "only the default" in text):
                logger.info(
                    "llm_complete_retry_without_temperature",
                    provider="openai",
                    model=model,
                    reason=str(exc)[:200],
                )
                resp = self._create(
                    model=model, input_payload=input_payload, include_temperature=False
                )
            else:
                raise
        content = self._extract_text(resp)
        logger.info(
            "llm_complete_result",
            provider="openai",
            model=model,
            content_chars=len(content),
            preview=content[:120],
        )
        return content

    def complete(self, prompt: str) -> str:
        return self._call(model=self._model, input_payload=prompt, prompt_chars=len(prompt))

    def complete_with_image(self, prompt: str, image_base64: str, mime_type: str) -> str:
        payload = [
            {
                "role": "user",
                "content": [
                    {"type": "input_text", "text": prompt},
                    {
                        "type": "input_image",
                        "image_url": f"data:{mime_type};base64,{image_base64}",
                    },
                ],
            }
        ]
        return self._call(model=self._vision_model, input_payload=payload, prompt_chars=len(prompt))


def _classify_failure(exc: Exception | None) -> tuple[str, str]:
    """例外内容から (base_msg, reason_code) を推定する。"""

    text = (str(exc) or "") if exc else ""
    etype = type(exc).__name__ if exc else "None"
    low = text.lower()
    if isinstance(exc, FuturesTimeout) or "timeout" in low:
        return "LLM timeout", "TIMEOUT"
    if "rate limit" in low or "too many requests" in low or "429" in low or "ratelimit" in etype.lower():
        return "LLM failure", "RATE_LIMIT"
    if "auth" in low or "invalid api key" in low or "unauthorized" in low or "401" in low:
        return "LLM failure", "AUTH"
    return "LLM failure", "UNKNOWN"


def _llm_with_policy(llm: LLMClient) -> LLMClient:
    """タイムアウトとリトライを付与した LLM ラッパーを返す。"""

    class _Wrapped(LLMClient):
        def _run(self, fn: Any, *args: Any) -> str:
            last_exc: Exception | None = None
            attempts = max(1, settings.llm_max_retries)
            for attempt in range(1, attempts + 1):
                future = None
                try:
                    ctx = contextvars.copy_context()
                    future = _get_llm_executor().submit(ctx.run, fn, *args)
                    result = future.result(timeout=settings.llm_timeout_ms / 1000.0)
                    if result == "":
                        logger.info("llm_complete_empty", attempt=attempt, retries=attempts)
                    return result
                except Exception as exc:
                    last_exc = exc
                    logger.info(
                        "llm_complete_error",
                        attempt=attempt,
                        retries=attempts,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    if future is not None:
                        future.cancel()
                    if attempt >= attempts:
                        break
                    time.sleep(0.1 * attempt)
            logger.info(
                "llm_complete_failed_all_retries",
                error=str(last_exc) if last_exc else None,
                error_type=(type(last_exc).__name__ if last_exc else None),
            )
            if settings.strict_mode:
                base_msg, reason_code = _classify_failure(last_exc)
                etype = type(last_exc).__name__ if last_exc else "None"
                detail = (str(last_exc) or "")[:256] if last_exc else ""
                raise RuntimeError(
                    f"{base_msg} (reason_code={reason_code}, error_type={etype}, detail={detail})"
                )
            return ""

        def complete(self, prompt: str) -> str:
            return self._run(llm.complete, prompt)

        def complete_with_image(self, prompt: str, image_base64: str, mime_type: str) -> str:
            return self._run(llm.complete_with_image, prompt, image_base64, mime_type)

    return _Wrapped()


def _local_fallback(reason: str, **fields: Any) -> LLMClient:
    logger.info("llm_provider_select", provider="local", reason=reason, **fields)
    fallback = _llm_with_policy(_LocalEchoLLM())
    _set_llm_instance(fallback)
    return fallback


def get_llm_provider() -> LLMClient:
    """設定値に応じた LLM クライアントを返す（プロセス内シングルトン）。"""

    instance = _get_llm_instance()
    if instance is not None:
        return instance

    provider = (settings.llm_provider or "").lower()
    if provider in {"", "local"}:
        if settings.strict_mode:
            raise RuntimeError("LLM_PROVIDER must be 'openai' in strict mode")
        return _local_fallback("configured")

    if provider == "openai":
        api_key = settings.openai_api_key
        if not api_key:
            if settings.strict_mode:
                raise RuntimeError(
                    "OPENAI_API_KEY is required for LLM_PROVIDER=openai (strict mode)"
                )
            return _local_fallback("missing_api_key")
        llm = _OpenAILLM(
            api_key=api_key,
            model=settings.llm_model,
            vision_model=settings.llm_vision_model,
            temperature=settings.llm_temperature,
        )
        logger.info("llm_provider_select", provider="openai", model=settings.llm_model)
        wrapped = _llm_with_policy(llm)
        _set_llm_instance(wrapped)
        return wrapped

    if settings.strict_mode:
        raise RuntimeError(f"Unknown LLM provider: {provider}")
    return _local_fallback("unknown_provider", requested=provider)


def shutdown_providers() -> None:
    """共有スレッドプールと LLM シングルトンを解放する。"""

    _get_llm_executor().shutdown(wait=False, cancel_futures=True)
    _set_llm_instance(None)
