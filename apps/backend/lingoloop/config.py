from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DB_PATH = ".data/lingoloop.sqlite3"
_STORAGE_BACKENDS = frozenset({"memory", "sqlite", "firestore", "synced"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    環境変数から読み込まれるアプリ設定クラス。
    - environment: 実行環境（development/staging/production など）
    - llm_provider: 学習コンテンツ生成に利用する LLM プロバイダ
    - storage_backend: 語彙アイテムの永続化先
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )
    llm_provider: str = Field(
        default="openai",
        description="LLM service provider / 利用するLLMプロバイダ",
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="LLM model name / 利用するLLMモデル名",
    )
    llm_vision_model: str | None = Field(
        default=None,
        description=(
            "Model used for image analysis (falls back to llm_model) / "
            "画像解析に利用するモデル名（未指定なら llm_model）"
        ),
    )
    llm_temperature: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for generation / 生成時の温度",
    )

    # --- LLM 呼出しのタイムアウト/リトライ ---
    llm_timeout_ms: int = Field(
        default=60000,
        description="Per-attempt timeout for LLM calls (ms) / LLM呼出しの試行毎タイムアウト(ms)",
    )
    llm_max_retries: int = Field(
        default=1,
        description="Max retries for LLM calls / LLM呼出しの最大リトライ回数",
    )
    llm_max_tokens: int = Field(
        default=900,
        description="Max tokens for LLM completion output / LLM出力の最大トークン数",
    )

    # --- API Keys ---
    openai_api_key: str | None = Field(default=None, description="OpenAI API Key")

    # --- データ永続化設定 ---
    storage_backend: str = Field(
        default="sqlite",
        description=(
            "Vocabulary store backend: memory/sqlite/firestore/synced / "
            "語彙ストアの種類（memory/sqlite/firestore/synced）"
        ),
    )
    lingoloop_db_path: str = Field(
        default=DEFAULT_DB_PATH,
        description="Path to local SQLite database / ローカル SQLite DB パス",
        validation_alias=AliasChoices("lingoloop_db_path", "srs_db_path"),
    )
    firestore_project_id: str | None = Field(
        default=None,
        description="Firestore project id / Firestore のプロジェクトID",
    )
    firestore_emulator_host: str | None = Field(
        default=None,
        description="Firestore emulator host (host:port) / Firestore エミュレータのホスト",
    )
    default_user_id: str = Field(
        default="local",
        description="User id used when X-User-Id is absent / X-User-Id 未指定時のユーザID",
    )

    # --- 復習セッション ---
    review_session_limit: int = Field(
        default=0,
        ge=0,
        description="Max cards per review session (0 = unlimited) / 1セッションの最大出題数（0は無制限）",
    )
    review_session_ttl_seconds: int = Field(
        default=60 * 60 * 6,
        description="Idle lifetime of a review session (s) / 復習セッションの有効期間（秒）",
    )

    # --- Strict mode ---
    strict_mode: bool = Field(
        default=True,
        description="Fail fast on missing/invalid configuration (disable only for tests)",
    )

    # Pydantic v2 settings config
    # - env_file: .env を読み込む
    # - extra: .env に存在する未使用キーを無視
    # - case_sensitive: 環境変数キーの大小文字を区別しない
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("storage_backend", mode="before")
    @classmethod
    def _normalise_storage_backend(cls, value: object) -> str:
        """Lower-case the backend name and reject unknown stores."""

        name = str(value or "").strip().lower() or "sqlite"
        if name not in _STORAGE_BACKENDS:
            raise ValueError(
                f"STORAGE_BACKEND must be one of {sorted(_STORAGE_BACKENDS)}, got {name!r}"
            )
        return name

    @field_validator("default_user_id", mode="after")
    @classmethod
    def _strip_default_user(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("DEFAULT_USER_ID must not be empty")
        return cleaned


settings = Settings()
