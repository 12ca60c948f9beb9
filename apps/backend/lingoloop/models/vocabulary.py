from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from ..id_factory import generate_item_id
from ..srs import (
    INITIAL_EASE_FACTOR,
    MIN_EASE_FACTOR,
    SRSState,
    current_millis,
    initial_state,
)
from .common import CamelModel


class ExpressionContent(CamelModel):
    """AI-generated study material for one expression.

    見出し表現に対して生成される学習コンテンツ（定義・例文・利用シーン）。
    """

    definition: str = Field(min_length=1)
    examples: list[str] = Field(default_factory=list)
    scenario: str = ""

    @field_validator("examples", mode="before")
    @classmethod
    def _clean_examples(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        cleaned: list[str] = []
        for entry in value:  # type: ignore[union-attr]
            text = str(entry or "").strip()
            if text:
                cleaned.append(text)
        return cleaned


class VocabularyItem(CamelModel):
    """One learnable expression and its scheduling state.

    コンテンツ部分（expression / definition / examples / scenario）はスケジューラ
    から見て不透明。SRS の4フィールドは `apply_srs` でまとめて置き換える。
    """

    id: str = Field(min_length=1)
    expression: str
    definition: str = ""
    examples: list[str] = Field(default_factory=list)
    scenario: str = ""
    created_at: int

    repetition: int = Field(default=0, ge=0)
    interval: int = Field(default=0, ge=0)
    ease_factor: float = Field(default=INITIAL_EASE_FACTOR, ge=MIN_EASE_FACTOR)
    next_review_date: int

    @classmethod
    def create(
        cls,
        expression: str,
        content: ExpressionContent,
        *,
        now_ms: int | None = None,
        item_id: str | None = None,
    ) -> "VocabularyItem":
        """Build a new item with the initial SRS state (due immediately)."""

        now = current_millis() if now_ms is None else int(now_ms)
        state = initial_state(now)
        return cls(
            id=item_id or generate_item_id(),
            expression=expression.strip(),
            definition=content.definition,
            examples=list(content.examples),
            scenario=content.scenario,
            created_at=now,
            **state.as_dict(),
        )

    @property
    def srs_state(self) -> SRSState:
        return SRSState(
            repetition=self.repetition,
            interval=self.interval,
            ease_factor=self.ease_factor,
            next_review_date=self.next_review_date,
        )

    def apply_srs(self, state: SRSState) -> "VocabularyItem":
        """Return a copy with exactly the four SRS fields replaced."""

        return self.model_copy(
            update={
                "repetition": state.repetition,
                "interval": state.interval,
                "ease_factor": state.ease_factor,
                "next_review_date": state.next_review_date,
            }
        )


class ReviewLog(CamelModel):
    """履歴として残す1回分の評価結果。"""

    item_id: str
    quality: int = Field(ge=0, le=5)
    reviewed_at: int
    repetition: int
    interval: int
    ease_factor: float
    next_review_date: int

    @classmethod
    def from_state(
        cls, item_id: str, quality: int, reviewed_at: int, state: SRSState
    ) -> "ReviewLog":
        return cls(item_id=item_id, quality=quality, reviewed_at=reviewed_at, **state.as_dict())


class ImageAnalysisResult(CamelModel):
    narrative: str = ""
    vocabulary: list[str] = Field(default_factory=list)


class StudyStats(CamelModel):
    total_items: int = 0
    items_due: int = 0
    retention_rate: int = 0
    streak: int = 0


# --- request / response models ---


class ExpressionCreateRequest(CamelModel):
    """Request model for generating and saving a new expression.

    入力された英語表現から学習コンテンツを生成し、語彙アイテムとして保存する。
    """

    expression: str = Field(min_length=1, max_length=200, description="英語表現（1..200文字）")


class ManualExpressionRequest(CamelModel):
    """Save an expression with caller-provided content (no generation)."""

    expression: str = Field(min_length=1, max_length=200)
    definition: str = Field(min_length=1)
    examples: list[str] = Field(default_factory=list)
    scenario: str = ""


class VocabularyListResponse(CamelModel):
    items: list[VocabularyItem]
    total: int


class ReviewRatingRequest(CamelModel):
    """評価値。型と範囲のチェックはスケジューラ側で行い InvalidRating として返す。

    3.5 や "3" もここでは受け付け、`validate_quality` が reason_code 付きで拒否する。
    """

    quality: Any = Field(...)


class ReviewRatingResponse(CamelModel):
    item: VocabularyItem
    quality: int


class ReviewSessionView(CamelModel):
    session_id: str
    total: int
    position: int
    remaining: int
    completed: bool
    current: VocabularyItem | None = None


class ImageAnalysisRequest(CamelModel):
    image_base64: str = Field(min_length=1)
    mime_type: str = Field(default="image/jpeg", pattern=r"^image/[A-Za-z0-9.+-]+$")


class QuickDefinitionRequest(CamelModel):
    text: str = Field(min_length=1, max_length=200)
    context: str = ""


class QuickDefinitionResponse(CamelModel):
    text: str
    definition: str


class SyncResponse(CamelModel):
    pushed: int


class BackupImportResponse(CamelModel):
    imported: int
