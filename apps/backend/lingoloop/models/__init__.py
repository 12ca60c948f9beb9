from .common import CamelModel
from .vocabulary import (
    ExpressionContent,
    ImageAnalysisResult,
    ReviewLog,
    StudyStats,
    VocabularyItem,
)

__all__ = [
    "CamelModel",
    "ExpressionContent",
    "ImageAnalysisResult",
    "ReviewLog",
    "StudyStats",
    "VocabularyItem",
]
