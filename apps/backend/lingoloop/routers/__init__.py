"""Router package exports."""

from . import backup, expressions, health, review, stats, visual

__all__ = [
    "backup",
    "expressions",
    "health",
    "review",
    "stats",
    "visual",
]
