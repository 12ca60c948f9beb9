"""LingoLoop backend: vocabulary capture and spaced-repetition review."""

__version__ = "0.1.0"
