"""Capture decision engine for mnemograph.

Decides whether conversational text becomes a memory and computes its
language, category and importance.
"""

from mnemograph.capture.engine import (
    CaptureEngine,
    calculate_importance,
    classify,
    detect_category,
    detect_language,
    extract_message_texts,
    should_capture,
)

__all__ = [
    "CaptureEngine",
    "calculate_importance",
    "classify",
    "detect_category",
    "detect_language",
    "extract_message_texts",
    "should_capture",
]
