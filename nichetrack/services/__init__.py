"""
Services module.

Contains external service integrations like AI summarization.
"""

from nichetrack.services.summarizer import (
    AISummarizer,
    ProbeResult,
    TrendAnalysis,
    TREND_CATEGORIES,
)

__all__ = [
    "AISummarizer",
    "ProbeResult",
    "TrendAnalysis",
    "TREND_CATEGORIES",
]
