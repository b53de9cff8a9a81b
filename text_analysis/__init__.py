"""
Check-in transcript analysis.

TextAnalyzer defines the collaborator boundary and the neutral-result
degradation policy; GeminiTextAnalyzer and OfflineTextAnalyzer are the
shipped backends.
"""

from .analyzer import OfflineTextAnalyzer, TextAnalyzer, sanitize_response
from .gemini_analyzer import GeminiTextAnalyzer, build_user_prompt

__all__ = [
    'TextAnalyzer',
    'OfflineTextAnalyzer',
    'GeminiTextAnalyzer',
    'sanitize_response',
    'build_user_prompt',
]
