"""
Unit tests for check-in text analysis and the Gemini client.
"""

import json

import pytest
from pathlib import Path

# Import modules to test
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core import DirectionOfChange, ExternalServiceError, RiskLevel, TextAnalysisContext
from text_analysis import GeminiTextAnalyzer, OfflineTextAnalyzer
from text_analysis.analyzer import (
    SHORT_TRANSCRIPT_SUMMARY,
    UNAVAILABLE_SUMMARY,
    UNPARSABLE_SUMMARY,
    sanitize_response,
)
from text_analysis.gemini_analyzer import build_user_prompt
from utils.gemini_client import GeminiClient, parse_json_response

TRANSCRIPT = (
    "Companion: How has your week been?\n"
    "User: Honestly better than last week, I went running twice and slept well."
)


class FakeClient:
    """Stands in for GeminiClient.generate_json."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.contents = None

    def generate_json(self, contents, modality=None):
        self.contents = contents
        if self.error is not None:
            raise self.error
        return self.response


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FlakyModel:
    """generate_content fails `failures` times before answering."""

    def __init__(self, failures, text='{"ok": true}'):
        self.failures = failures
        self.text = text
        self.calls = 0

    def generate_content(self, contents):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("service unavailable")
        return FakeResponse(self.text)


class TestShortTranscript:
    """Transcripts below the minimum length degrade to neutral."""

    def test_short_transcript_is_neutral(self):
        client = FakeClient(response={'text_score': 90})
        result = GeminiTextAnalyzer(client=client).analyze("ok")

        assert result.text_score == 50.0
        assert result.uncertainty == 0.9
        assert result.risk_level == RiskLevel.NONE
        assert result.direction_of_change == DirectionOfChange.UNCLEAR
        assert result.summary == SHORT_TRANSCRIPT_SUMMARY
        assert result.degraded is True
        assert client.contents is None

    def test_whitespace_does_not_count(self):
        result = OfflineTextAnalyzer().analyze("   hi      ")
        assert result.summary == SHORT_TRANSCRIPT_SUMMARY

    def test_min_length_configurable(self):
        client = FakeClient(response={'text_score': 70, 'uncertainty': 0.2})
        analyzer = GeminiTextAnalyzer({'text': {'min_transcript_length': 2}}, client=client)

        assert analyzer.analyze("fine").text_score == 70.0


class TestDegradation:
    """Backend failures never raise out of analyze()."""

    def test_offline_analyzer_degrades(self):
        result = OfflineTextAnalyzer().analyze(TRANSCRIPT)

        assert result.degraded is True
        assert result.summary == UNAVAILABLE_SUMMARY

    def test_service_error_degrades(self):
        client = FakeClient(error=ExternalServiceError("quota exceeded", attempts=3))
        result = GeminiTextAnalyzer(client=client).analyze(TRANSCRIPT)

        assert result.text_score == 50.0
        assert result.uncertainty == 0.9

    def test_non_object_response_degrades(self):
        client = FakeClient(response=["not", "an", "object"])
        result = GeminiTextAnalyzer(client=client).analyze(TRANSCRIPT)

        assert result.summary == UNPARSABLE_SUMMARY


class TestSanitizeResponse:
    """Validation of raw analysis dicts."""

    def test_valid_response(self):
        result = sanitize_response({
            'themes': ['sleep', 'exercise'],
            'keywords': ['running'],
            'risk_level': 'MILD',
            'direction_of_change': 'better',
            'text_score': 72,
            'uncertainty': 0.25,
            'drivers_positive': ['exercise'],
            'conversation_summary': 'The user had a good week.',
            'notable_quotes': ['I went running twice'],
        })

        assert result.themes == ('sleep', 'exercise')
        assert result.risk_level == RiskLevel.MILD
        assert result.direction_of_change == DirectionOfChange.BETTER
        assert result.text_score == 72.0
        assert result.confidence == pytest.approx(0.75)
        assert result.summary == 'The user had a good week.'
        assert result.degraded is False

    def test_invalid_score_raises_uncertainty(self):
        result = sanitize_response({'text_score': 140, 'uncertainty': 0.1})

        assert result.text_score == 50.0
        assert result.uncertainty == 0.6

    def test_invalid_score_and_uncertainty(self):
        result = sanitize_response({'text_score': 'high', 'uncertainty': 3})

        assert result.text_score == 50.0
        assert result.uncertainty == 0.6

    def test_invalid_uncertainty_only(self):
        result = sanitize_response({'text_score': 80, 'uncertainty': -0.2})

        assert result.text_score == 80.0
        assert result.uncertainty == 0.5

    def test_numeric_strings_accepted(self):
        result = sanitize_response({'text_score': '64', 'uncertainty': '0.3'})

        assert result.text_score == 64.0
        assert result.uncertainty == 0.3

    def test_unknown_enums_and_lists(self):
        result = sanitize_response({
            'risk_level': 'catastrophic',
            'direction_of_change': None,
            'themes': 'sleep',
            'keywords': ['a', None, 3],
            'text_score': 55,
            'uncertainty': 0.4,
        })

        assert result.risk_level == RiskLevel.NONE
        assert result.direction_of_change == DirectionOfChange.UNCLEAR
        assert result.themes == ()
        assert result.keywords == ('a', '3')

    def test_mood_score_kept_when_whole_and_in_range(self):
        assert sanitize_response({'mood_score': 7}).mood_score == 7
        assert sanitize_response({'mood_score': '10'}).mood_score == 10
        assert sanitize_response({'mood_score': 1.0}).mood_score == 1

    @pytest.mark.parametrize("mood", [0, 11, 6.5, 'great', True, None, float('nan')])
    def test_invalid_mood_score_dropped(self, mood):
        assert sanitize_response({'mood_score': mood, 'text_score': 60}).mood_score is None

    def test_mood_score_absent_by_default(self):
        assert sanitize_response({'text_score': 60, 'uncertainty': 0.2}).mood_score is None


class TestGeminiTextAnalyzer:
    """Prompt construction and request flow."""

    def test_request_includes_system_prompt_and_transcript(self):
        client = FakeClient(response={'text_score': 68, 'uncertainty': 0.3, 'risk_level': 'none'})
        context = TextAnalysisContext(checkin_id='c-42', first_name='Sam')

        result = GeminiTextAnalyzer(client=client).analyze(TRANSCRIPT, context)

        assert result.text_score == 68.0
        system_prompt, user_prompt = client.contents
        assert 'JSON' in system_prompt
        assert 'mood_score' in system_prompt
        assert 'went running twice' in user_prompt
        assert '"checkin_id": "c-42"' in user_prompt

    def test_prompt_embeds_previous_context(self):
        context = TextAnalysisContext(
            checkin_id='c-1',
            previous_themes=('work stress',),
            previous_score=61.0,
            previous_direction=DirectionOfChange.WORSE
        )
        prompt = build_user_prompt("transcript text", context)

        start = prompt.index('{')
        end = prompt.index('}') + 1
        embedded = json.loads(prompt[start:end])
        assert embedded['previous_themes'] == ['work stress']
        assert embedded['previous_score'] == 61.0
        assert embedded['previous_direction_of_change'] == 'worse'


class TestParseJsonResponse:
    """Model output cleanup."""

    def test_fenced_json(self):
        text = '```json\n{"text_score": 70}\n```'
        assert parse_json_response(text) == {'text_score': 70}

    def test_prose_around_object(self):
        text = 'Here is the analysis: {"text_score": 70} Hope that helps.'
        assert parse_json_response(text) == {'text_score': 70}

    def test_rejects_non_object(self):
        with pytest.raises(ValueError):
            parse_json_response('[1, 2, 3]')

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            parse_json_response('')


class TestGeminiClient:
    """Bounded retries around generate_content."""

    def test_recovers_after_transient_failures(self):
        model = FlakyModel(failures=2)
        client = GeminiClient(model=model, max_attempts=3, retry_delay=0)

        assert client.generate_json(['prompt']) == {'ok': True}
        assert model.calls == 3

    def test_exhausted_attempts_raise(self):
        model = FlakyModel(failures=5)
        client = GeminiClient(model=model, max_attempts=3, retry_delay=0)

        with pytest.raises(ExternalServiceError) as exc_info:
            client.generate_json(['prompt'])

        assert exc_info.value.attempts == 3
        assert exc_info.value.retryable is True
        assert model.calls == 3

    def test_unparsable_reply_is_retried(self):
        model = FlakyModel(failures=0, text='no json here')
        client = GeminiClient(model=model, max_attempts=2, retry_delay=0)

        with pytest.raises(ExternalServiceError):
            client.generate_json(['prompt'])
        assert model.calls == 2

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv('GEMINI_API_KEY', raising=False)

        with pytest.raises(ValueError):
            GeminiClient()
