"""
Check-in transcript analysis with Google Gemini.

The model reads the conversation and returns labels, a 0-100 text score and
a short neutral summary. It is instructed not to advise or reassure: the
output is a measurement, not a reply to the user.
"""

import json
import logging
from typing import Any, Dict, Optional

from core.data_models import TextAnalysisContext
from core.enums import Modality
from utils.gemini_client import GeminiClient
from .analyzer import TextAnalyzer

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """
You analyze short conversational transcripts from wellbeing check-ins and
return a structured JSON analysis of what the user said.

You are not a therapist. Do not give advice, reassurance or instructions.
Only turn the text into labels, scores and a short neutral summary.

Return valid JSON only, with exactly these fields:
{
  "version": "v1.0",
  "themes": [string],               // 2-6 broad areas, e.g. "sleep", "work", "mood", "money"
  "keywords": [string],             // 3-10 concrete phrases from this conversation
  "risk_level": "none|mild|moderate|high",
  "direction_of_change": "better|worse|same|unclear",
  "text_score": integer 0-100,
  "uncertainty": number 0-1,        // 0 = very certain, 1 = very uncertain
  "drivers_positive": [string],     // what helped them cope
  "drivers_negative": [string],     // what pulled their mood down
  "conversation_summary": string,   // 1-2 neutral past-tense sentences, no advice
  "notable_quotes": [string],       // 1-3 short phrases copied from the transcript
  "mood_score": integer 1-10 or null // the rating the user gave when asked to rate their mood
}

risk_level:
- "none": no sign of self harm, suicidal thoughts, feeling unsafe or harming others
- "mild": low, stressed or worried, without self harm or safety language
- "moderate": clear distress, hopelessness or wanting to escape, without explicit self harm
- "high": any mention or clear implication of self harm, wanting to die or being unsafe

direction_of_change compares today with a usual day, using only this conversation.

mood_score: only a number the user stated themselves on a 1-10 scale. Never
infer it from tone; use null when the user gave no rating.

text_score (this conversation only):
- 70-100: mainly positive, calm, manageable, no risk language
- 40-69: mixed, stretched or stressed but coping
- 10-39: clearly low, overwhelmed or struggling
- 0-9: very severe distress or strong risk language
Use the full range; high scores are fine when the person sounds genuinely okay.

uncertainty: ~0.1 for clear, detailed answers; ~0.5 for brief or vague answers;
0.8 or higher when there is very little to work with.

CRITICAL: Return ONLY the JSON object, no additional text.
"""


class GeminiTextAnalyzer(TextAnalyzer):
    """
    Text analyzer backed by Gemini.

    Usage:
        analyzer = GeminiTextAnalyzer(config)  # reads GEMINI_API_KEY
        result = analyzer.analyze(transcript, context)
    """

    def __init__(self, config: Dict = None, client: Optional[GeminiClient] = None):
        super().__init__(config)
        config = config or {}
        gemini_config = config.get('text', {}).get('gemini', {})

        self.client = client or GeminiClient(
            model_name=gemini_config.get('model', 'gemini-2.5-flash'),
            max_attempts=gemini_config.get('max_attempts', 3),
            retry_delay=gemini_config.get('retry_delay', 1.0)
        )

        logger.info("Gemini text analyzer initialized")

    def _request(self, transcript: str, context: TextAnalysisContext) -> Dict[str, Any]:
        prompt = build_user_prompt(transcript, context)
        return self.client.generate_json([SYSTEM_PROMPT, prompt], modality=Modality.TEXT)


def build_user_prompt(transcript: str, context: TextAnalysisContext) -> str:
    """Embed the prior context and the transcript in the user prompt."""
    user_context = {
        'checkin_id': context.checkin_id,
        'first_name': context.first_name,
        'previous_themes': list(context.previous_themes),
        'previous_score': context.previous_score,
        'previous_direction_of_change': (
            context.previous_direction.value if context.previous_direction else None
        ),
    }

    return f"""
Context for this check-in:
{json.dumps(user_context, indent=2)}

Transcript of the conversation between the user and the check-in companion.
Use only what is written here. Do not invent information.

TRANSCRIPT START
{transcript}
TRANSCRIPT END

Now produce a single JSON object with the fields described above.
""".strip()
