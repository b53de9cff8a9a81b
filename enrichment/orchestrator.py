"""
Enrichment orchestrator: one assessment from captured media to a fused score.

Workflow:
1. Run audio extraction, visual extraction and (check-in) text analysis
   concurrently, each in its own isolated attempt
2. Normalize the surviving feature sets to modality scores
3. Fuse with the anchor (clinical score or text analysis)
4. Assemble one immutable EnrichmentResult and hand it to the result store

Failure policy:
- A failing modality becomes weight 0 plus a warning; it never aborts
  the other attempts or the assessment
- Only a missing anchor fails a baseline (invalid clinical score)
- A check-in always has an anchor: the text analyzer degrades to a
  neutral result, and if it raises anyway the neutral result is substituted
- Persistence failures are logged and recorded as warnings
"""

import dataclasses
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.data_models import (
    AudioFeatureSet, CapturedMedia, EnrichmentResult, FusionDegradedWarning, ModalityScore,
    PersonalBaseline, ScoringBreakdown, TextAnalysisContext, TextAnalysisResult, VisualFeatureSet
)
from core.enums import AssessmentMode, DegradationCode, Modality
from core.errors import AssessmentError, InsufficientDataError
from core.numeric import is_finite
from fusion import ScoringFusionEngine
from scoring import score_audio_features, score_visual_features
from utils.result_store import ResultStore

logger = logging.getLogger(__name__)

_Attempt = Tuple[Any, Optional[Exception]]

_FAILURE_CODES = {
    # modality: (code when no usable input, code on any other failure)
    Modality.AUDIO: (DegradationCode.NO_AUDIO, DegradationCode.AUDIO_FAILED),
    Modality.VISUAL: (DegradationCode.NO_VIDEO, DegradationCode.VISUAL_FAILED),
}


def _attempt(func: Callable[[], Any]) -> _Attempt:
    """Run func, capturing its exception instead of propagating it."""
    try:
        return func(), None
    except Exception as e:
        return None, e


class EnrichmentOrchestrator:
    """
    Run one baseline or check-in assessment end to end.

    Collaborators are injected; the orchestrator keeps no per-assessment
    state, so one instance may serve concurrent assessments.

    Usage:
        orchestrator = EnrichmentOrchestrator(audio_extractor, visual_extractor,
                                              text_analyzer, config=config)
        result = orchestrator.enrich_checkin(transcript, media)
    """

    def __init__(
        self,
        audio_extractor,
        visual_extractor,
        text_analyzer,
        fusion_engine: Optional[ScoringFusionEngine] = None,
        result_store: Optional[ResultStore] = None,
        config: Dict = None
    ):
        """
        Args:
            audio_extractor: Object with extract(media) -> AudioFeatureSet
            visual_extractor: Object with extract(media) -> VisualFeatureSet
            text_analyzer: TextAnalyzer (check-in anchor)
            fusion_engine: Fusion engine (built from config if omitted)
            result_store: Optional persistence collaborator
            config: Configuration dict
        """
        self.config = config or {}
        self.audio_extractor = audio_extractor
        self.visual_extractor = visual_extractor
        self.text_analyzer = text_analyzer
        self.fusion_engine = fusion_engine or ScoringFusionEngine(self.config)
        self.result_store = result_store
        self.max_workers = self.config.get('enrichment', {}).get('max_workers', 3)

        logger.info(
            f"Enrichment orchestrator initialized "
            f"(max_workers={self.max_workers}, store={'yes' if result_store else 'no'})"
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def enrich_baseline(
        self,
        clinical_score: float,
        media: Optional[CapturedMedia] = None,
        baseline: Optional[PersonalBaseline] = None,
        assessment_id: Optional[str] = None
    ) -> EnrichmentResult:
        """
        Baseline assessment anchored on the clinical questionnaire score.

        Raises:
            InsufficientDataError: If the clinical score is non-finite or
                outside [0, 100]
        """
        if not is_finite(clinical_score) or not 0.0 <= clinical_score <= 100.0:
            raise InsufficientDataError(
                f"Clinical score must be a number in [0, 100], got {clinical_score!r}",
                modality=Modality.CLINICAL
            )

        start = time.perf_counter()
        assessment_id = assessment_id or str(uuid.uuid4())
        media = media or CapturedMedia()
        logger.info(f"Baseline enrichment {assessment_id}: clinical score {clinical_score}")

        attempts = self._run_concurrently({
            Modality.AUDIO: lambda: self.audio_extractor.extract(media),
            Modality.VISUAL: lambda: self.visual_extractor.extract(media),
        }, media)

        warnings: List[FusionDegradedWarning] = []
        audio_features, visual_features = self._collect_features(attempts, warnings)
        audio_score, visual_score = self._score(audio_features, visual_features, baseline, warnings)

        breakdown = self.fusion_engine.fuse_baseline(
            clinical_score, audio_score, visual_score,
            face_presence=visual_features.face_presence_quality if visual_features else None
        )

        return self._finish(
            assessment_id, AssessmentMode.BASELINE, breakdown, start, warnings,
            audio_features, visual_features, None
        )

    def enrich_checkin(
        self,
        transcript: str,
        media: Optional[CapturedMedia] = None,
        context: Optional[TextAnalysisContext] = None,
        baseline: Optional[PersonalBaseline] = None,
        assessment_id: Optional[str] = None
    ) -> EnrichmentResult:
        """Check-in assessment anchored on the conversation transcript."""
        start = time.perf_counter()
        assessment_id = assessment_id or str(uuid.uuid4())
        media = media or CapturedMedia()
        context = context or TextAnalysisContext(checkin_id=assessment_id)
        logger.info(f"Check-in enrichment {assessment_id}: transcript of {len(transcript or '')} chars")

        attempts = self._run_concurrently({
            Modality.AUDIO: lambda: self.audio_extractor.extract(media),
            Modality.VISUAL: lambda: self.visual_extractor.extract(media),
            Modality.TEXT: lambda: self.text_analyzer.analyze(transcript, context),
        }, media)

        warnings: List[FusionDegradedWarning] = []
        text_result = self._collect_text(attempts[Modality.TEXT], warnings)
        audio_features, visual_features = self._collect_features(attempts, warnings)
        audio_score, visual_score = self._score(audio_features, visual_features, baseline, warnings)

        breakdown = self.fusion_engine.fuse_checkin(text_result, audio_score, visual_score)

        return self._finish(
            assessment_id, AssessmentMode.CHECKIN, breakdown, start, warnings,
            audio_features, visual_features, text_result
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run_concurrently(
        self,
        tasks: Dict[Modality, Callable[[], Any]],
        media: CapturedMedia
    ) -> Dict[Modality, _Attempt]:
        """Run every task in its own isolated attempt; absent inputs are skipped."""
        skipped = {}
        if not media.has_audio:
            skipped[Modality.AUDIO] = (None, InsufficientDataError("No audio supplied", modality=Modality.AUDIO))
        if not media.has_frames:
            skipped[Modality.VISUAL] = (None, InsufficientDataError("No frames supplied", modality=Modality.VISUAL))

        pending = {modality: task for modality, task in tasks.items() if modality not in skipped}
        results = dict(skipped)

        if pending:
            with ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(pending)),
                thread_name_prefix="enrichment"
            ) as executor:
                futures = {modality: executor.submit(_attempt, task) for modality, task in pending.items()}
                for modality, future in futures.items():
                    results[modality] = future.result()

        return results

    def _collect_features(
        self,
        attempts: Dict[Modality, _Attempt],
        warnings: List[FusionDegradedWarning]
    ) -> Tuple[Optional[AudioFeatureSet], Optional[VisualFeatureSet]]:
        features = {}
        for modality in (Modality.AUDIO, Modality.VISUAL):
            value, error = attempts[modality]
            if error is not None:
                warnings.append(self._failure_warning(modality, error))
                value = None
            features[modality] = value
        return features[Modality.AUDIO], features[Modality.VISUAL]

    @staticmethod
    def _collect_text(attempt: _Attempt, warnings: List[FusionDegradedWarning]) -> TextAnalysisResult:
        result, error = attempt
        if error is None and isinstance(result, TextAnalysisResult):
            return result

        reason = error if error is not None else f"unexpected result type {type(result).__name__}"
        logger.error(f"Text analysis raised instead of degrading: {reason}")
        warnings.append(FusionDegradedWarning(
            code=DegradationCode.TEXT_FAILED,
            message=f"Text analysis failed ({reason}); neutral result substituted",
            modality=Modality.TEXT,
            retryable=getattr(error, 'retryable', False)
        ))
        return TextAnalysisResult.neutral("Text analysis was not available for this check in.")

    def _score(
        self,
        audio_features: Optional[AudioFeatureSet],
        visual_features: Optional[VisualFeatureSet],
        baseline: Optional[PersonalBaseline],
        warnings: List[FusionDegradedWarning]
    ) -> Tuple[Optional[ModalityScore], Optional[ModalityScore]]:
        audio_score = None
        if audio_features is not None:
            audio_score = score_audio_features(audio_features, self.config, baseline)
            if audio_score is None:
                warnings.append(FusionDegradedWarning(
                    code=DegradationCode.AUDIO_INVALID,
                    message="Audio features produced no valid score; weight redistributed",
                    modality=Modality.AUDIO
                ))

        visual_score = None
        if visual_features is not None:
            visual_score = score_visual_features(visual_features, self.config, baseline)
            if visual_score is None:
                warnings.append(FusionDegradedWarning(
                    code=DegradationCode.VISUAL_INVALID,
                    message="Visual features produced no valid score; weight redistributed",
                    modality=Modality.VISUAL
                ))

        return audio_score, visual_score

    def _finish(
        self,
        assessment_id: str,
        mode: AssessmentMode,
        breakdown: ScoringBreakdown,
        start: float,
        warnings: List[FusionDegradedWarning],
        audio_features: Optional[AudioFeatureSet],
        visual_features: Optional[VisualFeatureSet],
        text_result: Optional[TextAnalysisResult]
    ) -> EnrichmentResult:
        result = EnrichmentResult(
            assessment_id=assessment_id,
            mode=mode,
            breakdown=breakdown,
            audio_features=audio_features,
            visual_features=visual_features,
            text_analysis=text_result,
            warnings=tuple(warnings) + breakdown.warnings,
            processing_ms=(time.perf_counter() - start) * 1000.0
        )

        logger.info(
            f"{mode.value} {assessment_id}: final={result.final_score}, "
            f"confidence={result.confidence:.2f}, warnings={len(result.warnings)}, "
            f"{result.processing_ms:.0f}ms"
        )

        if self.result_store is not None:
            try:
                self.result_store.save(result.to_record())
            except Exception as e:
                logger.error(f"Failed to persist result {assessment_id}: {e}")
                result = dataclasses.replace(result, warnings=result.warnings + (FusionDegradedWarning(
                    code=DegradationCode.PERSISTENCE_FAILED,
                    message=f"Result could not be persisted: {e}",
                    retryable=True
                ),))

        return result

    @staticmethod
    def _failure_warning(modality: Modality, error: Exception) -> FusionDegradedWarning:
        missing_code, failed_code = _FAILURE_CODES[modality]

        if isinstance(error, InsufficientDataError):
            logger.info(f"{modality.value} unavailable: {error}")
            code = missing_code
        else:
            logger.warning(f"{modality.value} extraction failed: {error}")
            code = failed_code

        return FusionDegradedWarning(
            code=code,
            message=str(error),
            modality=modality,
            retryable=error.retryable if isinstance(error, AssessmentError) else False
        )
