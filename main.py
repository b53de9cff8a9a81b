#!/usr/bin/env python3
"""
Command-line entry point for the wellbeing scoring engine.

Runs one assessment from files on disk:
1. Load the recording (audio file) and sample still frames (video file)
2. Run the enrichment orchestrator (baseline or check-in)
3. Print the persistence-ready record as JSON and optionally store it

Usage:
    python main.py baseline --clinical-score 72 --audio voice.wav --video face.mp4
    python main.py checkin --transcript transcript.txt --audio voice.wav --video face.mp4

Engineering approach:
- Collaborators are constructed here and injected (no global singletons)
- Gemini is used for text analysis when GEMINI_API_KEY is set; otherwise the
  offline analyzer degrades check-ins to a neutral text anchor
- Comprehensive logging to stdout and wellbeing_scope.log
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict

from audio_pipeline import AudioFeatureExtractor
from core import AssessmentError, CapturedMedia, DirectionOfChange, TextAnalysisContext
from enrichment import EnrichmentOrchestrator
from text_analysis import GeminiTextAnalyzer, OfflineTextAnalyzer
from utils.audio_io import read_audio_file
from utils.config_loader import get_nested_config, load_scoring_config
from utils.result_store import SQLiteResultStore
from utils.video_io import sample_frames
from video_pipeline import GeminiFaceAnalyzer, MediaPipeFaceAnalyzer, VisualFeatureExtractor

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('wellbeing_scope.log'),
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


def load_media(args, config: Dict) -> CapturedMedia:
    """Build CapturedMedia from the audio/video paths given on the command line."""
    audio = None
    frames = ()
    duration = 0.0

    if args.audio:
        audio = read_audio_file(args.audio)
        logger.info(f"Loaded {len(audio)} bytes of audio from {args.audio}")

    if args.video:
        frames, duration = sample_frames(
            Path(args.video),
            frame_period=get_nested_config(config, 'visual.frame_period', 2.0),
            max_frames=get_nested_config(config, 'visual.max_frames')
        )

    return CapturedMedia(audio=audio, frames=frames, duration=duration)


def build_orchestrator(args, config: Dict) -> EnrichmentOrchestrator:
    """Construct and inject every collaborator."""
    if args.face_backend == 'gemini':
        face_analyzer = GeminiFaceAnalyzer()
    else:
        face_analyzer = MediaPipeFaceAnalyzer()

    if os.getenv('GEMINI_API_KEY'):
        text_analyzer = GeminiTextAnalyzer(config)
    else:
        logger.warning("GEMINI_API_KEY not set; check-in text analysis will degrade to neutral")
        text_analyzer = OfflineTextAnalyzer(config)

    result_store = None
    if args.store:
        result_store = SQLiteResultStore(
            args.store_path or get_nested_config(config, 'storage.db_path', 'data/results/assessments.db')
        )

    return EnrichmentOrchestrator(
        audio_extractor=AudioFeatureExtractor(config),
        visual_extractor=VisualFeatureExtractor(face_analyzer, config),
        text_analyzer=text_analyzer,
        result_store=result_store,
        config=config
    )


def build_context(args) -> TextAnalysisContext:
    """Prior check-in context from the command line (themes are comma-separated)."""
    themes = tuple(
        theme.strip() for theme in (args.previous_themes or '').split(',') if theme.strip()
    )
    direction = DirectionOfChange(args.previous_direction) if args.previous_direction else None

    return TextAnalysisContext(
        checkin_id=args.checkin_id or 'cli',
        first_name=args.first_name,
        previous_themes=themes,
        previous_score=args.previous_score,
        previous_direction=direction
    )


def run_assessment(args, config: Dict) -> Dict:
    """Execute one assessment and return its persistence-ready record."""
    logger.info("=" * 80)
    logger.info(f"WELLBEING SCOPE - {args.mode} assessment")
    logger.info("=" * 80)

    media = load_media(args, config)
    orchestrator = build_orchestrator(args, config)

    try:
        if args.mode == 'baseline':
            result = orchestrator.enrich_baseline(args.clinical_score, media)
        else:
            transcript = Path(args.transcript).read_text(encoding='utf-8')
            result = orchestrator.enrich_checkin(transcript, media, context=build_context(args))
    finally:
        orchestrator.visual_extractor.face_analyzer.close()

    for warning in result.warnings:
        logger.warning(f"Degradation [{warning.code.value}]: {warning.message}")

    logger.info(f"Final score: {result.final_score} (confidence {result.confidence:.2f})")
    return result.to_record()


def build_parser() -> argparse.ArgumentParser:
    """Command-line parser with baseline and checkin subcommands."""
    parser = argparse.ArgumentParser(
        description='Wellbeing Scope - Multimodal wellbeing scoring',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Baseline with clinical questionnaire score
  python main.py baseline --clinical-score 72 --audio voice.wav --video face.mp4

  # Check-in from a transcript, text only
  python main.py checkin --transcript transcript.txt

  # Check-in with the previous check-in as context
  python main.py checkin --transcript t.txt --previous-score 58 --previous-direction worse --previous-themes "sleep,work"

  # Remote facial analysis and stored result
  python main.py checkin --transcript t.txt --video face.mp4 --face-backend gemini --store
        """
    )

    subparsers = parser.add_subparsers(dest='mode', required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--audio', type=str, help='Path to voice recording (WAV/FLAC/OGG)')
    common.add_argument('--video', type=str, help='Path to face video; frames are sampled sparsely')
    common.add_argument(
        '--config',
        type=str,
        default=None,
        help='YAML file overlaid on configs/scoring.yaml (only changed keys needed)'
    )
    common.add_argument(
        '--face-backend',
        choices=['mediapipe', 'gemini'],
        default='mediapipe',
        help='Facial analysis collaborator (default: mediapipe)'
    )
    common.add_argument('--store', action='store_true', help='Persist the result in SQLite')
    common.add_argument('--store-path', type=str, default=None, help='SQLite database path')
    common.add_argument('--output', type=str, default=None, help='Write the JSON record to this file')

    baseline_parser = subparsers.add_parser('baseline', parents=[common], help='Clinical-anchored assessment')
    baseline_parser.add_argument(
        '--clinical-score',
        type=float,
        required=True,
        help='Clinical questionnaire score (0-100)'
    )

    checkin_parser = subparsers.add_parser('checkin', parents=[common], help='Text-anchored check-in')
    checkin_parser.add_argument('--transcript', type=str, required=True, help='Path to transcript text file')
    checkin_parser.add_argument('--checkin-id', type=str, default=None, help='Check-in identifier')
    checkin_parser.add_argument('--first-name', type=str, default=None, help="User's first name")
    checkin_parser.add_argument(
        '--previous-score',
        type=float,
        default=None,
        help='Text score of the previous check-in (0-100)'
    )
    checkin_parser.add_argument(
        '--previous-direction',
        choices=[d.value for d in DirectionOfChange],
        default=None,
        help='Direction of change reported at the previous check-in'
    )
    checkin_parser.add_argument(
        '--previous-themes',
        type=str,
        default=None,
        help='Comma-separated themes from the previous check-in, e.g. "sleep,work"'
    )

    return parser


def main():
    """Main entry point."""
    args = build_parser().parse_args()

    for path in (args.audio, args.video, getattr(args, 'transcript', None)):
        if path and not Path(path).exists():
            logger.error(f"Input file not found: {path}")
            sys.exit(1)

    try:
        config = load_scoring_config(args.config)
        record = run_assessment(args, config)

        output = json.dumps(record, indent=2)
        if args.output:
            Path(args.output).write_text(output, encoding='utf-8')
            logger.info(f"Record written to {args.output}")
        else:
            print(output)

        sys.exit(0)

    except KeyboardInterrupt:
        logger.warning("\nAssessment interrupted by user")
        sys.exit(1)

    except AssessmentError as e:
        logger.error(f"Assessment could not be completed: {e}")
        sys.exit(2)

    except Exception as e:
        logger.error(f"\n✗ ERROR: Assessment failed with exception:")
        logger.error(f"  {type(e).__name__}: {str(e)}")
        logger.exception("Full traceback:")
        sys.exit(1)


if __name__ == '__main__':
    main()
