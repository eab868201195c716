#!/usr/bin/env python3
"""Command-line interface for beatcut."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .analyzers.pipeline import analyze_project
from .config import settings
from .errors import EditEngineError
from .models.analysis import AnalysisBundle
from .models.edl import EditDecisionList
from .models.style import EditStyle, StyleConfig, TransitionPreference
from .storage import get_storage, save_edl
from .tools.edit_decision_engine import edit_decision_engine
from .tools.edl_serializer import FORMAT_ALIASES, edl_serializer
from .tools.timeline_validator import timeline_validator
from .utils.cancellation import CancellationToken
from .utils.logging_config import configure_logging


logger = logging.getLogger(__name__)


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="beatcut",
        description="Generate beat-synchronised edit decision lists",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze a music track and its footage
  %(prog)s analyze song.mp3 clip1.mp4 clip2.mp4 -o analysis.json

  # Build an EDL from the analysis
  %(prog)s generate analysis.json -s dynamic --min-clip 0.5 -o edit.json

  # Check and export it
  %(prog)s validate edit.json
  %(prog)s export edit.json -f fcpx -o edit.fcpxml
        """
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    analyze = subparsers.add_parser('analyze', help='Analyze music and video files')
    analyze.add_argument('audio', help='Music track')
    analyze.add_argument('videos', nargs='+', help='Source video files')
    analyze.add_argument('-o', '--output', help='Write the analysis JSON here (default: stdout)')
    analyze.add_argument(
        '--timeout',
        type=float,
        help='Cancel the analysis after this many seconds'
    )

    generate = subparsers.add_parser('generate', help='Generate an EDL from analysis results')
    generate.add_argument('analysis', help='Analysis JSON written by "analyze"')
    generate.add_argument('-o', '--output', help='Write the EDL JSON here (default: stdout)')
    generate.add_argument(
        '-s', '--style',
        choices=[style.value for style in EditStyle],
        default=EditStyle.SMOOTH.value,
        help="Edit style (default: smooth)"
    )
    generate.add_argument(
        '-t', '--transitions',
        choices=[pref.value for pref in TransitionPreference],
        default=TransitionPreference.AUTO.value,
        help='Transition preference (default: auto)'
    )
    generate.add_argument('--name', default=settings.default_project_name, help='Project name')
    generate.add_argument('--genre', help='Music genre hint')
    generate.add_argument('--min-clip', type=float, default=1.0, help='Minimum clip duration in seconds')
    generate.add_argument('--max-clip', type=float, help='Maximum clip duration in seconds')
    generate.add_argument('--beat-threshold', type=float, default=0.5, help='Minimum beat strength for a cut')
    generate.add_argument('--fps', type=float, default=settings.default_frame_rate, help='Timeline frame rate')
    generate.add_argument('--resolution', default=settings.default_resolution, help='Timeline resolution, WxH')
    generate.add_argument('--speed', type=float, default=1.0, help='Playback speed applied to every clip')
    generate.add_argument('--loop', action='store_true', help='Reuse scenes when material runs out')
    generate.add_argument('--snapshot', action='store_true', help='Also save a snapshot to storage')

    validate = subparsers.add_parser('validate', help='Check an EDL for timeline errors')
    validate.add_argument('edl', help='EDL JSON file')

    export = subparsers.add_parser('export', help='Export an EDL to an NLE format')
    export.add_argument('edl', help='EDL JSON file')
    export.add_argument(
        '-f', '--format',
        choices=sorted(FORMAT_ALIASES),
        default='premiere',
        help='Export format (default: premiere)'
    )
    export.add_argument('-o', '--output', help='Output file (default: stdout)')
    export.add_argument(
        '--store',
        action='store_true',
        help=f'Write into the storage directory ({settings.storage_path}/exports)'
    )

    return parser.parse_args(argv)


def _write(text: str, output) -> None:
    if output:
        Path(output).write_text(text, encoding='utf-8')
        logger.info(f"Wrote {output}")
    else:
        sys.stdout.write(text)
        if not text.endswith('\n'):
            sys.stdout.write('\n')


def run_analyze(args) -> int:
    token = CancellationToken(timeout=args.timeout) if args.timeout else None
    bundle = asyncio.run(analyze_project(args.audio, args.videos, token=token))
    _write(bundle.model_dump_json(indent=2, by_alias=True), args.output)
    return 0


def run_generate(args) -> int:
    bundle = AnalysisBundle.model_validate_json(Path(args.analysis).read_text(encoding='utf-8'))
    config = StyleConfig(
        project_name=args.name,
        genre=args.genre,
        style=args.style,
        transition_preference=args.transitions,
        min_clip_duration=args.min_clip,
        max_clip_duration=args.max_clip,
        beat_threshold=args.beat_threshold,
        allow_loop=args.loop,
        frame_rate=args.fps,
        resolution=args.resolution,
        speed=args.speed,
    )

    result = edit_decision_engine.generate_from_bundle(bundle, config)
    for warning in result.warnings:
        print(f"Warning: {warning.message}", file=sys.stderr)
    if not result.ok:
        print(f"Error: {result.error.message} ({result.error.detail})", file=sys.stderr)
        return 1

    _write(result.edl.model_dump_json(indent=2, by_alias=True), args.output)
    if args.snapshot:
        path = asyncio.run(save_edl(get_storage(), result.edl))
        print(f"Snapshot: {path}", file=sys.stderr)
    return 0


def run_validate(args) -> int:
    edl = EditDecisionList.model_validate_json(Path(args.edl).read_text(encoding='utf-8'))
    result = timeline_validator.validate(edl)
    if not result.ok:
        print(f"Invalid: {result.error.message}", file=sys.stderr)
        return 1

    stats = edl.stats()
    print(
        f"OK: {len(edl.clips)} clips, {stats.total_cuts} cuts, "
        f"{edl.total_duration:.2f}s, beat alignment {stats.beat_alignment_score:.0%}"
    )
    return 0


def run_export(args) -> int:
    edl = EditDecisionList.model_validate_json(Path(args.edl).read_text(encoding='utf-8'))
    if args.store:
        result = asyncio.run(edl_serializer.export_to_storage(edl, args.format, get_storage()))
    else:
        result = edl_serializer.export(edl, args.format)
    if not result.ok:
        print(f"Error: {result.error.message}", file=sys.stderr)
        return 1

    if result.stored_path:
        print(f"Exported to {result.stored_path}", file=sys.stderr)
    else:
        _write(result.text, args.output)
    return 0


COMMANDS = {
    'analyze': run_analyze,
    'generate': run_generate,
    'validate': run_validate,
    'export': run_export,
}


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    configure_logging(
        "DEBUG" if args.verbose or settings.debug else settings.log_level,
        stream=sys.stderr,
    )

    try:
        return COMMANDS[args.command](args)
    except EditEngineError as e:
        print(f"Error: {e.message}" + (f" ({e.detail})" if e.detail else ""), file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"Error: invalid input\n{e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
