"""
Command-line entry point.

Two commands are offered for inspecting alignment and sync behaviour offline:

    voxsync align payload.json --text-file paragraph.txt
    voxsync replay page.txt --payload 0=p0.json --payload 1=p1.json --duration-ms 42000

`replay` plays the page back on a simulated clock and prints every highlight
event the engine emits.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from .aligner import WordAligner
from .config import (
    Config,
    get_alignment_settings,
    get_config_path,
    load_config,
    save_config,
)
from .debug_log import EVENT_LOG
from .errors import VoxSyncError
from .session import ReadAlongSession

logger = logging.getLogger(__name__)


def _load_json(path: Path) -> Any:
    with open(path, encoding='utf-8') as f:
        return json.load(f)


def _read_paragraphs(path: Path) -> list[str]:
    """Paragraphs are separated by blank lines."""
    text = path.read_text(encoding='utf-8')
    blocks = [" ".join(block.split()) for block in text.split("\n\n")]
    return [b for b in blocks if b]


def _parse_payload_args(values: list[str]) -> dict[int, Path]:
    payloads: dict[int, Path] = {}
    for value in values:
        index, sep, path = value.partition("=")
        if not sep or not index.strip().isdigit():
            raise argparse.ArgumentTypeError(
                f"--payload expects INDEX=FILE, got {value!r}")
        payloads[int(index)] = Path(path)
    return payloads


def run_align(args: argparse.Namespace, config: Config) -> int:
    """Align one payload and print the words as JSON."""
    if args.text_file:
        source_text = Path(args.text_file).read_text(encoding='utf-8').strip()
    else:
        source_text = args.text or ""

    settings = get_alignment_settings(config)
    aligner = WordAligner(
        prefix_length=settings["prefix_length"],
        fuzzy_threshold=settings["fuzzy_threshold"],
        fuzzy_window=settings["fuzzy_window"]
    )
    result = aligner.align(_load_json(Path(args.payload)), source_text)
    print(json.dumps(asdict(result), indent=2, ensure_ascii=False))
    return 0


def run_replay(args: argparse.Namespace, config: Config) -> int:
    """Play a page back on a simulated clock, printing highlight events."""
    paragraphs = _read_paragraphs(Path(args.paragraphs))
    if not paragraphs:
        print(f"No paragraphs found in {args.paragraphs}")
        return 1
    payloads = _parse_payload_args(args.payload or [])

    session = ReadAlongSession(config)
    session.load(paragraphs, args.estimate_ms)
    if args.duration_ms is not None:
        session.audio_loaded(args.duration_ms)

    def on_paragraph(index: int, timestamp_ms: float) -> None:
        print(f"[{timestamp_ms:9.0f}ms] paragraph {index}")

    def on_word(prev: int | None, new: int, timestamp_ms: float) -> None:
        word = session.clock.word_timeline[new].word
        print(f"[{timestamp_ms:9.0f}ms]   word {new:3d} {word!r}")

    session.clock.on_paragraph_change(on_paragraph)
    session.clock.on_word_change(on_word)

    session.play()
    step = session.loop.tick_interval_ms
    for index, timing in enumerate(session.clock.paragraph_timeline):
        session.begin_paragraph(index)
        if index in payloads:
            result = session.deliver_alignment(index, _load_json(payloads[index]))
            print(f"  alignment: {len(result.words)} words, "
                  f"confidence {result.alignment_confidence:.2f}")
        else:
            session.clock.set_timeline_ready(index)

        now = timing.start_ms
        while now < timing.end_ms:
            session.tick(now, now)
            now += step

    session.tick(session.clock.total_duration_ms, session.clock.total_duration_ms)
    print(f"Done: {session.loop.tick_count} ticks, "
          f"max tick {session.loop.max_tick_ms:.3f}ms, "
          f"remaining {session.clock.get_time_remaining()}")
    session.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="voxsync - read-along highlight synchronization tools"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: ./.voxsync.yaml)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging"
    )
    parser.add_argument(
        "--debug-log",
        action="store_true",
        help=f"Write highlight events to {EVENT_LOG}"
    )
    parser.add_argument(
        "--tick-ms",
        type=float,
        default=None,
        help="Sync tick interval in milliseconds (default: from config or 50)"
    )
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )

    subparsers = parser.add_subparsers(dest="command")

    align_parser = subparsers.add_parser("align", help="Align a provider timing payload")
    align_parser.add_argument("payload", help="Provider timing payload (JSON)")
    align_parser.add_argument("--text", help="Paragraph source text")
    align_parser.add_argument("--text-file", help="File containing the paragraph source text")

    replay_parser = subparsers.add_parser("replay", help="Replay a page on a simulated clock")
    replay_parser.add_argument("paragraphs", help="Text file with blank-line separated paragraphs")
    replay_parser.add_argument(
        "--payload",
        action="append",
        metavar="INDEX=FILE",
        help="Timing payload for a paragraph (repeatable)"
    )
    replay_parser.add_argument("--estimate-ms", type=float, default=None,
                               help="Estimated total duration (default: from speaking rate)")
    replay_parser.add_argument("--duration-ms", type=float, default=None,
                               help="Measured total audio duration")

    args: argparse.Namespace = parser.parse_args(argv)

    config: Config = load_config(args.config)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.get("log_level", "WARNING"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    if args.tick_ms is not None:
        config["sync"]["tick_interval_ms"] = args.tick_ms
    if args.debug_log:
        config["debug_log"] = True
        print(f"Debug logging enabled (events will be saved to {EVENT_LOG})")

    if args.save_config:
        path = args.config or get_config_path()
        if save_config(config, path):
            print(f"Configuration saved to {path}")
            return 0
        return 1

    try:
        if args.command == "align":
            return run_align(args, config)
        if args.command == "replay":
            return run_replay(args, config)
    except (OSError, json.JSONDecodeError, argparse.ArgumentTypeError, VoxSyncError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
