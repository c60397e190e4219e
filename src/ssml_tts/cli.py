"""
Command-Line Interface for ssml-tts.

Chunks text the same way POST /tts/chunked does, without running the HTTP
server. By default nothing is synthesized: the segment plan is printed.

Usage Examples:
    # Show the segment plan (dry run)
    ssml-tts "First paragraph. Second sentence."

    # Read from a file, smaller segments, JSON output
    ssml-tts --file chapter.txt --max-len 1500 --json

    # Synthesize every segment with Google Cloud TTS into a directory
    ssml-tts --file chapter.txt --synth --out audio/

    # Wait for a synthesizeLongAudio operation started via /tts/long/start
    ssml-tts --wait-operation projects/123/locations/global/operations/42 --timeout 600

Environment Variables:
    GOOGLE_CREDENTIALS: Inline service-account JSON (else default credentials)
    SSML_TTS_SETTINGS: Settings file (default config/settings.yaml)
    SSML_TTS_MAX_LEN: Default per-segment budget

Exit Codes:
    0 on success, 1 when synthesis or the long-audio operation fails,
    2 on usage errors (missing or conflicting input).
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from ssml_tts.core.config import load_settings
from ssml_tts.core.logging import configure_logging, error, get_logger, info, set_request_id
from ssml_tts.services.errors import ServiceError
from ssml_tts.tts.chunker import TextSegment, chunk_text
from ssml_tts.utils.ssml import convert_to_plain_text, is_ssml

EXIT_ERROR = 1
EXIT_USAGE = 2


class UsageError(Exception):
    """Missing or conflicting command-line input."""


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ssml-tts", description="ssml-tts CLI (text to SSML segments)")

    # Input
    parser.add_argument("text_pos", nargs="?", help="Text to chunk (positional)")
    parser.add_argument("--text", help="Text to chunk")
    parser.add_argument("--file", help="Read text from a UTF-8 file")

    # Chunking
    parser.add_argument("--max-len", type=int, default=None,
                        help="Per-segment character budget (default from settings, 3000)")
    parser.add_argument("--ascii-only", action="store_true",
                        help="Fold text to ASCII before chunking")

    # Synthesis
    parser.add_argument("--synth", action="store_true",
                        help="Synthesize each segment with Google Cloud TTS")
    parser.add_argument("--out", help="Output directory for --synth (default: out)")

    # Long audio
    parser.add_argument("--wait-operation", metavar="NAME",
                        help="Poll a long-audio operation until it is done")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Seconds to wait for --wait-operation (default from settings)")

    parser.add_argument("--json", action="store_true", help="Print JSON summary")

    return parser.parse_args(argv)


def _load_text(args: argparse.Namespace) -> str:
    """
    Resolve the input text from the positional argument, --text or --file.

    Raises:
        UsageError: If no input is given, inputs conflict, or the file is empty.
    """
    text = args.text or args.text_pos
    if args.file:
        if text:
            raise UsageError("Use --file without --text or positional text.")
        path = Path(args.file)
        if not path.is_file():
            raise UsageError(f"Input file not found: {path}")
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            raise UsageError("Input file is empty.")
        return text

    if not text:
        raise UsageError("Provide --text, --file or a positional text.")
    return text


def _plan(text: str, max_len: int, ascii_only: bool, pause_ms: int) -> List[TextSegment]:
    if is_ssml(text):
        text = convert_to_plain_text(text)
    return chunk_text(text, max_len, ascii_only=ascii_only, pause_ms=pause_ms)


def _synthesize(segments: List[TextSegment], config, out_dir: Path) -> List[dict]:
    from ssml_tts.tts.synthesizer import GoogleSpeechSynthesizer, default_audio, default_voice

    synth = GoogleSpeechSynthesizer.from_config(config)
    voice = default_voice(config)
    audio = default_audio(config)
    out_dir.mkdir(parents=True, exist_ok=True)

    results = []
    for seg in segments:
        data = synth.synthesize(seg.ssml, voice, audio)
        out_path = out_dir / f"segment_{seg.index:03d}.{audio.extension}"
        out_path.write_bytes(data)
        results.append({"index": seg.index, "out": str(out_path), "bytes": len(data)})
    return results


def _wait_long_audio(name: str, timeout_s: Optional[float], config) -> dict:
    from ssml_tts.tts.long_audio import LongAudioClient

    client = LongAudioClient(config.long_audio, credentials_json=config.google_credentials_json)
    return client.wait(name, timeout_s=timeout_s)


def _run_wait(args: argparse.Namespace, log) -> int:
    config = load_settings(missing_ok=True).get_service_config()
    try:
        operation = _wait_long_audio(args.wait_operation, args.timeout, config)
    except ServiceError as e:
        error(log, "cli_wait_failed", code=e.code, error=e.message)
        print(f"ssml-tts: {e.message}", file=sys.stderr)
        return EXIT_ERROR

    print(json.dumps(operation, ensure_ascii=False))
    failure = operation.get("error")
    if failure:
        message = failure.get("message", failure) if isinstance(failure, dict) else failure
        print(f"ssml-tts: operation failed: {message}", file=sys.stderr)
        return EXIT_ERROR
    print("LONG_AUDIO_OK")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for failures, 2 for usage errors).
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("ssml-tts.cli")
    set_request_id(str(uuid4())[:12])

    if args.wait_operation:
        if args.text or args.text_pos or args.file or args.synth:
            print("ssml-tts: --wait-operation takes no text input or --synth.", file=sys.stderr)
            return EXIT_USAGE
        return _run_wait(args, log)

    try:
        text = _load_text(args)
    except UsageError as e:
        print(f"ssml-tts: {e}", file=sys.stderr)
        return EXIT_USAGE

    config = load_settings(missing_ok=True).get_service_config()
    max_len = args.max_len if args.max_len is not None else config.chunking.max_len
    if max_len <= 0:
        print(f"ssml-tts: --max-len must be positive, got {max_len}", file=sys.stderr)
        return EXIT_USAGE
    ascii_only = args.ascii_only or config.chunking.ascii_only

    segments = _plan(text, max_len, ascii_only, config.chunking.pause_ms)
    info(log, "chunk_plan", chars=len(text), segments=len(segments), max_len=max_len)

    if not args.synth:
        payload = {
            "ok": True,
            "dry_run": True,
            "count": len(segments),
            "chunks": [
                {"index": s.index, "ssml": s.ssml, "bytesApprox": s.approximate_byte_size}
                for s in segments
            ],
        }
        if args.json:
            print(json.dumps(payload, ensure_ascii=False))
        else:
            for s in segments:
                print(f"[{s.index:03d}] ({len(s.ssml)} chars) {s.ssml}")
        print("CHUNK_PLAN_OK")
        return 0

    try:
        results = _synthesize(segments, config, Path(args.out or "out"))
    except ServiceError as e:
        error(log, "cli_synth_failed", code=e.code, error=e.message)
        print(f"ssml-tts: {e.message}", file=sys.stderr)
        return EXIT_ERROR

    payload = {"ok": True, "dry_run": False, "count": len(results), "items": results}
    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        for item in results:
            print(f"[{item['index']:03d}] {item['bytes']} bytes -> {item['out']}")
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
