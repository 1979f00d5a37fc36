"""
Command-Line Interface for script-reader.

Reads a script and writes one WAV file without running the HTTP server.

Usage Examples:
    # Positional text
    script-reader "Hello world." --out hello.wav

    # Whole file as one script (paragraphs separated by blank lines)
    script-reader --file chapter1.txt --out chapter1.wav

    # Offline run with the tone backend
    script-reader --file chapter1.txt --backend stub

    # Dry-run mode (no synthesis, shows segmentation)
    script-reader --file chapter1.txt --dry-run --json

Environment Variables:
    SCRIPT_READER_SETTINGS: Settings file (default config/settings.yaml)
    SCRIPT_READER_BACKEND: Backend engine (gemini, stub)
    GEMINI_API_KEY: API key for the gemini backend
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from script_reader.core.config import Settings, load_settings_or_defaults
from script_reader.core.errors import ScriptReaderError
from script_reader.core.logging import configure_logging, get_logger, info, set_request_id


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="script-reader CLI (script to single WAV)")

    # Input options
    parser.add_argument("text_pos", nargs="?", help="Script text (positional)")
    parser.add_argument("--text", help="Script text")
    parser.add_argument("--file", help="Read the whole script from a file")

    # Output options
    parser.add_argument("--out", default="out.wav", help="Output WAV path (default: out.wav)")

    # Configuration overrides
    parser.add_argument("--settings", help="Settings YAML path")
    parser.add_argument("--backend", help="Backend override (gemini, stub)")
    parser.add_argument("--soft-limit", type=int, help="Segment soft limit in characters")

    # Execution modes
    parser.add_argument("--dry-run", action="store_true",
                        help="Segment and summarize without synthesis")
    parser.add_argument("--json", action="store_true",
                        help="Print JSON summary")

    return parser.parse_args(argv)


def _load_text(args: argparse.Namespace) -> str:
    """
    Load the script from arguments or file.

    Raises:
        SystemExit: If no input provided or conflicting options used.
    """
    text = args.text or args.text_pos

    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        return Path(args.file).read_text(encoding="utf-8")

    if not text:
        raise SystemExit("Provide --text, --file or a positional text.")
    return text


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.soft_limit is None:
        return settings
    raw = dict(settings.raw)
    raw["segmenting"] = {**(raw.get("segmenting") or {}), "soft_limit": args.soft_limit}
    return Settings(raw=raw)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for generation errors).
    """
    args = _parse_args(argv)

    if args.backend:
        os.environ["SCRIPT_READER_BACKEND"] = args.backend

    configure_logging()
    log = get_logger("script-reader.cli")
    set_request_id(uuid4().hex[:12])

    settings = _apply_overrides(load_settings_or_defaults(args.settings), args)
    text = _load_text(args)

    if args.dry_run:
        from script_reader.tts.segmenter import segment_text

        config = settings.get_reader_config()
        accepted = text[:config.text.max_chars]
        seg = segment_text(accepted, config.segmenting.soft_limit)
        payload = {
            "ok": True,
            "dry_run": True,
            "chars": len(text),
            "truncated": len(accepted) < len(text),
            "soft_limit": config.segmenting.soft_limit,
            "segments": [{"index": s.index, "chars": len(s.text)} for s in seg.segments],
        }
        if args.json:
            print(json.dumps(payload, ensure_ascii=False))
        else:
            info(log, "dry_run", segments=len(seg.segments), chars=len(text))
            print(payload)
        print("DRY_RUN_OK")
        return 0

    from script_reader.services.reader_service import ScriptReader

    reader = ScriptReader(settings)
    progress_stream = sys.stderr if args.json else sys.stdout

    def _on_progress(current: int, total: int) -> None:
        print(f"Generating part {current}/{total}...", file=progress_stream, flush=True)

    try:
        result = reader.generate(text, on_progress=_on_progress)
    except ScriptReaderError as e:
        if args.json:
            print(json.dumps(e.to_dict(), ensure_ascii=False))
        else:
            print(f"Error: {e.user_message}", file=sys.stderr)
        return 1
    finally:
        reader.close()

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(result.wav_bytes)

    payload = {
        "ok": True,
        "dry_run": False,
        "out": str(out_path),
        "bytes": len(result.wav_bytes),
        "segments": result.segments,
        "sample_rate": result.sample_rate,
        "seconds": round(result.total_seconds, 3),
    }
    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
