"""CLI entry point for mimic-trainer.

Usage:
  uv run python -m mimic_trainer serve [--port PORT] [--host HOST]
  uv run python -m mimic_trainer stop
  uv run python -m mimic_trainer restart [--port PORT]
  uv run python -m mimic_trainer status
  uv run python -m mimic_trainer score SENTENCE TRANSCRIPT
  uv run python -m mimic_trainer check-word WORD TRANSCRIPT
  uv run python -m mimic_trainer transcribe AUDIO_FILE SENTENCE
"""
from __future__ import annotations

import asyncio
import mimetypes
import os
import signal
import sys
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stop":
        _stop()
    elif command == "restart":
        _restart(args[1:])
    elif command == "status":
        _status()
    elif command == "score":
        _score(args[1:])
    elif command == "check-word":
        _check_word(args[1:])
    elif command == "transcribe":
        _transcribe(args[1:])
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stop, restart, status, score, check-word, transcribe")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _require_args(args: list[str], count: int, usage: str) -> None:
    if len(args) < count:
        print(f"Usage: python -m mimic_trainer {usage}")
        sys.exit(1)


def _read_pid() -> int | None:
    """Read PID from file, return None if stale or missing."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _stop() -> bool:
    """Stop a running server. Returns True if a server was stopped."""
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"Stopped server (PID {pid}).")
        PID_FILE.unlink(missing_ok=True)
        return True
    except ProcessLookupError:
        print("Server was not running (stale PID file removed).")
        PID_FILE.unlink(missing_ok=True)
        return False


def _status():
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
    else:
        print(f"Server is running (PID {pid}).")


def _restart(args: list[str]):
    import time
    _stop()
    time.sleep(1)
    _serve(args)


def _serve(args: list[str]):
    import uvicorn

    existing = _read_pid()
    if existing is not None:
        print(f"Server already running (PID {existing}). Use 'restart' or 'stop' first.")
        sys.exit(1)

    port = int(_parse_flag(args, "--port", "8766"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    PID_FILE.write_text(str(os.getpid()))

    print(f"Starting Mimic Trainer on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "mimic_trainer.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        PID_FILE.unlink(missing_ok=True)


def _print_result(result) -> None:
    from mimic_trainer.models import WRONG

    line = " ".join(
        f"[{w.word}]" if w.verdict == WRONG else w.word for w in result.words
    )
    print(line)
    print(f"Score: {result.score}  (source: {result.source})")


def _score(args: list[str]):
    _require_args(args, 2, "score SENTENCE TRANSCRIPT")
    from mimic_trainer.config import load_settings
    from mimic_trainer.scorer import score_attempt

    settings = load_settings()
    result = score_attempt(args[0], args[1], punctuation=settings.sentence_punctuation)
    _print_result(result)


def _check_word(args: list[str]):
    _require_args(args, 2, "check-word WORD TRANSCRIPT")
    from mimic_trainer.config import load_settings
    from mimic_trainer.scorer import check_word

    settings = load_settings()
    check = check_word(args[0], args[1], settings.word_punctuation)
    if check.correct:
        print(f"Correct: heard \"{check.spoken}\"")
    else:
        print(f"Wrong: {check.tip}")
        sys.exit(2)


def _transcribe(args: list[str]):
    _require_args(args, 2, "transcribe AUDIO_FILE SENTENCE")
    from mimic_trainer import app as app_module
    from mimic_trainer.config import load_settings
    from mimic_trainer.session import PracticeAttempt

    audio_path = Path(args[0])
    if not audio_path.exists():
        print(f"File not found: {audio_path}")
        sys.exit(1)

    settings = load_settings()
    app_module._settings = settings
    stt = app_module._get_stt()
    if stt is None:
        print("No STT provider configured (stt_provider is 'none').")
        sys.exit(1)

    content_type = mimetypes.guess_type(audio_path.name)[0] or "audio/webm"
    attempt = PracticeAttempt(args[1], settings.sentence_punctuation)
    print(f"Transcribing {audio_path.name} using {stt.name()}...")
    result = asyncio.run(attempt.finish(
        stt=stt,
        audio=audio_path.read_bytes(),
        content_type=content_type,
        timeout=settings.transcription_timeout_seconds,
    ))
    print(f"Heard: {result.transcript or '(nothing)'}")
    _print_result(result)


if __name__ == "__main__":
    main()
