"""FastAPI application with all routes."""
from __future__ import annotations

import logging

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request

from mimic_trainer.config import Settings, load_settings, save_settings
from mimic_trainer.scorer import check_word, live_matches, score_attempt
from mimic_trainer.session import PracticeAttempt, PracticeRun

app = FastAPI(title="Mimic Trainer")

# Global state (initialized on startup)
_settings: Settings | None = None
_attempts: dict[str, PracticeAttempt] = {}  # attempt_id -> attempt
_runs: dict[str, PracticeRun] = {}  # run_id -> run

# Abandoned attempts and old runs are evicted oldest-first past these sizes.
MAX_OPEN_ATTEMPTS = 200
MAX_RUNS = 50

log = logging.getLogger("mimic_trainer.api")


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def _get_stt():
    s = get_settings()
    if s.stt_provider == "elevenlabs":
        from mimic_trainer.providers.stt_elevenlabs import ElevenLabsSTTProvider
        return ElevenLabsSTTProvider(model_id=s.stt_model, language_code=s.stt_language)
    elif s.stt_provider == "proxy":
        from mimic_trainer.providers.stt_proxy import ProxySTTProvider
        return ProxySTTProvider(url=s.stt_proxy_url, timeout=s.transcription_timeout_seconds)
    elif s.stt_provider == "none":
        return None
    raise ValueError(f"Unknown STT provider: {s.stt_provider}")


@app.on_event("startup")
async def startup():
    global _settings
    if _settings is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    log.info("STT provider: %s", _settings.stt_provider)


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(400, "Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(400, "Expected a JSON object")
    return body


def _remember(store: dict, key: str, value, limit: int) -> None:
    store[key] = value
    while len(store) > limit:
        evicted = next(iter(store))
        del store[evicted]
        log.info("Evicted %s from memory", evicted)


def _get_attempt(attempt_id: str) -> PracticeAttempt:
    attempt = _attempts.get(attempt_id)
    if attempt is None:
        raise HTTPException(404, "Attempt not found")
    return attempt


def _get_run(run_id: str) -> PracticeRun:
    run = _runs.get(run_id)
    if run is None:
        raise HTTPException(404, "Run not found")
    return run


# ── API: Scoring ─────────────────────────────────────────────────────────

@app.post("/api/align")
async def api_align(request: Request):
    """Live highlighting for one transcript snapshot."""
    body = await _json_body(request)
    sentence = body.get("sentence", "")
    transcript = body.get("transcript", "")
    if not sentence.strip():
        raise HTTPException(400, "No sentence provided")
    matched = live_matches(sentence, transcript, get_settings().sentence_punctuation)
    return {"words": sentence.split(), "matched": sorted(matched)}


@app.post("/api/score")
async def api_score(request: Request):
    body = await _json_body(request)
    sentence = body.get("sentence", "")
    if not sentence.strip():
        raise HTTPException(400, "No sentence provided")
    result = score_attempt(
        sentence,
        body.get("transcript"),
        body.get("live_transcript"),
        get_settings().sentence_punctuation,
    )
    return result.to_dict()


@app.post("/api/word-check")
async def api_word_check(request: Request):
    body = await _json_body(request)
    word = body.get("word", "").strip()
    if not word:
        raise HTTPException(400, "No word provided")
    check = check_word(word, body.get("transcript", ""), get_settings().word_punctuation)
    return check.to_dict()


# ── API: Practice runs ───────────────────────────────────────────────────

@app.post("/api/runs")
async def api_run_start(request: Request):
    body = await _json_body(request)
    sentences = body.get("sentences") or []
    if not isinstance(sentences, list) or not all(isinstance(s, str) for s in sentences):
        raise HTTPException(400, "sentences must be a list of strings")
    s = get_settings()
    try:
        run = PracticeRun(sentences, s.sentence_punctuation, s.max_recognizer_restarts)
    except ValueError as e:
        raise HTTPException(400, str(e))
    _remember(_runs, run.id, run, MAX_RUNS)
    log.info("Run %s started with %d sentences", run.id, len(run.sentences))
    return run.to_dict()


@app.get("/api/runs/{run_id}")
async def api_run_get(run_id: str):
    return _get_run(run_id).to_dict()


@app.post("/api/runs/{run_id}/next")
async def api_run_next(run_id: str):
    run = _get_run(run_id)
    run.advance()
    if run.complete:
        log.info("Run %s complete, average %d", run.id, run.average_score)
    return run.to_dict()


@app.post("/api/runs/{run_id}/back")
async def api_run_back(run_id: str):
    run = _get_run(run_id)
    run.back()
    return run.to_dict()


# ── API: Attempts ────────────────────────────────────────────────────────

@app.post("/api/attempts")
async def api_attempt_start(request: Request):
    body = await _json_body(request)
    s = get_settings()
    run_id = body.get("run_id")
    if run_id:
        run = _get_run(run_id)
        if run.complete:
            raise HTTPException(400, "Run is already complete")
        attempt = run.start_attempt()
    else:
        sentence = body.get("sentence", "")
        if not sentence.strip():
            raise HTTPException(400, "No sentence provided")
        attempt = PracticeAttempt(sentence, s.sentence_punctuation, s.max_recognizer_restarts)
    _remember(_attempts, attempt.id, attempt, MAX_OPEN_ATTEMPTS)
    return {**attempt.to_dict(), "timers": s.timers()}


@app.get("/api/attempts/{attempt_id}")
async def api_attempt_get(attempt_id: str):
    return _get_attempt(attempt_id).to_dict()


@app.post("/api/attempts/{attempt_id}/transcript")
async def api_attempt_transcript(attempt_id: str, request: Request):
    attempt = _get_attempt(attempt_id)
    body = await _json_body(request)
    matched = attempt.on_transcript(body.get("text", ""))
    return {"matched": sorted(matched), "transcript": attempt.buffer.text}


@app.post("/api/attempts/{attempt_id}/recognizer-error")
async def api_attempt_recognizer_error(attempt_id: str, request: Request):
    attempt = _get_attempt(attempt_id)
    body = await _json_body(request)
    error = body.get("error", "")
    if not error:
        raise HTTPException(400, "No error provided")
    return {"kind": attempt.on_recognizer_error(error)}


@app.post("/api/attempts/{attempt_id}/recognizer-end")
async def api_attempt_recognizer_end(attempt_id: str):
    return {"restart": _get_attempt(attempt_id).on_recognizer_end()}


@app.post("/api/attempts/{attempt_id}/pause")
async def api_attempt_pause(attempt_id: str):
    attempt = _get_attempt(attempt_id)
    attempt.pause()
    return attempt.to_dict()


@app.post("/api/attempts/{attempt_id}/resume")
async def api_attempt_resume(attempt_id: str):
    attempt = _get_attempt(attempt_id)
    attempt.resume()
    return attempt.to_dict()


@app.post("/api/attempts/{attempt_id}/finish")
async def api_attempt_finish(attempt_id: str, request: Request):
    """Final score. The request body, if any, is the raw recording."""
    attempt = _get_attempt(attempt_id)
    audio = await request.body()
    content_type = request.headers.get("content-type", "audio/webm")

    stt = None
    if audio and not attempt.finished:
        try:
            stt = _get_stt()
        except Exception as e:
            log.warning("STT provider unavailable: %s", e)

    s = get_settings()
    result = await attempt.finish(
        stt=stt,
        audio=audio or None,
        content_type=content_type,
        timeout=s.transcription_timeout_seconds,
    )
    # Finished attempts are not kept.
    _attempts.pop(attempt.id, None)
    return result.to_dict()


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await _json_body(request)
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    for k, v in body.items():
        if k in known:
            setattr(s, k, v)
    save_settings(s)
    return s.to_dict()
