"""Tests for the FastAPI application routes."""
from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from mimic_trainer import app as app_module
from mimic_trainer.app import app
from mimic_trainer.config import Settings


@pytest.fixture
def test_app(make_stt):
    """Test client with in-memory settings and a fake transcription provider."""
    settings = Settings(stt_provider="none")
    stt = make_stt("I want to go home")

    # Set globals BEFORE creating TestClient so startup() is a no-op
    app_module._settings = settings
    app_module._attempts.clear()
    app_module._runs.clear()

    with patch("mimic_trainer.app.save_settings"), \
         patch("mimic_trainer.app._get_stt", return_value=stt):
        client = TestClient(app, raise_server_exceptions=False)
        yield client, settings, stt
        client.close()

    app_module._settings = None
    app_module._attempts.clear()
    app_module._runs.clear()


class TestAlignAPI:
    def test_align(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/align", json={
            "sentence": "I want to go home.",
            "transcript": "so i want go home",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["words"] == ["I", "want", "to", "go", "home."]
        assert data["matched"] == [0, 1, 3, 4]

    def test_align_empty_transcript(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/align", json={"sentence": "Hello world"})
        assert resp.status_code == 200
        assert resp.json()["matched"] == []

    def test_align_missing_sentence(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/align", json={"transcript": "hello"})
        assert resp.status_code == 400

    def test_invalid_json(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/align", content=b"not json",
                           headers={"content-type": "application/json"})
        assert resp.status_code == 400


class TestScoreAPI:
    def test_score(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/score", json={
            "sentence": "Hello world.",
            "transcript": "hello",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["score"] == 50
        assert data["source"] == "transcription"
        assert [w["verdict"] for w in data["words"]] == ["correct", "wrong"]

    def test_score_live_fallback(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/score", json={
            "sentence": "Hello world.",
            "transcript": "",
            "live_transcript": "hello world",
        })
        data = resp.json()
        assert data["score"] == 100
        assert data["source"] == "live"

    def test_score_without_any_transcript(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/score", json={"sentence": "Hello world."})
        data = resp.json()
        assert data["score"] == 100
        assert data["source"] == "none"

    def test_score_missing_sentence(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/score", json={"transcript": "hello"})
        assert resp.status_code == 400


class TestWordCheckAPI:
    def test_correct(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/word-check", json={"word": "Hello;", "transcript": "hello"})
        assert resp.status_code == 200
        assert resp.json()["correct"] is True

    def test_wrong(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/word-check", json={"word": "hello", "transcript": "yellow"})
        data = resp.json()
        assert data["correct"] is False
        assert "yellow" in data["tip"]

    def test_missing_word(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/word-check", json={"transcript": "hello"})
        assert resp.status_code == 400


class TestAttemptAPI:
    def _start(self, client, sentence="I want to go home."):
        resp = client.post("/api/attempts", json={"sentence": sentence})
        assert resp.status_code == 200
        return resp.json()["attempt_id"]

    def test_start_returns_timers(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/attempts", json={"sentence": "Hello world"})
        data = resp.json()
        assert data["words"] == ["Hello", "world"]
        assert data["timers"]["silence_timeout_seconds"] == 2.5
        assert data["timers"]["max_capture_seconds"] == 30.0

    def test_start_missing_sentence(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/attempts", json={})
        assert resp.status_code == 400

    def test_unknown_attempt(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/attempts/nope").status_code == 404
        assert client.post("/api/attempts/nope/transcript", json={"text": "x"}).status_code == 404
        assert client.post("/api/attempts/nope/finish").status_code == 404

    def test_live_transcript(self, test_app):
        client, _, _ = test_app
        aid = self._start(client)
        resp = client.post(f"/api/attempts/{aid}/transcript", json={"text": "i want"})
        assert resp.status_code == 200
        assert resp.json()["matched"] == [0, 1]

    def test_pause_resume(self, test_app):
        client, _, _ = test_app
        aid = self._start(client)
        client.post(f"/api/attempts/{aid}/transcript", json={"text": "i want"})
        resp = client.post(f"/api/attempts/{aid}/pause")
        assert resp.json()["paused"] is True
        client.post(f"/api/attempts/{aid}/resume")
        resp = client.post(f"/api/attempts/{aid}/transcript", json={"text": "to go home"})
        assert resp.json()["matched"] == [0, 1, 2, 3, 4]
        assert resp.json()["transcript"] == "i want to go home"

    def test_recognizer_events(self, test_app):
        client, _, _ = test_app
        aid = self._start(client)
        resp = client.post(f"/api/attempts/{aid}/recognizer-error", json={"error": "no-speech"})
        assert resp.json()["kind"] == "ignore"
        assert client.post(f"/api/attempts/{aid}/recognizer-end").json()["restart"] is True
        resp = client.post(f"/api/attempts/{aid}/recognizer-error", json={"error": "not-allowed"})
        assert resp.json()["kind"] == "fatal"
        assert client.post(f"/api/attempts/{aid}/recognizer-end").json()["restart"] is False

    def test_recognizer_error_missing(self, test_app):
        client, _, _ = test_app
        aid = self._start(client)
        resp = client.post(f"/api/attempts/{aid}/recognizer-error", json={})
        assert resp.status_code == 400

    def test_finish_with_recording(self, test_app, recording):
        client, _, stt = test_app
        aid = self._start(client)
        client.post(f"/api/attempts/{aid}/transcript", json={"text": "i want"})
        resp = client.post(f"/api/attempts/{aid}/finish", content=recording,
                           headers={"content-type": "audio/mp4"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["source"] == "transcription"
        assert data["score"] == 100
        assert stt.calls == [(len(recording), "audio/mp4")]

    def test_finish_without_recording_uses_live(self, test_app):
        client, _, stt = test_app
        aid = self._start(client)
        client.post(f"/api/attempts/{aid}/transcript", json={"text": "i want"})
        data = client.post(f"/api/attempts/{aid}/finish").json()
        assert data["source"] == "live"
        assert data["score"] == 40
        assert stt.calls == []

    def test_finished_attempt_released(self, test_app, recording):
        client, _, stt = test_app
        for _ in range(3):
            aid = self._start(client)
            resp = client.post(f"/api/attempts/{aid}/finish", content=recording)
            assert resp.status_code == 200
        assert app_module._attempts == {}
        assert client.get(f"/api/attempts/{aid}").status_code == 404
        assert client.post(f"/api/attempts/{aid}/finish", content=recording).status_code == 404
        assert len(stt.calls) == 3

    def test_open_attempts_bounded(self, test_app):
        client, _, _ = test_app
        with patch.object(app_module, "MAX_OPEN_ATTEMPTS", 2):
            first = self._start(client)
            second = self._start(client)
            third = self._start(client)
        assert list(app_module._attempts) == [second, third]
        assert client.get(f"/api/attempts/{first}").status_code == 404


class TestRunAPI:
    def test_run_flow(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/runs", json={"sentences": ["Hello world", "Good morning"]})
        assert resp.status_code == 200
        run_id = resp.json()["run_id"]
        assert resp.json()["sentence"] == "Hello world"

        aid = client.post("/api/attempts", json={"run_id": run_id}).json()["attempt_id"]
        client.post(f"/api/attempts/{aid}/transcript", json={"text": "hello"})
        client.post(f"/api/attempts/{aid}/finish")

        data = client.post(f"/api/runs/{run_id}/next").json()
        assert data["sentence"] == "Good morning"
        assert data["scores"] == {"0": 50}

        aid = client.post("/api/attempts", json={"run_id": run_id}).json()["attempt_id"]
        client.post(f"/api/attempts/{aid}/transcript", json={"text": "good morning"})
        client.post(f"/api/attempts/{aid}/finish")

        data = client.post(f"/api/runs/{run_id}/next").json()
        assert data["complete"] is True
        assert data["average_score"] == 75

        resp = client.post("/api/attempts", json={"run_id": run_id})
        assert resp.status_code == 400

        data = client.post(f"/api/runs/{run_id}/back").json()
        assert data["sentence"] == "Good morning"
        assert client.get(f"/api/runs/{run_id}").json()["index"] == 1

    def test_runs_bounded(self, test_app):
        client, _, _ = test_app
        with patch.object(app_module, "MAX_RUNS", 1):
            old = client.post("/api/runs", json={"sentences": ["Hello"]}).json()["run_id"]
            new = client.post("/api/runs", json={"sentences": ["Bye"]}).json()["run_id"]
        assert client.get(f"/api/runs/{old}").status_code == 404
        assert client.get(f"/api/runs/{new}").status_code == 200

    def test_run_needs_sentences(self, test_app):
        client, _, _ = test_app
        assert client.post("/api/runs", json={"sentences": []}).status_code == 400
        assert client.post("/api/runs", json={"sentences": "Hello"}).status_code == 400

    def test_unknown_run(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/runs/nope").status_code == 404
        assert client.post("/api/attempts", json={"run_id": "nope"}).status_code == 404


class TestSettingsAPI:
    def test_get_settings(self, test_app):
        client, _, _ = test_app
        data = client.get("/api/settings").json()
        assert data["stt_provider"] == "none"
        assert "silence_timeout_seconds" in data

    def test_update_settings(self, test_app):
        client, settings, _ = test_app
        resp = client.put("/api/settings", json={"max_recognizer_restarts": 3, "bogus": 1})
        assert resp.status_code == 200
        assert resp.json()["max_recognizer_restarts"] == 3
        assert "bogus" not in resp.json()
        assert settings.max_recognizer_restarts == 3


class TestGetSTT:
    def test_none(self):
        app_module._settings = Settings(stt_provider="none")
        try:
            assert app_module._get_stt() is None
        finally:
            app_module._settings = None

    def test_proxy(self):
        app_module._settings = Settings(stt_provider="proxy", stt_proxy_url="http://stt.test")
        try:
            assert app_module._get_stt().name() == "proxy/http://stt.test"
        finally:
            app_module._settings = None

    def test_unknown(self):
        app_module._settings = Settings(stt_provider="whisper-cloud")
        try:
            with pytest.raises(ValueError):
                app_module._get_stt()
        finally:
            app_module._settings = None
