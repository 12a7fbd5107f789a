from __future__ import annotations

import os
from pathlib import Path

import pytest

from evergarden_engine.config import EngineSettings
from evergarden_engine.utils import load_dotenv


def test_defaults_match_retry_and_concurrency_contract(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "EVERGARDEN_PROVIDER",
        "EVERGARDEN_IMAGE_MODEL",
        "EVERGARDEN_CONCURRENCY",
        "EVERGARDEN_MAX_ATTEMPTS",
        "EVERGARDEN_RETRY_DELAY_MS",
    ):
        monkeypatch.delenv(key, raising=False)

    settings = EngineSettings.from_env()

    assert settings.provider == "gemini"
    assert settings.image_model == "gemini-2.5-flash-image-preview"
    assert settings.concurrency == 2
    assert settings.max_attempts == 3
    assert settings.retry_delay_s == 1.0


def test_env_overrides_and_invalid_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EVERGARDEN_PROVIDER", "dryrun")
    monkeypatch.setenv("EVERGARDEN_CONCURRENCY", "nope")
    monkeypatch.setenv("EVERGARDEN_MAX_ATTEMPTS", "0")
    monkeypatch.setenv("EVERGARDEN_RETRY_DELAY_MS", "0")

    settings = EngineSettings.from_env()

    assert settings.provider == "dryrun"
    assert settings.concurrency == 2
    assert settings.max_attempts == 3
    assert settings.retry_delay_ms == 0


def test_load_dotenv_does_not_override_existing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text(
        "# comment\nexport GEMINI_API_KEY='from-file'\nEVERGARDEN_PROVIDER=dryrun\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("GEMINI_API_KEY", "placeholder")
    monkeypatch.delenv("GEMINI_API_KEY")
    monkeypatch.setenv("EVERGARDEN_PROVIDER", "gemini")

    assert load_dotenv(env_path) is True

    assert os.environ["GEMINI_API_KEY"] == "from-file"
    assert os.environ["EVERGARDEN_PROVIDER"] == "gemini"
