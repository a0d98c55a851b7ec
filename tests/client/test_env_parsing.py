from __future__ import annotations

import importlib


def test_invalid_env_does_not_crash(monkeypatch):
    monkeypatch.setenv("FEED_FETCH_TIMEOUT_S", "not-a-number")
    monkeypatch.setenv("FEED_FETCH_RETRY_MAX", "invalid")
    monkeypatch.setenv("FEED_HAPPINESS_THRESHOLD", "very")
    monkeypatch.setenv("FEED_DEDUP_POLICY", "random")
    monkeypatch.setenv("FEED_BASE_URL", "   ")

    import feed_client.settings as settings_mod

    importlib.reload(settings_mod)
    try:
        assert settings_mod.FETCH_TIMEOUT_S == 10.0
        assert settings_mod.FETCH_RETRY_MAX == 3
        assert settings_mod.HAPPINESS_THRESHOLD == 0.75
        assert settings_mod.DEDUP_POLICY == "watermark"
        assert settings_mod.FEED_BASE_URL == "http://localhost:7071"
    finally:
        monkeypatch.undo()
        importlib.reload(settings_mod)


def test_valid_env_is_applied(monkeypatch):
    monkeypatch.setenv("FEED_FETCH_RETRY_MAX", "5")
    monkeypatch.setenv("FEED_DEDUP_POLICY", "IDENTITY")
    monkeypatch.setenv("FEED_LOG_TO_FILE", "no")

    import feed_client.settings as settings_mod

    importlib.reload(settings_mod)
    try:
        assert settings_mod.FETCH_RETRY_MAX == 5
        assert settings_mod.DEDUP_POLICY == "identity"
        assert settings_mod.LOG_TO_FILE is False
    finally:
        monkeypatch.undo()
        importlib.reload(settings_mod)
