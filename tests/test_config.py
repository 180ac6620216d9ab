import logging
import pytest
from sehri_milan.config import Config
from conftest import JWT_KEY, SUPABASE_URL


def test_config_reads_supabase_settings_from_env(config):
    assert config.supabase_url == SUPABASE_URL
    assert config.supabase_anon_key == JWT_KEY


def test_config_missing_url_raises(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.setenv("SUPABASE_ANON_KEY", JWT_KEY)
    with pytest.raises(ValueError, match="SUPABASE_URL"):
        Config()


def test_config_missing_anon_key_raises(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL)
    monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
    with pytest.raises(ValueError, match="SUPABASE_ANON_KEY"):
        Config()


def test_config_strips_trailing_slash_from_url(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL + "/")
    monkeypatch.setenv("SUPABASE_ANON_KEY", JWT_KEY)
    assert Config().supabase_url == SUPABASE_URL


def test_config_warns_on_non_jwt_anon_key(monkeypatch, caplog):
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setenv("SUPABASE_ANON_KEY", "pk_live_notajwt")
    with caplog.at_level(logging.WARNING, logger="sehri_milan.config"):
        config = Config()
    assert config.supabase_anon_key == "pk_live_notajwt"
    assert any("JWT" in msg for msg in caplog.messages)


def test_config_defaults(config):
    assert config.chunk_size == 5
    assert config.max_days == 30
    assert config.ai_stream_url.startswith("wss://")


def test_plan_prompt_has_all_placeholders(config):
    for placeholder in ("{start}", "{end}", "{family_size}", "{daily_budget}", "{cuisine}", "{extra_context}"):
        assert placeholder in config.plan_prompt


def test_chunk_size_must_be_positive(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setenv("SUPABASE_ANON_KEY", JWT_KEY)
    monkeypatch.setenv("CHUNK_SIZE", "0")
    with pytest.raises(ValueError):
        Config()
