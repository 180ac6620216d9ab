import pytest
from sehri_milan.config import Config

JWT_KEY = "eyJhbGciOiJIUzI1NiJ9.test"
SUPABASE_URL = "https://project.supabase.co"


@pytest.fixture
def config(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setenv("SUPABASE_ANON_KEY", JWT_KEY)
    return Config()
