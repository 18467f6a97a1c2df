import json

import pytest
from fastapi.testclient import TestClient

from cardstore.core.config import get_settings
from cardstore.main import create_app

WRITE_TOKEN = "test-secret"
AUTH_HEADER = {"Authorization": f"Bearer {WRITE_TOKEN}"}


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def store_path(data_dir):
    return data_dir / "cards.json"


@pytest.fixture
def app_env(data_dir, tmp_path, monkeypatch):
    """
    Variables d'env pour les settings : stockage temporaire isolé,
    pas de dossier public.
    """
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("APP_NAME", "Card Store API (tests)")
    monkeypatch.setenv("DATA_DIR", str(data_dir))
    monkeypatch.setenv("STORE_FILENAME", "cards.json")
    monkeypatch.setenv("PUBLIC_DIR", str(tmp_path / "no-public"))
    monkeypatch.setenv("WRITE_TOKEN", WRITE_TOKEN)
    monkeypatch.setenv("ALLOW_ORIGIN", "http://localhost:5173")
    monkeypatch.setenv("API_PREFIX", "")

    # IMPORTANT: vider le cache des settings pour prendre en compte les env
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_client(app_env):
    app = create_app()
    with TestClient(app) as client:
        yield client


@pytest.fixture
def read_store(store_path):
    def _read():
        return json.loads(store_path.read_text(encoding="utf-8"))

    return _read


@pytest.fixture
def write_store(store_path):
    def _write(cards):
        store_path.parent.mkdir(parents=True, exist_ok=True)
        store_path.write_text(json.dumps(cards), encoding="utf-8")

    return _write
