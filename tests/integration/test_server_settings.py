"""Server middleware is built from loaded settings, .env included."""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from doctors_portal.config import load_settings


@pytest.fixture
def dotenv_file(tmp_path, monkeypatch):
    """A .env file; variables it loads are removed again after the test."""
    for name in ("CORS_ORIGINS", "LOG_LEVEL"):
        monkeypatch.setenv(name, "unset")
        monkeypatch.delenv(name)

    path = tmp_path / ".env"
    path.write_text("CORS_ORIGINS=https://portal.example\nLOG_LEVEL=DEBUG\n")
    return str(path)


def test_dotenv_origins_reach_cors_middleware(dotenv_file):
    from doctors_portal.api_server import install_middleware

    settings = load_settings(dotenv_path=dotenv_file)
    app = FastAPI()
    install_middleware(app, settings)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    client = TestClient(app)
    preflight = {"Access-Control-Request-Method": "GET"}

    allowed = client.options("/ping", headers={"Origin": "https://portal.example", **preflight})
    refused = client.options("/ping", headers={"Origin": "https://evil.example", **preflight})

    assert settings.log_level == "DEBUG"
    assert allowed.status_code == 200
    assert allowed.headers["access-control-allow-origin"] == "https://portal.example"
    assert "access-control-allow-origin" not in refused.headers
