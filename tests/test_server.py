"""Tests for the FastAPI server endpoints."""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from api import deps
from api.server import app
from core.config import config
from core.detection.pipeline import create_default_pipeline


@pytest.fixture(autouse=True)
def regex_only_pipeline(validators, postal_db, tmp_path, monkeypatch):
    """Serve a pipeline without ML and keep settings writes out of the real data dir."""
    snapshot = config.model_dump()
    monkeypatch.setattr(config, "data_dir", tmp_path)
    deps.set_pipeline(create_default_pipeline(validators=validators, postal_db=postal_db))
    yield
    for key, value in snapshot.items():
        setattr(config, key, value)
    deps.set_pipeline(None)


@pytest_asyncio.fixture
async def client():
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_returns_ok(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["version"] == deps.VERSION
        assert isinstance(data["ml_available"], bool)


class TestDetectEndpoint:
    @pytest.mark.asyncio
    async def test_detect_email(self, client: AsyncClient):
        text = "Kontakt: anna.muster@firma.ch"
        resp = await client.post("/api/detect", json={"text": text})
        assert resp.status_code == 200
        data = resp.json()
        emails = [e for e in data["entities"] if e["type"] == "EMAIL"]
        assert len(emails) == 1
        assert text[emails[0]["start"]:emails[0]["end"]] == "anna.muster@firma.ch"
        assert emails[0]["logical_id"] == "EMAIL_1"
        assert data["metadata"]["ml_status"] == "disabled"
        assert [p["name"] for p in data["metadata"]["passes"]] == [
            "high_recall", "format_validation", "address_relationship",
            "context_scoring", "consolidation",
        ]

    @pytest.mark.asyncio
    async def test_detect_empty_text(self, client: AsyncClient):
        resp = await client.post("/api/detect", json={"text": ""})
        assert resp.status_code == 200
        assert resp.json()["entities"] == []

    @pytest.mark.asyncio
    async def test_unknown_option_rejected(self, client: AsyncClient):
        resp = await client.post(
            "/api/detect", json={"text": "x", "options": {"turbo": True}},
        )
        assert resp.status_code == 422
        assert "turbo" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_malformed_runtime_context_rejected(self, client: AsyncClient):
        options = {"runtime_context": {"region_hints": {"Name": "NOT_A_TYPE"}}}
        resp = await client.post(
            "/api/detect", json={"text": "Call +41 79 123 45 67", "options": options},
        )
        assert resp.status_code == 422
        assert "runtime_context" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_runtime_context_option_accepted(self, client: AsyncClient):
        options = {"runtime_context": {"column_headers": ["Telefon"]}}
        resp = await client.post(
            "/api/detect", json={"text": "Call +41 79 123 45 67", "options": options},
        )
        assert resp.status_code == 200
        assert resp.json()["metadata"]["errors"] == []

    @pytest.mark.asyncio
    async def test_missing_text_rejected(self, client: AsyncClient):
        resp = await client.post("/api/detect", json={"language": "de"})
        assert resp.status_code == 422


class TestBatchEndpoint:
    @pytest.mark.asyncio
    async def test_order_preserved(self, client: AsyncClient):
        texts = ["Mail anna@firma.ch", "Nothing here", "IBAN CH93 0076 2011 6238 5295 7"]
        resp = await client.post("/api/detect/batch", json={"texts": texts})
        assert resp.status_code == 200
        results = resp.json()
        assert len(results) == 3
        assert [e["type"] for e in results[0]["entities"]] == ["EMAIL"]
        assert results[1]["entities"] == []
        assert [e["type"] for e in results[2]["entities"]] == ["IBAN"]

    @pytest.mark.asyncio
    async def test_too_many_texts(self, client: AsyncClient):
        resp = await client.post("/api/detect/batch", json={"texts": ["x"] * 101})
        assert resp.status_code == 413

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, client: AsyncClient):
        resp = await client.post("/api/detect/batch", json={"texts": []})
        assert resp.status_code == 422


class TestSettingsEndpoints:
    @pytest.mark.asyncio
    async def test_get_settings(self, client: AsyncClient):
        resp = await client.get("/api/settings")
        assert resp.status_code == 200
        data = resp.json()
        assert data["address_proximity"] == config.address_proximity
        assert "ml_threshold" in data

    @pytest.mark.asyncio
    async def test_patch_persists_and_applies(self, client: AsyncClient, tmp_path):
        resp = await client.patch("/api/settings", json={"address_proximity": 80})
        assert resp.status_code == 200
        assert resp.json()["applied"] == {"address_proximity": 80}
        assert config.address_proximity == 80
        assert (tmp_path / "settings.json").exists()
        assert deps.get_pipeline().options["address_proximity"] == 80

    @pytest.mark.asyncio
    async def test_patch_out_of_range(self, client: AsyncClient):
        resp = await client.patch("/api/settings", json={"validation_floor": 2.0})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_empty_patch_is_noop(self, client: AsyncClient, tmp_path):
        resp = await client.patch("/api/settings", json={})
        assert resp.status_code == 200
        assert resp.json()["applied"] == {}
        assert not (tmp_path / "settings.json").exists()

    @pytest.mark.asyncio
    async def test_ml_toggle_releases_classifier(self, client: AsyncClient, monkeypatch):
        class _Workers:
            stopped = False

            def shutdown(self, wait=True):
                self.stopped = True

        workers = _Workers()
        monkeypatch.setattr(deps, "_classifier", workers)
        resp = await client.patch("/api/settings", json={"ml_enabled": False})
        assert resp.status_code == 200
        assert workers.stopped
        assert deps._classifier is None
        assert deps.get_pipeline().passes[0].classifier is None
