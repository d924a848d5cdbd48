# tests/test_health.py
from fastapi import FastAPI
from fastapi.testclient import TestClient

from medpost.core.settings import settings


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_root_describes_the_service(client: TestClient) -> None:
    body = client.get("/").json()
    assert body["name"] == "medpost"
    assert body["docs"] == "/docs"


def test_lifespan_leaves_views_sync_off_by_default(app: FastAPI) -> None:
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        assert app.state.views_worker is None


def test_lifespan_starts_and_stops_views_sync(app: FastAPI, mocker) -> None:
    mocker.patch.object(settings, "analytics_base_url", "http://analytics.test")
    mocker.patch.object(settings, "views_sync_enabled", True)
    analytics_client = mocker.AsyncMock()
    mocker.patch("medpost.main.get_analytics_client", return_value=analytics_client)
    worker = mocker.patch("medpost.main.ViewsSyncWorker").return_value
    worker.start = mocker.AsyncMock()
    worker.stop = mocker.AsyncMock()

    with TestClient(app):
        worker.start.assert_awaited_once()
        assert app.state.views_worker is worker

    worker.stop.assert_awaited_once()
    analytics_client.close.assert_awaited_once()
