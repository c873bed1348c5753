"""
Tests for FastAPI endpoints.

Router tests use TestClient with a mocked QueryScheduler; the lifespan test
runs a real scheduler with only the grid API mocked.
"""

import json

import pytest
from unittest.mock import patch, AsyncMock, MagicMock

from fastapi.testclient import TestClient

from src.scheduler import (
    Connection,
    Credentials,
    GridApiError,
    GridResponse,
    InvalidIntervalError,
    PersistenceAdapter,
    QueryExecutionError,
    QueryJob,
    QueryNotFoundError,
    QueryResult,
    QueryScheduler,
    SyncOutcome,
    SyncState,
    UnauthenticatedError,
)


def make_job(fid: str = "alice:1") -> QueryJob:
    return QueryJob(
        fid=fid,
        requestor="alice",
        uids=["u1"],
        query="SELECT 1",
        connection_id="local",
        refresh_interval=60,
        created_at="2026-01-01T00:00:00Z",
    )


SCHEDULE_BODY = {
    "requestor": "alice",
    "fid": "alice:1",
    "uids": ["u1"],
    "refresh_interval": 60,
    "query": "SELECT 1",
    "connection_id": "local",
}


@pytest.fixture
def client():
    from src.api.main import app
    return TestClient(app)


@pytest.fixture
def mock_service():
    """Mocked QueryScheduler installed behind the queries router."""
    service = MagicMock()
    service.is_scheduled.return_value = True
    service.sync_now = AsyncMock()
    service.create_and_schedule = AsyncMock()
    service.get_status.return_value = {
        "active_timers": 1,
        "running_syncs": 0,
        "minimum_refresh_interval": 60,
    }
    with patch("src.api.routers.queries.get_scheduler_service", return_value=service):
        yield service


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "version" in response.json()

    def test_status(self, client):
        service = MagicMock()
        service.get_status.return_value = {
            "active_timers": 2,
            "running_syncs": 1,
            "minimum_refresh_interval": 60,
        }

        with patch("src.api.main.get_scheduler_service", return_value=service):
            response = client.get("/status")

        assert response.status_code == 200
        assert response.json()["active_timers"] == 2


class TestScheduleEndpoint:
    """Tests for POST /queries."""

    def test_schedule_existing_grid(self, client, mock_service):
        mock_service.schedule_query.return_value = make_job()

        response = client.post("/queries", json=SCHEDULE_BODY)

        assert response.status_code == 201
        data = response.json()
        assert data["fid"] == "alice:1"
        assert data["scheduled"] is True
        mock_service.schedule_query.assert_called_once_with(
            requestor="alice",
            fid="alice:1",
            uids=["u1"],
            refresh_interval=60,
            query="SELECT 1",
            connection_id="local",
        )
        mock_service.create_and_schedule.assert_not_awaited()

    def test_schedule_new_grid(self, client, mock_service):
        mock_service.create_and_schedule.return_value = make_job("alice:99")
        body = {k: v for k, v in SCHEDULE_BODY.items() if k not in ("fid", "uids")}
        body["filename"] = "sales"

        response = client.post("/queries", json=body)

        assert response.status_code == 201
        assert response.json()["fid"] == "alice:99"
        mock_service.create_and_schedule.assert_awaited_once_with(
            requestor="alice",
            filename="sales",
            refresh_interval=60,
            query="SELECT 1",
            connection_id="local",
        )

    def test_requires_fid_or_filename(self, client, mock_service):
        body = {k: v for k, v in SCHEDULE_BODY.items() if k != "fid"}

        response = client.post("/queries", json=body)

        assert response.status_code == 422
        mock_service.schedule_query.assert_not_called()

    def test_fid_requires_uids(self, client, mock_service):
        body = {**SCHEDULE_BODY, "uids": []}

        response = client.post("/queries", json=body)

        assert response.status_code == 422
        assert "uids are required" in response.text
        mock_service.schedule_query.assert_not_called()

    @pytest.mark.parametrize(
        "error, status",
        [
            (InvalidIntervalError(None, 60), 400),
            (UnauthenticatedError("no credentials"), 401),
            (QueryExecutionError("SELECT 1", "local", "boom"), 400),
            (GridApiError("creating a grid", 500), 502),
        ],
    )
    def test_error_mapping(self, client, mock_service, error, status):
        mock_service.schedule_query.side_effect = error

        response = client.post("/queries", json=SCHEDULE_BODY)

        assert response.status_code == status
        assert response.json()["detail"] == str(error)

    def test_unauthenticated_detail_is_recognisable(self, client, mock_service):
        mock_service.schedule_query.side_effect = UnauthenticatedError("no credentials")

        response = client.post("/queries", json=SCHEDULE_BODY)

        assert response.json()["detail"].startswith("Unauthenticated")


class TestReadEndpoints:
    """Tests for GET /queries and GET /queries/{fid}."""

    def test_list_queries(self, client, mock_service):
        mock_service.list_queries.return_value = [make_job("alice:1"), make_job("alice:2")]

        response = client.get("/queries")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["active_timers"] == 1
        assert [q["fid"] for q in data["queries"]] == ["alice:1", "alice:2"]

    def test_list_empty(self, client, mock_service):
        mock_service.list_queries.return_value = []

        response = client.get("/queries")

        assert response.json()["total"] == 0
        assert response.json()["queries"] == []

    def test_get_query(self, client, mock_service):
        mock_service.get_query.return_value = make_job()
        mock_service.is_scheduled.return_value = False

        response = client.get("/queries/alice:1")

        assert response.status_code == 200
        assert response.json()["scheduled"] is False

    def test_get_missing_query(self, client, mock_service):
        mock_service.get_query.return_value = None

        response = client.get("/queries/alice:404")

        assert response.status_code == 404


class TestDeleteEndpoint:
    """Tests for DELETE /queries/{fid}."""

    def test_delete(self, client, mock_service):
        mock_service.remove_query.return_value = True

        response = client.delete("/queries/alice:1")

        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_service.remove_query.assert_called_once_with("alice:1")

    def test_delete_missing(self, client, mock_service):
        mock_service.remove_query.return_value = False

        response = client.delete("/queries/alice:1")

        assert response.status_code == 404


class TestSyncEndpoint:
    """Tests for POST /queries/{fid}/sync."""

    def test_sync_done(self, client, mock_service):
        mock_service.sync_now.return_value = SyncOutcome(
            fid="alice:1", state=SyncState.DONE, push_status=200
        )

        response = client.post("/queries/alice:1/sync")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "DONE"
        assert data["skipped"] is False
        assert data["error"] is None

    def test_sync_skipped_while_running(self, client, mock_service):
        mock_service.sync_now.return_value = None

        response = client.post("/queries/alice:1/sync")

        assert response.json()["skipped"] is True
        assert response.json()["state"] is None

    def test_sync_aborted_reports_error(self, client, mock_service):
        mock_service.sync_now.return_value = SyncOutcome(
            fid="alice:1",
            state=SyncState.ABORTED,
            error=UnauthenticatedError("no credentials"),
        )

        response = client.post("/queries/alice:1/sync")

        assert response.json()["state"] == "ABORTED"
        assert response.json()["error"].startswith("Unauthenticated")

    def test_sync_unknown_query(self, client, mock_service):
        mock_service.sync_now.side_effect = QueryNotFoundError("alice:404")

        response = client.post("/queries/alice:404/sync")

        assert response.status_code == 404


class TestLifespan:
    """Runs the app lifespan around a real scheduler."""

    @pytest.fixture
    def real_service(self, tmp_path):
        from src.api._scheduler_state import set_scheduler_service

        persistence = PersistenceAdapter(tmp_path / "api.db")
        persistence.save_credentials(Credentials(username="alice", api_key="key"))
        persistence.save_connection(Connection(connection_id="local", dialect="sqlite"))
        persistence.save_query(make_job("alice:7"))

        grid_client = MagicMock()
        grid_client.verify_user = AsyncMock(return_value=GridResponse(status=200, body="{}"))
        grid_client.update_grid = AsyncMock(return_value=GridResponse(status=200, body="{}"))
        grid_client.get_grid_meta = AsyncMock(
            return_value=GridResponse(status=200, body=json.dumps({"deleted": False}))
        )

        async def run_query(query, connection):
            return QueryResult(column_names=["x"], rows=[[1]])

        service = QueryScheduler(
            persistence=persistence,
            grid_client=grid_client,
            run_query=run_query,
            minimum_refresh_interval=60,
        )
        set_scheduler_service(service)
        yield service
        set_scheduler_service(None)

    def test_startup_loads_and_shutdown_cancels(self, real_service):
        from src.api.main import app

        with TestClient(app) as client:
            assert real_service.is_scheduled("alice:7")

            response = client.post("/queries", json=SCHEDULE_BODY)
            assert response.status_code == 201
            assert response.json()["scheduled"] is True

            response = client.get("/queries")
            assert response.json()["total"] == 2
            assert response.json()["active_timers"] == 2

            response = client.post("/queries/alice:1/sync")
            assert response.json()["state"] == "DONE"

            response = client.post("/queries", json={**SCHEDULE_BODY, "refresh_interval": 5})
            assert response.status_code == 400

        assert len(real_service.timers) == 0
