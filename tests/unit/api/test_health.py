"""
Tests for Health Router - Provider and query health endpoints.

Reference Documents:
- GUIDELINES: Service metrics pattern (Building Microservices pp. 273-275)
- GUIDELINES: FastAPI dependency injection (Sinha pp. 89-91)
"""

from types import SimpleNamespace

from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from specificity.api.routes.health import router as health_router
from specificity.database.query_metrics import QueryResult, QuerySample
from specificity.resilience.failover import FailoverClient, FailoverSelector, ProviderConfig


def _fail(tracker, provider: str, times: int = 3) -> None:
    for _ in range(times):
        tracker.record_failure(provider)


def probe_returning(result: QueryResult):
    async def _probe() -> QueryResult:
        return result

    return _probe


class TestHealthRouter:
    def test_health_router_is_fastapi_router(self):
        assert isinstance(health_router, APIRouter)

    def test_health_endpoint(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "specificity-core"
        assert "version" in data


class TestReadinessEndpoint:
    def test_ready_when_a_provider_is_eligible(self, client: TestClient, tracker):
        _fail(tracker, "openrouter")

        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "checks": {"providers": True}}

    def test_not_ready_when_all_providers_down(self, client: TestClient, tracker):
        _fail(tracker, "openrouter")
        _fail(tracker, "groq")

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_disabled_provider_does_not_count_as_ready(
        self, tracker, failover_config, store
    ):
        """An eligible but disabled provider cannot serve, so the service is not ready."""
        providers = [ProviderConfig("openrouter", 1, enabled=False), ProviderConfig("groq", 2)]
        selector = FailoverSelector(tracker, providers)
        app = FastAPI()
        app.include_router(health_router)
        app.state.failover_client = FailoverClient(selector, failover_config)
        app.state.query_metrics = store
        _fail(tracker, "groq")

        response = TestClient(app).get("/health/ready")

        assert tracker.is_eligible("openrouter") is True
        assert response.status_code == 503
        assert response.json()["checks"] == {"providers": False}

    def test_not_ready_when_database_probe_fails(self, client_with_probe):
        probe = probe_returning(QueryResult(error=SimpleNamespace(code="08006")))

        response = client_with_probe(probe).get("/health/ready")

        assert response.status_code == 503
        assert response.json()["checks"] == {"providers": True, "database": False}


class TestProviderEndpoints:
    def test_provider_health_all_healthy(self, client: TestClient):
        response = client.get("/health/providers")

        assert response.status_code == 200
        data = response.json()
        assert data["current_provider"] is None
        assert data["is_healthy"] is True
        assert data["has_active_circuit"] is False
        assert [p["name"] for p in data["providers"]] == ["openrouter", "groq"]
        assert data["providers"][0]["success_rate"] == 1.0

    def test_provider_health_reflects_cooldown(self, client: TestClient, tracker):
        _fail(tracker, "openrouter")

        data = client.get("/health/providers").json()

        openrouter = data["providers"][0]
        assert openrouter["health"] == "down"
        assert openrouter["circuit_state"] == "open"
        assert openrouter["is_available"] is False
        assert data["is_healthy"] is False
        assert data["has_active_circuit"] is True

    def test_reset_provider(self, client: TestClient, tracker):
        _fail(tracker, "openrouter")

        response = client.post("/health/providers/openrouter/reset")

        assert response.status_code == 200
        assert response.json()["is_available"] is True
        assert tracker.is_eligible("openrouter") is True

    def test_reset_unknown_provider_returns_404(self, client: TestClient):
        response = client.post("/health/providers/anthropic/reset")

        assert response.status_code == 404


class TestQueryMetricsEndpoints:
    def test_empty_store(self, client: TestClient):
        response = client.get("/health/queries")

        assert response.status_code == 200
        assert response.json() == {
            "resources": {},
            "total_samples": 0,
            "overall_success_rate": 1.0,
            "slow_sample_count": 0,
        }

    def test_resource_metrics(self, client: TestClient, store, wall_clock):
        for duration in (100.0, 300.0):
            store.record_sample(
                QuerySample(
                    resource="votes", duration_ms=duration, timestamp=wall_clock.now, succeeded=True
                )
            )

        data = client.get("/health/queries/votes").json()

        assert data["avg_duration"] == 200.0
        assert data["p95_duration"] == 300.0
        assert data["sample_count"] == 2

    def test_unseen_resource_is_neutral(self, client: TestClient):
        data = client.get("/health/queries/nothing").json()

        assert data == {
            "avg_duration": 0.0,
            "p95_duration": 0.0,
            "success_rate": 1.0,
            "sample_count": 0,
        }


class TestDatabaseEndpoint:
    def test_503_without_probe(self, client: TestClient):
        response = client.get("/health/database")

        assert response.status_code == 503

    def test_report_with_probe(self, client_with_probe):
        response = client_with_probe(probe_returning(QueryResult(data=[]))).get("/health/database")

        assert response.status_code == 200
        data = response.json()
        assert data["connected"] is True
        assert data["metrics"]["total_samples"] == 0
        assert data["recommendations"] == []

    def test_report_metrics_match_recommendations(self, client_with_probe, store, wall_clock):
        store.record_sample(
            QuerySample(
                resource="votes", duration_ms=1500.0, timestamp=wall_clock.now, succeeded=True
            )
        )

        data = client_with_probe(probe_returning(QueryResult(data=[]))).get("/health/database").json()

        assert data["metrics"]["slow_sample_count"] == 1
        assert data["metrics"]["resources"]["votes"]["p95_duration"] == 1500.0
        assert "1 slow queries detected. Review query patterns and indices." in data["recommendations"]


class TestMissingComponents:
    def test_503_when_component_not_initialized(self):
        app = FastAPI()
        app.include_router(health_router)

        response = TestClient(app).get("/health/providers")

        assert response.status_code == 503


class TestMetricsEndpoint:
    def test_prometheus_exposition(self, client: TestClient):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "specificity_" in response.text
