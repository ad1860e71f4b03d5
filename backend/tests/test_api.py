import uuid
from typing import Callable

import httpx
import pytest

from apiprobe.api.tests import get_engine, get_repository
from apiprobe.main import app
from apiprobe.schemas.api_test import APITestDefinition
from apiprobe.schemas.endpoint import EndpointDefinition
from apiprobe.services.api_testing.engine import APITestEngine
from apiprobe.services.api_testing.errors import (
    DefinitionValidationError,
    PersistenceError,
    RunCancelled,
)
from apiprobe.services.api_testing.repository import InMemoryAPITestRepository


@pytest.fixture()
def stored_test(
    repository: InMemoryAPITestRepository,
    make_endpoint: Callable[..., EndpointDefinition],
    make_test: Callable[..., APITestDefinition],
) -> APITestDefinition:
    endpoint = make_endpoint()
    repository.add_endpoint(endpoint)
    test = make_test(
        endpoint,
        request_params=[{"key": "id", "value": "7"}],
        expected_status=200,
        assertions=[{"path": "user.id", "operator": "equals", "value": 7}],
    )
    repository.add_test(test)
    return test


@pytest.fixture()
async def client(
    repository: InMemoryAPITestRepository,
    make_engine: Callable[..., APITestEngine],
):
    """Client for the app with storage and outbound HTTP swapped out."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"user": {"id": 7}})

    async def engine_override():
        engine = make_engine(handler)
        try:
            yield engine
        finally:
            await engine.close()

    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_engine] = engine_override
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.mark.integration
class TestRunRoutes:
    @pytest.mark.asyncio
    async def test_run_returns_report(self, client: httpx.AsyncClient, stored_test: APITestDefinition) -> None:
        response = await client.post(f"/api/tests/{stored_test.id}/run")

        assert response.status_code == 200
        body = response.json()
        assert body["runResult"]["status"] == "passed"
        assert body["runResult"]["responseStatus"] == 200
        assert body["runResult"]["responseBody"] == {"user": {"id": 7}}
        assert body["assertionResults"][0]["passed"] is True
        assert body["failureReason"] is None

    @pytest.mark.asyncio
    async def test_run_unknown_test(self, client: httpx.AsyncClient) -> None:
        response = await client.post(f"/api/tests/{uuid.uuid4()}/run")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_last_run(self, client: httpx.AsyncClient, stored_test: APITestDefinition) -> None:
        before = await client.get(f"/api/tests/{stored_test.id}/last-run")
        assert before.status_code == 404

        await client.post(f"/api/tests/{stored_test.id}/run")
        after = await client.get(f"/api/tests/{stored_test.id}/last-run")

        assert after.status_code == 200
        assert after.json()["status"] == "passed"
        assert after.json()["responseTimeMs"] >= 0

    @pytest.mark.asyncio
    async def test_health(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}


class RaisingEngine:
    """Stands in for APITestEngine and fails every run with the given error."""

    def __init__(self, error: Exception):
        self.error = error

    async def execute(self, test_id):
        raise self.error


@pytest.mark.integration
class TestRunRouteErrors:
    @pytest.fixture()
    async def client_raising(self):
        """Client factory whose engine raises the given error on every run."""
        clients: list[httpx.AsyncClient] = []

        def factory(error: Exception) -> httpx.AsyncClient:
            app.dependency_overrides[get_engine] = lambda: RaisingEngine(error)
            client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
            clients.append(client)
            return client

        yield factory
        for client in clients:
            await client.aclose()
        app.dependency_overrides.clear()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, status_code",
        [
            (DefinitionValidationError("Invalid APITestDefinition: bad operator"), 422),
            (RunCancelled("Run was cancelled"), 409),
            (PersistenceError("Could not save run result: disk full"), 500),
        ],
    )
    async def test_error_mapping(self, client_raising, error: Exception, status_code: int) -> None:
        client = client_raising(error)

        response = await client.post(f"/api/tests/{uuid.uuid4()}/run")

        assert response.status_code == status_code

    @pytest.mark.asyncio
    async def test_persistence_error_detail_is_generic(self, client_raising) -> None:
        client = client_raising(PersistenceError("Could not save run result: password=secret"))

        response = await client.post(f"/api/tests/{uuid.uuid4()}/run")

        assert response.json() == {"detail": "Could not save run result"}
