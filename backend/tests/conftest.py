"""Shared test fixtures."""

from __future__ import annotations

import uuid
from typing import Any, Callable

import httpx
import pytest

from apiprobe.config import Settings
from apiprobe.schemas.api_test import APITestDefinition
from apiprobe.schemas.endpoint import EndpointDefinition
from apiprobe.services.api_testing.engine import APITestEngine
from apiprobe.services.api_testing.http_client import APIHttpClient
from apiprobe.services.api_testing.repository import InMemoryAPITestRepository

BASE_URL = "https://api.example.com"
PROJECT_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")

Handler = Callable[[httpx.Request], Any]


@pytest.fixture()
def settings() -> Settings:
    return Settings(request_timeout_ms=5000, max_concurrent_runs=4)


@pytest.fixture()
def make_endpoint() -> Callable[..., EndpointDefinition]:
    def factory(**overrides: Any) -> EndpointDefinition:
        data: dict[str, Any] = {
            "id": uuid.uuid4(),
            "project_id": PROJECT_ID,
            "name": "Get user",
            "method": "GET",
            "path": "/users/{id}",
        }
        data.update(overrides)
        return EndpointDefinition.model_validate(data)

    return factory


@pytest.fixture()
def make_test() -> Callable[..., APITestDefinition]:
    def factory(endpoint: EndpointDefinition, **overrides: Any) -> APITestDefinition:
        data: dict[str, Any] = {
            "id": uuid.uuid4(),
            "endpoint_id": endpoint.id,
            "name": "returns the user",
        }
        data.update(overrides)
        return APITestDefinition.model_validate(data)

    return factory


@pytest.fixture()
def repository() -> InMemoryAPITestRepository:
    repo = InMemoryAPITestRepository()
    repo.add_project(PROJECT_ID, BASE_URL)
    return repo


@pytest.fixture()
def make_engine(
    repository: InMemoryAPITestRepository,
    settings: Settings,
) -> Callable[[Handler], APITestEngine]:
    """Build an engine whose HTTP traffic goes to a MockTransport handler."""

    def factory(handler: Handler) -> APITestEngine:
        client = APIHttpClient(transport=httpx.MockTransport(handler))
        return APITestEngine(repository, http_client=client, settings=settings)

    return factory
