"""Storage collaborators for endpoints, tests and run snapshots."""

import logging
from abc import ABC, abstractmethod
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError

from apiprobe.models import Endpoint, EndpointTest, Project
from apiprobe.schemas.api_test import APITestDefinition
from apiprobe.schemas.endpoint import EndpointDefinition, ResolvedEndpoint
from apiprobe.schemas.run_result import RunResult
from apiprobe.services.api_testing.errors import (
    DefinitionValidationError,
    NotFoundError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def load_definition(model: type[ModelT], data: Any) -> ModelT:
    """Validate stored data into a schema, raising DefinitionValidationError on bad records."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DefinitionValidationError(f"Invalid {model.__name__}: {e}") from e


class APITestRepository(ABC):
    """What the engine needs from storage."""

    @abstractmethod
    async def get_endpoint(self, endpoint_id: UUID) -> ResolvedEndpoint:
        """Return the endpoint and its project's base URL. Raises NotFoundError."""

    @abstractmethod
    async def get_test(self, test_id: UUID) -> APITestDefinition:
        """Return the test definition. Raises NotFoundError."""

    @abstractmethod
    async def save_run_result(self, test_id: UUID, run_result: RunResult) -> None:
        """Replace the test's last run atomically. Raises NotFoundError or PersistenceError."""


class InMemoryAPITestRepository(APITestRepository):
    """Dict-backed repository.

    Records are immutable models; saving swaps the whole test record, so a
    reader sees either the old snapshot or the new one.
    """

    def __init__(self):
        self._base_urls: dict[UUID, str] = {}
        self._endpoints: dict[UUID, EndpointDefinition] = {}
        self._tests: dict[UUID, APITestDefinition] = {}

    def add_project(self, project_id: UUID, base_url: str) -> None:
        self._base_urls[project_id] = base_url

    def add_endpoint(self, endpoint: EndpointDefinition) -> None:
        if endpoint.project_id not in self._base_urls:
            raise NotFoundError(f"Project {endpoint.project_id} not found")
        self._endpoints[endpoint.id] = endpoint

    def add_test(self, test: APITestDefinition) -> None:
        if test.endpoint_id not in self._endpoints:
            raise NotFoundError(f"Endpoint {test.endpoint_id} not found")
        self._tests[test.id] = test

    async def get_endpoint(self, endpoint_id: UUID) -> ResolvedEndpoint:
        endpoint = self._endpoints.get(endpoint_id)
        if endpoint is None:
            raise NotFoundError(f"Endpoint {endpoint_id} not found")
        return ResolvedEndpoint(endpoint=endpoint, base_url=self._base_urls[endpoint.project_id])

    async def get_test(self, test_id: UUID) -> APITestDefinition:
        test = self._tests.get(test_id)
        if test is None:
            raise NotFoundError(f"Test {test_id} not found")
        return test

    async def save_run_result(self, test_id: UUID, run_result: RunResult) -> None:
        test = await self.get_test(test_id)
        self._tests[test_id] = test.model_copy(update={"last_run": run_result})


class SQLAPITestRepository(APITestRepository):
    """Repository over the SQLAlchemy models."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_endpoint(self, endpoint_id: UUID) -> ResolvedEndpoint:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Endpoint, Project.base_url)
                .join(Project, Endpoint.project_id == Project.id)
                .where(Endpoint.id == endpoint_id)
            )
            row = result.one_or_none()

        if row is None:
            raise NotFoundError(f"Endpoint {endpoint_id} not found")

        endpoint, base_url = row
        definition = load_definition(EndpointDefinition, {
            "id": endpoint.id,
            "project_id": endpoint.project_id,
            "name": endpoint.name,
            "description": endpoint.description,
            "method": endpoint.method,
            "path": endpoint.path,
            "headers": endpoint.headers or [],
            "query_params": endpoint.query_params or [],
            "request_body": endpoint.request_body,
            "response_schema": endpoint.response_schema,
        })
        return ResolvedEndpoint(endpoint=definition, base_url=base_url)

    async def get_test(self, test_id: UUID) -> APITestDefinition:
        async with self.session_factory() as session:
            test = await session.get(EndpointTest, test_id)

        if test is None:
            raise NotFoundError(f"Test {test_id} not found")

        return load_definition(APITestDefinition, {
            "id": test.id,
            "endpoint_id": test.endpoint_id,
            "name": test.name,
            "description": test.description,
            "request_headers": test.request_headers or [],
            "request_params": test.request_params or [],
            "request_body": test.request_body,
            "expected_status": test.expected_status,
            "expected_response": test.expected_response,
            "assertions": test.assertions or [],
            "timeout_ms": test.timeout_ms,
            "last_run": test.last_run,
        })

    async def save_run_result(self, test_id: UUID, run_result: RunResult) -> None:
        snapshot = run_result.model_dump(mode="json", by_alias=True)
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(EndpointTest)
                        .where(EndpointTest.id == test_id)
                        .values(last_run=snapshot)
                    )
        except SQLAlchemyError as e:
            logger.exception("Failed to save run result for test %s", test_id)
            raise PersistenceError(f"Could not save run result: {e}") from e

        if result.rowcount == 0:
            raise NotFoundError(f"Test {test_id} not found")
