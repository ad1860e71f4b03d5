import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from apiprobe.db.postgres import Base, async_database_url
from apiprobe.models import Endpoint, EndpointTest, Project
from apiprobe.schemas.run_result import RunResult
from apiprobe.services.api_testing.errors import DefinitionValidationError, NotFoundError, PersistenceError
from apiprobe.services.api_testing.repository import SQLAPITestRepository


def run_result(status: str = "passed") -> RunResult:
    return RunResult(
        timestamp=datetime.now(timezone.utc),
        status=status,
        response_time_ms=20,
        response_status=200,
        response_body={"ok": True},
    )


@pytest.fixture()
async def session_factory(tmp_path: Path):
    """SQLite database with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'apiprobe.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
async def seeded(session_factory) -> dict[str, uuid.UUID]:
    ids = {"project": uuid.uuid4(), "endpoint": uuid.uuid4(), "test": uuid.uuid4(), "broken": uuid.uuid4()}
    async with session_factory() as session:
        session.add(Project(id=ids["project"], name="Shop", base_url="https://shop.example.com"))
        session.add(Endpoint(
            id=ids["endpoint"],
            project_id=ids["project"],
            name="Get order",
            method="GET",
            path="/orders/{id}",
            headers=[{"key": "Accept", "value": "application/json", "description": "json only"}],
            query_params=[{"key": "expand", "value": "items"}],
        ))
        session.add(EndpointTest(
            id=ids["test"],
            endpoint_id=ids["endpoint"],
            name="order exists",
            request_params=[{"key": "id", "value": "5"}],
            expected_status=200,
            assertions=[{"path": "order.id", "operator": "equals", "value": 5}],
        ))
        session.add(EndpointTest(
            id=ids["broken"],
            endpoint_id=ids["endpoint"],
            name="bad operator",
            assertions=[{"path": "order.id", "operator": "matches", "value": "5"}],
        ))
        await session.commit()
    return ids


@pytest.mark.integration
class TestSQLAPITestRepository:
    @pytest.mark.asyncio
    async def test_get_endpoint_with_base_url(self, session_factory, seeded) -> None:
        repo = SQLAPITestRepository(session_factory)

        resolved = await repo.get_endpoint(seeded["endpoint"])

        assert resolved.base_url == "https://shop.example.com"
        assert resolved.endpoint.method == "GET"
        assert resolved.endpoint.headers[0].description == "json only"
        assert resolved.endpoint.query_params[0].key == "expand"

    @pytest.mark.asyncio
    async def test_get_test(self, session_factory, seeded) -> None:
        repo = SQLAPITestRepository(session_factory)

        test = await repo.get_test(seeded["test"])

        assert test.endpoint_id == seeded["endpoint"]
        assert test.assertions[0].operator == "equals"
        assert test.last_run is None

    @pytest.mark.asyncio
    async def test_invalid_stored_definition(self, session_factory, seeded) -> None:
        repo = SQLAPITestRepository(session_factory)
        with pytest.raises(DefinitionValidationError):
            await repo.get_test(seeded["broken"])

    @pytest.mark.asyncio
    async def test_missing_records(self, session_factory, seeded) -> None:
        repo = SQLAPITestRepository(session_factory)
        with pytest.raises(NotFoundError):
            await repo.get_test(uuid.uuid4())
        with pytest.raises(NotFoundError):
            await repo.get_endpoint(uuid.uuid4())
        with pytest.raises(NotFoundError):
            await repo.save_run_result(uuid.uuid4(), run_result())

    @pytest.mark.asyncio
    async def test_save_replaces_last_run(self, session_factory, seeded) -> None:
        repo = SQLAPITestRepository(session_factory)

        await repo.save_run_result(seeded["test"], run_result("failed"))
        latest = run_result("passed")
        await repo.save_run_result(seeded["test"], latest)

        test = await repo.get_test(seeded["test"])
        assert test.last_run == latest

        async with session_factory() as session:
            row = await session.get(EndpointTest, seeded["test"])
        assert row.last_run["status"] == "passed"
        assert row.last_run["responseTimeMs"] == 20

    @pytest.mark.asyncio
    async def test_database_failure_is_persistence_error(self, session_factory, seeded) -> None:
        repo = SQLAPITestRepository(session_factory)
        async with session_factory() as session:
            await session.run_sync(lambda sync_session: EndpointTest.__table__.drop(sync_session.connection()))
            await session.commit()

        with pytest.raises(PersistenceError):
            await repo.save_run_result(seeded["test"], run_result())


@pytest.mark.unit
class TestAsyncDatabaseURL:
    def test_plain_postgres_gets_asyncpg(self) -> None:
        url = async_database_url("postgresql://user:pw@db:5432/apiprobe")
        assert url.drivername == "postgresql+asyncpg"
        assert url.database == "apiprobe"

    def test_explicit_driver_is_kept(self) -> None:
        assert async_database_url("postgresql+psycopg://db/apiprobe").drivername == "postgresql+psycopg"
        assert async_database_url("sqlite+aiosqlite:///tmp/apiprobe.db").drivername == "sqlite+aiosqlite"
