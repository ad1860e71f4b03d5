"""Endpoint test routes - run a test and read its last run."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from uuid import UUID

from apiprobe.db.postgres import AsyncSessionLocal
from apiprobe.schemas.run_report import RunReport
from apiprobe.schemas.run_result import RunResult
from apiprobe.services.api_testing.engine import APITestEngine
from apiprobe.services.api_testing.errors import (
    DefinitionValidationError,
    NotFoundError,
    PersistenceError,
    RunCancelled,
)
from apiprobe.services.api_testing.repository import APITestRepository, SQLAPITestRepository

router = APIRouter()
logger = logging.getLogger(__name__)


def get_repository() -> APITestRepository:
    return SQLAPITestRepository(AsyncSessionLocal)


async def get_engine(repository: APITestRepository = Depends(get_repository)):
    engine = APITestEngine(repository)
    try:
        yield engine
    finally:
        await engine.close()


@router.post("/{test_id}/run", response_model=RunReport)
async def run_test(
    test_id: UUID,
    engine: APITestEngine = Depends(get_engine),
):
    """Execute a test now and replace its last run."""
    try:
        return await engine.execute(test_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DefinitionValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RunCancelled as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        logger.error("Run of test %s could not be saved: %s", test_id, e)
        raise HTTPException(status_code=500, detail="Could not save run result")


@router.get("/{test_id}/last-run", response_model=RunResult)
async def get_last_run(
    test_id: UUID,
    repository: APITestRepository = Depends(get_repository),
):
    """Get the most recent run snapshot of a test."""
    try:
        test = await repository.get_test(test_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DefinitionValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if test.last_run is None:
        raise HTTPException(status_code=404, detail="Test has not been run yet")
    return test.last_run
