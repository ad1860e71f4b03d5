"""Builds the run snapshot from the pipeline outputs and persists it."""

import logging
from datetime import datetime, timezone

from apiprobe.schemas.api_test import APITestDefinition
from apiprobe.schemas.run_result import RunResult
from apiprobe.services.api_testing.assertion_engine import AssertionOutcome
from apiprobe.services.api_testing.errors import ParseFailure
from apiprobe.services.api_testing.http_client import HTTPResponse, TransportFailure
from apiprobe.services.api_testing.repository import APITestRepository
from apiprobe.services.api_testing.response_normalizer import NormalizedResponse

logger = logging.getLogger(__name__)


def status_failure(test: APITestDefinition, response: HTTPResponse) -> str | None:
    """Reason the status code check failed, or None when it passes or is not set."""
    if test.expected_status is None or response.status_code == test.expected_status:
        return None
    return f"Expected status {test.expected_status}, got {response.status_code}"


def failure_reason(
    test: APITestDefinition,
    http_outcome: HTTPResponse | TransportFailure,
    normalized: NormalizedResponse | ParseFailure | None,
    assertion_outcome: AssertionOutcome | None,
) -> str | None:
    """
    First reason the run did not pass, in evaluation order.

    Transport failure, then parse failure, then the status check, then the
    first failing assertion.
    """
    if isinstance(http_outcome, TransportFailure):
        return http_outcome.message
    if isinstance(normalized, ParseFailure):
        return str(normalized)

    reason = status_failure(test, http_outcome)
    if reason:
        return reason

    first = assertion_outcome.first_failure if assertion_outcome else None
    return first.reason if first else None


class RunRecorder:
    """Derives the run status and writes the snapshot through the repository."""

    def __init__(self, repository: APITestRepository):
        self.repository = repository

    def build(
        self,
        test: APITestDefinition,
        http_outcome: HTTPResponse | TransportFailure,
        normalized: NormalizedResponse | ParseFailure | None,
        assertion_outcome: AssertionOutcome | None,
        elapsed_ms: int,
    ) -> RunResult:
        """
        Assemble a RunResult.

        - error: no response, or the body could not be parsed where a path needed it
        - passed: status matches (when expected) and every assertion passed
        - failed: otherwise
        """
        timestamp = datetime.now(timezone.utc)

        if isinstance(http_outcome, TransportFailure):
            return RunResult(
                timestamp=timestamp,
                status="error",
                response_time_ms=elapsed_ms,
                response_status=None,
                response_body=None,
                error=http_outcome.message,
            )

        if isinstance(normalized, ParseFailure) or normalized is None:
            return RunResult(
                timestamp=timestamp,
                status="error",
                response_time_ms=elapsed_ms,
                response_status=http_outcome.status_code,
                response_body=http_outcome.body,
                error=str(normalized) if normalized else "Response body could not be normalized",
            )

        passed = (
            status_failure(test, http_outcome) is None
            and assertion_outcome is not None
            and assertion_outcome.overall_pass
        )

        return RunResult(
            timestamp=timestamp,
            status="passed" if passed else "failed",
            response_time_ms=elapsed_ms,
            response_status=http_outcome.status_code,
            response_body=normalized.value,
        )

    async def record(
        self,
        test: APITestDefinition,
        http_outcome: HTTPResponse | TransportFailure,
        normalized: NormalizedResponse | ParseFailure | None,
        assertion_outcome: AssertionOutcome | None,
        elapsed_ms: int,
    ) -> RunResult:
        """Build the snapshot and save it as one write, replacing the previous one."""
        run_result = self.build(test, http_outcome, normalized, assertion_outcome, elapsed_ms)
        await self.repository.save_run_result(test.id, run_result)
        logger.info(
            "Recorded run for test %s: status=%s response_status=%s time=%dms",
            test.id,
            run_result.status,
            run_result.response_status,
            run_result.response_time_ms,
        )
        return run_result
