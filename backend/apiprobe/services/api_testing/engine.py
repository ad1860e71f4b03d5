"""Main API test execution engine."""

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import UUID

from apiprobe.config import Settings, get_settings
from apiprobe.schemas.api_test import APITestDefinition
from apiprobe.schemas.endpoint import EndpointDefinition
from apiprobe.schemas.run_report import RunReport
from apiprobe.schemas.run_result import RunResult
from apiprobe.services.api_testing.assertion_engine import AssertionEngine, AssertionOutcome
from apiprobe.services.api_testing.cancellation import CancellationToken
from apiprobe.services.api_testing.errors import ParseFailure, RunCancelled
from apiprobe.services.api_testing.http_client import APIHttpClient, HTTPResponse, TransportFailure
from apiprobe.services.api_testing.repository import APITestRepository
from apiprobe.services.api_testing.request_builder import ConcreteRequest, RequestBuilder
from apiprobe.services.api_testing.response_normalizer import (
    NormalizedResponse,
    ensure_path_access,
    normalize,
)
from apiprobe.services.api_testing.run_recorder import RunRecorder, failure_reason

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """State of one run as it moves through the pipeline stages."""
    test: APITestDefinition
    endpoint: EndpointDefinition
    base_url: str
    token: CancellationToken
    request: ConcreteRequest | None = None
    http_outcome: HTTPResponse | TransportFailure | None = None
    normalized: NormalizedResponse | ParseFailure | None = None
    assertion_outcome: AssertionOutcome | None = None
    assertions: list = field(default_factory=list)

    @property
    def elapsed_ms(self) -> int:
        return self.http_outcome.elapsed_ms if self.http_outcome else 0


class APITestEngine:
    """
    Runs stored endpoint tests.

    Stages, strictly in order:
    1. RequestBuilder - endpoint defaults + test overrides
    2. APIHttpClient - one request, bounded by the test timeout
    3. normalize - JSON body or opaque text
    4. AssertionEngine - every assertion, no short-circuit
    5. RunRecorder - status derivation and snapshot write

    Runs share no mutable state, so any number may execute concurrently.
    Nothing is retried.
    """

    def __init__(
        self,
        repository: APITestRepository,
        http_client: APIHttpClient | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.repository = repository
        self.http_client = http_client or APIHttpClient(
            follow_redirects=self.settings.follow_redirects,
            verify_ssl=self.settings.verify_ssl,
            max_body_size=self.settings.max_response_body_bytes,
        )
        self.request_builder = RequestBuilder()
        self.assertion_engine = AssertionEngine()
        self.recorder = RunRecorder(repository)

    async def close(self):
        """Close the HTTP client."""
        await self.http_client.close()

    async def run_test(self, test_id: UUID, token: CancellationToken | None = None) -> RunResult:
        """Run one test and return the snapshot that was saved."""
        report = await self.execute(test_id, token)
        return report.run_result

    async def run_tests(self, test_ids: list[UUID]) -> list[RunResult | Exception]:
        """
        Run independent tests concurrently.

        Results come back in input order; a test that could not be run yields
        its exception in place of a RunResult.
        """
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_runs)

        async def run_bounded(test_id: UUID) -> RunResult:
            async with semaphore:
                return await self.run_test(test_id)

        return await asyncio.gather(
            *(run_bounded(test_id) for test_id in test_ids),
            return_exceptions=True,
        )

    async def execute(self, test_id: UUID, token: CancellationToken | None = None) -> RunReport:
        """
        Run one test through all stages and return the full report.

        Raises:
            NotFoundError: Test or endpoint does not exist
            DefinitionValidationError: Stored definition is malformed
            RunCancelled: The token fired before the result was recorded
            PersistenceError: The snapshot could not be saved
        """
        token = token or CancellationToken()

        test = await token.guard(self.repository.get_test(test_id))
        resolved = await token.guard(self.repository.get_endpoint(test.endpoint_id))
        ctx = RunContext(
            test=test,
            endpoint=resolved.endpoint,
            base_url=resolved.base_url,
            token=token,
            assertions=test.effective_assertions(),
        )

        logger.info("Running test %s (%s %s)", test.id, ctx.endpoint.method, ctx.endpoint.path)

        try:
            self._build_request(ctx)
            await self._send(ctx)
            if isinstance(ctx.http_outcome, HTTPResponse):
                self._normalize(ctx)
                if isinstance(ctx.normalized, NormalizedResponse):
                    self._evaluate(ctx)
            run_result = await self._record(ctx)
        except RunCancelled:
            logger.info("Run of test %s cancelled, last run left unchanged", test.id)
            raise

        report = RunReport(
            run_result=run_result,
            assertion_results=ctx.assertion_outcome.results if ctx.assertion_outcome else [],
            failure_reason=failure_reason(test, ctx.http_outcome, ctx.normalized, ctx.assertion_outcome),
        )
        logger.info("Test %s finished: %s", test.id, run_result.status)
        return report

    def _build_request(self, ctx: RunContext) -> None:
        ctx.token.raise_if_cancelled()
        ctx.request = self.request_builder.build(ctx.endpoint, ctx.test, ctx.base_url)

    async def _send(self, ctx: RunContext) -> None:
        timeout_ms = ctx.test.timeout_ms or self.settings.request_timeout_ms
        ctx.http_outcome = await ctx.token.guard(self.http_client.execute(ctx.request, timeout_ms))
        ctx.token.raise_if_cancelled()

    def _normalize(self, ctx: RunContext) -> None:
        ctx.token.raise_if_cancelled()
        response = ctx.http_outcome
        normalized = normalize(response.body_bytes, response.content_type)
        try:
            if response.truncated and not normalized.structured:
                raise ParseFailure(
                    f"Response body exceeded {response.size_bytes} bytes and was truncated; it cannot be parsed"
                )
            ensure_path_access(normalized, [a.path for a in ctx.assertions])
        except ParseFailure as e:
            logger.warning("Test %s: %s", ctx.test.id, e)
            ctx.normalized = e
            return
        ctx.normalized = normalized

    def _evaluate(self, ctx: RunContext) -> None:
        ctx.token.raise_if_cancelled()
        ctx.assertion_outcome = self.assertion_engine.evaluate(ctx.normalized.value, ctx.assertions)

    async def _record(self, ctx: RunContext) -> RunResult:
        # Last point where cancellation is honoured; the write itself is not interrupted
        ctx.token.raise_if_cancelled()
        return await self.recorder.record(
            ctx.test,
            ctx.http_outcome,
            ctx.normalized,
            ctx.assertion_outcome,
            ctx.elapsed_ms,
        )
