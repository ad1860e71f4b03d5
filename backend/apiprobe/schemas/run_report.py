"""Pydantic schemas for per-assertion results and the full run report."""

from typing import Any
from pydantic import Field

from apiprobe.schemas.endpoint import WireModel
from apiprobe.schemas.api_test import Assertion
from apiprobe.schemas.run_result import RunResult


class AssertionResult(WireModel):
    """Result of evaluating one assertion."""
    assertion: Assertion
    passed: bool
    reason: str
    actual: Any = None


class RunReport(WireModel):
    """Everything a single run produced, including the persisted snapshot."""
    run_result: RunResult
    assertion_results: list[AssertionResult] = Field(default_factory=list)
    failure_reason: str | None = None
