"""Assertion engine for API test assertions."""

from dataclasses import dataclass
from typing import Any, Callable

from apiprobe.schemas.api_test import Assertion
from apiprobe.schemas.run_report import AssertionResult
from apiprobe.services.api_testing.json_value import (
    JsonKind,
    JsonValue,
    deep_equals,
    describe,
    is_number,
    json_kind,
)
from apiprobe.services.api_testing.path_resolver import Resolution, resolve


@dataclass(frozen=True)
class AssertionOutcome:
    """All per-assertion results of one evaluation, in assertion order."""
    results: list[AssertionResult]

    @property
    def overall_pass(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def first_failure(self) -> AssertionResult | None:
        return next((r for r in self.results if not r.passed), None)


class AssertionEngine:
    """
    Evaluates assertions against a normalized response value.

    Supported operators:
    - exists / notExists: whether the path resolves
    - equals: type-sensitive deep equality
    - contains: substring for strings, deep-equal member for arrays
    - greaterThan / lessThan: numeric comparison

    Evaluation is pure and never raises: an assertion that cannot be
    evaluated is reported as failed with a reason.
    """

    def __init__(self):
        self._handlers: dict[str, Callable[[Resolution, Assertion], tuple[bool, str]]] = {
            "exists": self._assert_exists,
            "notExists": self._assert_not_exists,
            "equals": self._assert_equals,
            "contains": self._assert_contains,
            "greaterThan": self._assert_greater_than,
            "lessThan": self._assert_less_than,
        }

    def evaluate(self, value: JsonValue, assertions: list[Assertion]) -> AssertionOutcome:
        """Evaluate every assertion independently, without short-circuiting."""
        return AssertionOutcome(results=[self.evaluate_one(value, a) for a in assertions])

    def evaluate_one(self, value: JsonValue, assertion: Assertion) -> AssertionResult:
        resolution = resolve(value, assertion.path)
        actual = resolution.value if resolution.found else None

        handler = self._handlers.get(assertion.operator)
        if not handler:
            return self._result(assertion, False, f"Unknown operator: {assertion.operator}", actual)

        try:
            passed, reason = handler(resolution, assertion)
        except Exception as e:
            passed, reason = False, f"Assertion error: {e}"

        return self._result(assertion, passed, reason, actual)

    def _result(self, assertion: Assertion, passed: bool, reason: str, actual: Any) -> AssertionResult:
        return AssertionResult(assertion=assertion, passed=passed, reason=reason, actual=actual)

    def _label(self, assertion: Assertion) -> str:
        return f"Path '{assertion.path}'" if assertion.path else "Response body"

    def _assert_exists(self, resolution: Resolution, assertion: Assertion) -> tuple[bool, str]:
        if resolution.found:
            return True, f"{self._label(assertion)} exists"
        return False, f"{self._label(assertion)} does not exist"

    def _assert_not_exists(self, resolution: Resolution, assertion: Assertion) -> tuple[bool, str]:
        if resolution.found:
            return False, f"{self._label(assertion)} exists"
        return True, f"{self._label(assertion)} does not exist"

    def _assert_equals(self, resolution: Resolution, assertion: Assertion) -> tuple[bool, str]:
        if not resolution.found:
            return False, f"{self._label(assertion)} not found"

        expected, actual = assertion.value, resolution.value
        if deep_equals(actual, expected):
            return True, f"{self._label(assertion)} equals {describe(expected)}"

        actual_kind, expected_kind = json_kind(actual), json_kind(expected)
        if actual_kind is not expected_kind:
            return False, (
                f"{self._label(assertion)} is {actual_kind} {describe(actual)}, "
                f"expected {expected_kind} {describe(expected)}"
            )
        return False, f"{self._label(assertion)} is {describe(actual)}, expected {describe(expected)}"

    def _assert_contains(self, resolution: Resolution, assertion: Assertion) -> tuple[bool, str]:
        if not resolution.found:
            return False, f"{self._label(assertion)} not found"

        expected, actual = assertion.value, resolution.value
        actual_kind = json_kind(actual)

        if actual_kind is JsonKind.STRING:
            if not isinstance(expected, str):
                return False, (
                    f"type mismatch: cannot search string at {self._label(assertion)} "
                    f"for {json_kind(expected)} {describe(expected)}"
                )
            if expected in actual:
                return True, f"{self._label(assertion)} contains '{expected}'"
            return False, f"{self._label(assertion)} does not contain '{expected}'"

        if actual_kind is JsonKind.ARRAY:
            if any(deep_equals(item, expected) for item in actual):
                return True, f"{self._label(assertion)} contains {describe(expected)}"
            return False, f"{self._label(assertion)} does not contain {describe(expected)}"

        return False, f"type mismatch: contains needs a string or array, {self._label(assertion)} is {actual_kind}"

    def _assert_greater_than(self, resolution: Resolution, assertion: Assertion) -> tuple[bool, str]:
        return self._compare(resolution, assertion, "greater than", lambda a, b: a > b)

    def _assert_less_than(self, resolution: Resolution, assertion: Assertion) -> tuple[bool, str]:
        return self._compare(resolution, assertion, "less than", lambda a, b: a < b)

    def _compare(
        self,
        resolution: Resolution,
        assertion: Assertion,
        relation: str,
        holds: Callable[[float, float], bool],
    ) -> tuple[bool, str]:
        if not resolution.found:
            return False, f"{self._label(assertion)} not found"

        expected, actual = assertion.value, resolution.value
        if not is_number(actual):
            return False, f"type mismatch: {self._label(assertion)} is {json_kind(actual)}, not a number"
        if not is_number(expected):
            return False, f"type mismatch: expected value {describe(expected)} is not a number"

        if holds(actual, expected):
            return True, f"{self._label(assertion)} = {actual} is {relation} {expected}"
        return False, f"{self._label(assertion)} = {actual} is not {relation} {expected}"
