"""Exception hierarchy for API test execution."""


class APITestingError(Exception):
    """Base exception for all test execution errors."""


class DefinitionValidationError(APITestingError):
    """Raised when a test or endpoint definition is malformed.

    Detected before any request is sent; execution does not proceed.
    """


class PathSyntaxError(DefinitionValidationError):
    """Raised when an assertion path expression cannot be parsed."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"Invalid path '{path}': {detail}")


class ParseFailure(APITestingError):
    """Raised when a response body cannot be structurally interpreted where required."""


class RunCancelled(APITestingError):
    """Raised when a run is cancelled before its result was recorded."""


class NotFoundError(APITestingError):
    """Raised when a test or endpoint does not exist."""


class PersistenceError(APITestingError):
    """Raised when a run result cannot be saved."""
