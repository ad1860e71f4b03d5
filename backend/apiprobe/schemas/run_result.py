"""Pydantic schema for the last run snapshot."""

from datetime import datetime
from typing import Literal, Any
from pydantic import Field, model_validator

from apiprobe.schemas.endpoint import WireModel

RunStatus = Literal["passed", "failed", "error"]


class RunResult(WireModel):
    """The last run snapshot stored on a test."""
    timestamp: datetime
    status: RunStatus
    response_time_ms: int = Field(..., ge=0)
    response_status: int | None = None  # None when no response was received
    response_body: Any = None  # Normalized value, or raw text when it could not be parsed
    error: str | None = None

    @model_validator(mode="after")
    def error_iff_errored(self):
        if self.status == "error" and not self.error:
            raise ValueError("error message is required when status is 'error'")
        if self.status != "error" and self.error is not None:
            raise ValueError("error message is only allowed when status is 'error'")
        return self
