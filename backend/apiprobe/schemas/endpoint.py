"""Pydantic schemas for endpoint definitions."""

from uuid import UUID
from typing import Literal, Any
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HTTPMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]


class WireModel(BaseModel):
    """Base for schemas stored and exchanged with camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KeyValue(WireModel):
    """A header or query parameter entry."""
    key: str
    value: str = ""
    description: str | None = None


class EndpointDefinition(WireModel):
    """Default request shape of an HTTP endpoint."""
    id: UUID
    project_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    method: HTTPMethod
    path: str = Field(..., max_length=1000, description="Path template, may contain {param} placeholders")
    headers: list[KeyValue] = Field(default_factory=list)
    query_params: list[KeyValue] = Field(default_factory=list)
    request_body: Any = None
    response_schema: Any = Field(None, description="Response shape hint, informational only")


class ResolvedEndpoint(WireModel):
    """An endpoint together with the base URL of its owning project."""
    endpoint: EndpointDefinition
    base_url: str
