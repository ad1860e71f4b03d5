"""Endpoint model for HTTP endpoint templates."""

import uuid
from typing import Any
from datetime import datetime
from sqlalchemy import String, Text, ForeignKey, DateTime, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from apiprobe.db.postgres import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Endpoint(Base):
    """Default request shape for one HTTP endpoint of a project."""
    __tablename__ = "endpoints"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("projects.id"), index=True)

    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    method: Mapped[str] = mapped_column(String(10))  # GET, POST, PUT, DELETE, PATCH, OPTIONS, HEAD
    path: Mapped[str] = mapped_column(String(1000))  # May contain {param} placeholders

    # [{key, value, description}]
    headers: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    query_params: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    request_body: Mapped[Any] = mapped_column(JSONType, nullable=True)
    response_schema: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    project: Mapped["Project"] = relationship(back_populates="endpoints")
    tests: Mapped[list["EndpointTest"]] = relationship(back_populates="endpoint", cascade="all, delete-orphan")
