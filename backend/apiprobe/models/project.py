"""Project model: owner of endpoints and source of the base URL."""

import uuid
from datetime import datetime
from sqlalchemy import String, Text, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from apiprobe.db.postgres import Base


class Project(Base):
    """An API under test, addressed through its base URL."""
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    base_url: Mapped[str] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    endpoints: Mapped[list["Endpoint"]] = relationship(back_populates="project", cascade="all, delete-orphan")
