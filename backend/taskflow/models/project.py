"""
Project model — the container a user's work items live in.

A project owns its work items by composition: the work_items.project_id
foreign key is ON DELETE CASCADE, so deleting the row removes the tree.
No ORM relationship is declared; children are always fetched by query.
"""

import datetime
import uuid

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from taskflow.core.database import Base
from taskflow.domain.ids import new_project_id, new_version_stamp


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Project(Base):
    """One user's project — the ownership boundary for its work items."""

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=new_project_id,
    )
    name: Mapped[str] = mapped_column(
        String(200), nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        String(2000), nullable=True,
    )
    # Immutable after creation; no method changes it.
    owner_id: Mapped[str] = mapped_column(
        String(256), nullable=False, index=True,
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    version_stamp: Mapped[str] = mapped_column(
        String(32), nullable=False,
    )

    # UPDATE … WHERE version_stamp = :seen; zero rows → StaleDataError.
    __mapper_args__ = {
        "version_id_col": version_stamp,
        "version_id_generator": new_version_stamp,
    }

    def rename(self, name: str, description: str | None) -> None:
        self.name = name
        self.description = description
        self.updated_at = utcnow()

    def __repr__(self) -> str:
        return f"<Project id={self.id!s:.8} name={self.name!r}>"
