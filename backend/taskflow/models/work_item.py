"""
WorkItem model — one node of the Epic → Story → Task tree.

Design notes:
  • The tree is a nullable self-referential FK (parent_id) with
    ON DELETE CASCADE. Deleting one row lets the store remove the subtree.
  • No parent/children relationship() is mapped: adjacency is rebuilt per
    query (see services.work_items), never held as an object graph.
  • kind and status are stored as their names (VARCHAR), not integers.
  • Hierarchy rules are enforced by the service before writing, not here.
  • version_stamp changes on every UPDATE (optimistic concurrency).
"""

import datetime
import uuid

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from taskflow.core.database import Base
from taskflow.domain.enums import WorkItemKind, WorkItemStatus
from taskflow.domain.ids import new_version_stamp, new_work_item_id
from taskflow.models.project import utcnow


def _enum_values(enum_cls):  # type: ignore[no-untyped-def]
    return [member.value for member in enum_cls]


class WorkItem(Base):
    """An Epic, Story or Task inside a project."""

    __tablename__ = "work_items"

    # ── Identity ────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=new_work_item_id,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("work_items.id", ondelete="CASCADE"),
        nullable=True,
    )

    # ── Classification ──────────────────────────────────────
    kind: Mapped[WorkItemKind] = mapped_column(
        Enum(
            WorkItemKind,
            native_enum=False,
            length=50,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    status: Mapped[WorkItemStatus] = mapped_column(
        Enum(
            WorkItemStatus,
            native_enum=False,
            length=50,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=WorkItemStatus.NEW,
    )

    # ── Content ─────────────────────────────────────────────
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(5000), nullable=True)
    assigned_user_id: Mapped[str | None] = mapped_column(String(256), nullable=True)

    # ── Timestamps / concurrency ────────────────────────────
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
    version_stamp: Mapped[str] = mapped_column(String(32), nullable=False)

    __mapper_args__ = {
        "version_id_col": version_stamp,
        "version_id_generator": new_version_stamp,
    }

    __table_args__ = (
        Index("ix_work_items_project_parent", "project_id", "parent_id"),
        Index("ix_work_items_parent_id", "parent_id"),
    )

    # ── Behaviour ───────────────────────────────────────────
    # Each mutator moves updated_at with the change; the mapper
    # regenerates version_stamp when the row is flushed.
    def rename(self, title: str, description: str | None) -> None:
        self.title = title
        self.description = description
        self._touch()

    def move_to(self, parent_id: uuid.UUID | None) -> None:
        self.parent_id = parent_id
        self._touch()

    def update_status(self, status: WorkItemStatus) -> None:
        self.status = status
        self._touch()

    def assign(self, user_id: str | None) -> None:
        self.assigned_user_id = user_id
        self._touch()

    def _touch(self) -> None:
        self.updated_at = utcnow()

    def __repr__(self) -> str:
        return (
            f"<WorkItem id={self.id!s:.8} kind={self.kind.value} "
            f"title={self.title!r}>"
        )
