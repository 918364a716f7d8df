"""ORM models backing database persistence of performance stores."""

from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class PlanPerformanceModel(TimestampMixin, Base):
    __tablename__ = "plan_performance"
    __table_args__ = (Index("ix_plan_performance_plan_id", "plan_id", unique=True),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    plan_id: Mapped[str] = mapped_column(String(128), nullable=False)
    last_updated: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    records: Mapped[list["TaskPerformanceModel"]] = relationship(
        back_populates="plan", cascade="all, delete-orphan", order_by="TaskPerformanceModel.id"
    )


class TaskPerformanceModel(Base):
    __tablename__ = "task_performance"
    __table_args__ = (UniqueConstraint("plan_pk", "task_id", name="uq_task_performance_task"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_pk: Mapped[str] = mapped_column(
        String(36), ForeignKey("plan_performance.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task_id: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    activity: Mapped[str] = mapped_column(Text, default="", nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    day_of_week: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)

    plan: Mapped[PlanPerformanceModel] = relationship(back_populates="records")


__all__ = ["PlanPerformanceModel", "TaskPerformanceModel"]
