"""Job model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from autotune_web.db.session import Base


class Job(Base):
    """One submitted autotune run and its outcome.

    Created at submission time by the web front end; the results callback reads it
    and overwrites the outcome columns exactly once per reconciliation.
    """

    __tablename__ = "jobs"

    partition_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    row_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    email_results_to: Mapped[str] = mapped_column(String(320), nullable=False)
    processing_started: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processing_completed: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    result: Mapped[str | None] = mapped_column(Text, nullable=True)
    failed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
