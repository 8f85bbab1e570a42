"""Setting model."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from autotune_web.db.session import Base


class Setting(Base):
    """Key-value settings keyed like the jobs table (category, row).

    The results callback keeps a single ("Commit", "") row holding the version of
    autotune that produced the most recent result.
    """

    __tablename__ = "settings"

    partition_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    row_key: Mapped[str] = mapped_column(String(255), primary_key=True, default="")
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
