"""Reads and writes of the jobs and settings tables."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from autotune_web.models.job import Job
from autotune_web.models.setting import Setting

logger = logging.getLogger(__name__)

COMMIT_SETTING = "Commit"


class JobRecordMissingError(LookupError):
    """The job row disappeared between lookup and replace."""


class JobStore:
    """Jobs/settings persistence on a caller-owned SQLAlchemy session.

    Writes are last-writer-wins; nothing here guards against two concurrent
    callbacks for the same job.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_job(self, partition_key: str, row_key: str) -> Job | None:
        """Exact match on both key parts."""
        return self.db.execute(
            select(Job).where(Job.partition_key == partition_key, Job.row_key == row_key)
        ).scalar_one_or_none()

    def replace_job_outcome(
        self,
        job: Job,
        *,
        started: datetime | None,
        completed: datetime | None,
        result: str,
        failed: bool,
    ) -> None:
        """Overwrite the outcome columns of an existing job row."""
        values = {
            "processing_started": started,
            "processing_completed": completed,
            "result": result,
            "failed": failed,
        }
        outcome = self.db.execute(
            update(Job)
            .where(Job.partition_key == job.partition_key, Job.row_key == job.row_key)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount != 1:
            self.db.rollback()
            raise JobRecordMissingError(f"job {job.partition_key}/{job.row_key} no longer exists")
        self.db.commit()
        logger.info(
            "job_outcome_saved: partition=%s row=%s failed=%s",
            job.partition_key,
            job.row_key,
            failed,
        )

    def upsert_setting(self, partition_key: str, row_key: str, value: str) -> Setting:
        setting = self.db.merge(Setting(partition_key=partition_key, row_key=row_key, value=value))
        self.db.commit()
        return setting

    def get_setting(self, partition_key: str, row_key: str = "") -> str | None:
        setting = self.db.get(Setting, (partition_key, row_key))
        return setting.value if setting else None

    def record_version(self, version_id: str) -> None:
        """Store the autotune commit that produced the latest result."""
        self.upsert_setting(COMMIT_SETTING, "", version_id)
        logger.info("version_marker_saved: commit=%s", version_id)
