"""SQLAlchemy models."""

from autotune_web.models.job import Job
from autotune_web.models.setting import Setting

__all__ = [
    "Job",
    "Setting",
]
