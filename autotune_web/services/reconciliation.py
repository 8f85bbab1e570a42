"""Reconcile a finished autotune batch job.

Called once per job by the batch task's completion callback. The flow is linear:

    authorize -> load job -> task status -> (success: fetch + parse + render)
    -> collect attachments -> (no success body: render failure)
    -> send email -> save job outcome -> save version marker

Every step between the task status query and the attachment listing returns a
StepResult instead of raising, so one failing back end never stops the email
or the job update. The first failure wins and is what gets persisted, except
that a non-zero exit code yields to a later listing error. Once a step has
raised, attachments are not listed. A success body already rendered is sent
even if the listing fails afterwards. Sending the email and writing the tables
are not contained: those errors propagate.
"""

from __future__ import annotations

import enum
import logging
import secrets
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

from autotune_web.config import Settings
from autotune_web.models.job import Job
from autotune_web.schemas.results import ParsedResult
from autotune_web.services import renderer
from autotune_web.services.batch_client import TaskStatus
from autotune_web.services.blob_store import BlobInfo, BlobStore
from autotune_web.services.email_service import EmailAttachment
from autotune_web.services.job_store import JobStore
from autotune_web.services.results_parser import parse_recommendations

logger = logging.getLogger(__name__)

T = TypeVar("T")

TASK_NAME = "Autotune"
RESULTS_BLOB = "autotune_recommendations.log"
PROFILE_BLOB = "profile.json"
EXCLUDED_BLOBS = frozenset({RESULTS_BLOB, PROFILE_BLOB})


def job_container_name(row_key: str) -> str:
    """Batch job id and output container name for a job row."""
    return f"autotune-job-{row_key}"


def describe_exception(exc: BaseException) -> str:
    """Full description of an exception: type, message and traceback."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()


class CallbackAck(enum.Enum):
    ACKNOWLEDGED = "acknowledged"
    NOT_FOUND = "not_found"


class FailureOrigin(str, enum.Enum):
    STATUS_QUERY = "status_query"
    EXIT_CODE = "exit_code"
    ARTIFACT_DOWNLOAD = "artifact_download"
    ARTIFACT_PARSE = "artifact_parse"
    RENDER = "render"
    ATTACHMENTS = "attachments"


@dataclass(frozen=True)
class StepFailure:
    origin: FailureOrigin
    detail: str
    exception: BaseException | None = None

    @property
    def result_text(self) -> str:
        """Text stored on the job row; a plain non-zero exit stores nothing."""
        return "" if self.exception is None else self.detail


@dataclass(frozen=True)
class StepResult(Generic[T]):
    value: T | None = None
    failure: StepFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def run_step(origin: FailureOrigin, fn: Callable[..., T], *args) -> StepResult[T]:
    """Run one back-end step, turning any exception into a StepFailure."""
    try:
        return StepResult(value=fn(*args))
    except Exception as exc:
        logger.warning("reconcile_step_failed: origin=%s error=%s", origin.value, exc)
        return StepResult(failure=StepFailure(origin, describe_exception(exc), exc))


@dataclass
class ReconciliationOutcome:
    job_name: str
    succeeded: bool = False
    started_at: datetime | None = None
    ended_at: datetime | None = None
    body: str | None = None
    attachments: list[BlobInfo] = field(default_factory=list)
    failure: StepFailure | None = None

    def fail(self, failure: StepFailure) -> None:
        self.succeeded = False
        # A plain non-zero exit gives way to a later failure with error text
        if self.failure is None or (
            self.failure.exception is None and failure.exception is not None
        ):
            self.failure = failure

    @property
    def raised(self) -> bool:
        return self.failure is not None and self.failure.exception is not None

    @property
    def result_text(self) -> str:
        return self.failure.result_text if self.failure else ""


class ReconciliationHandler:
    """Turns a job-finished callback into one email and one job update.

    Collaborators are injected: ``batch`` needs ``get_task_status(job_id, task_id)``,
    ``blobs`` is a BlobStore and ``mailer`` needs ``send(recipient, body, attachments)``.
    The caller owns their lifetimes.
    """

    def __init__(
        self,
        settings: Settings,
        store: JobStore,
        batch,
        blobs: BlobStore,
        mailer,
    ) -> None:
        self.settings = settings
        self.store = store
        self.batch = batch
        self.blobs = blobs
        self.mailer = mailer

    def is_authorized(self, auth_key: str | None) -> bool:
        expected = self.settings.results_callback_key
        if not expected or not auth_key:
            return False
        return secrets.compare_digest(auth_key.encode("utf-8"), expected.encode("utf-8"))

    def process_completion(
        self,
        partition_key: str,
        row_key: str,
        auth_key: str | None,
        version_id: str,
    ) -> CallbackAck:
        if not self.is_authorized(auth_key):
            logger.warning("results_callback_rejected: invalid key row=%s", row_key)
            return CallbackAck.NOT_FOUND

        job = self.store.get_job(partition_key, row_key)
        if job is None:
            logger.info("results_callback_unknown_job: partition=%s row=%s", partition_key, row_key)
            return CallbackAck.NOT_FOUND

        outcome = self.reconcile(job, version_id)
        self.notify(job, outcome)

        self.store.replace_job_outcome(
            job,
            started=outcome.started_at,
            completed=outcome.ended_at,
            result=outcome.result_text,
            failed=not outcome.succeeded,
        )
        self.store.record_version(version_id)
        return CallbackAck.ACKNOWLEDGED

    def reconcile(self, job: Job, version_id: str) -> ReconciliationOutcome:
        """Work out the job's outcome and email body. Never raises for back-end errors."""
        outcome = ReconciliationOutcome(job_name=job_container_name(job.row_key))

        status: StepResult[TaskStatus] = run_step(
            FailureOrigin.STATUS_QUERY, self.batch.get_task_status, outcome.job_name, TASK_NAME
        )
        if status.ok:
            outcome.started_at = status.value.started_at
            outcome.ended_at = status.value.ended_at
            outcome.succeeded = status.value.succeeded
            if not outcome.succeeded:
                outcome.fail(
                    StepFailure(
                        FailureOrigin.EXIT_CODE,
                        f"{TASK_NAME} task exited with code {status.value.exit_code}",
                    )
                )
        else:
            outcome.fail(status.failure)

        if outcome.succeeded:
            body = self._render_success(job, outcome.job_name, version_id)
            if body.ok:
                outcome.body = body.value
            else:
                outcome.fail(body.failure)

        # An exception in any earlier step goes straight to the failure email
        if not outcome.raised:
            listing = run_step(
                FailureOrigin.ATTACHMENTS, self._collect_attachments, outcome.job_name
            )
            if listing.ok:
                outcome.attachments = listing.value
            else:
                outcome.fail(listing.failure)

        if outcome.body is None:
            outcome.body = renderer.render_failure(version_id)

        logger.info(
            "job_reconciled: job=%s succeeded=%s origin=%s attachments=%d",
            outcome.job_name,
            outcome.succeeded,
            outcome.failure.origin.value if outcome.failure else None,
            len(outcome.attachments),
        )
        return outcome

    def _render_success(self, job: Job, container: str, version_id: str) -> StepResult[str]:
        raw = run_step(FailureOrigin.ARTIFACT_DOWNLOAD, self.blobs.download, container, RESULTS_BLOB)
        if not raw.ok:
            return StepResult(failure=raw.failure)

        parsed: StepResult[ParsedResult] = run_step(
            FailureOrigin.ARTIFACT_PARSE, self._parse, raw.value, job
        )
        if not parsed.ok:
            return StepResult(failure=parsed.failure)
        parsed.value.version = version_id

        return run_step(FailureOrigin.RENDER, renderer.render_success, parsed.value)

    @staticmethod
    def _parse(raw: bytes, job: Job) -> ParsedResult:
        return parse_recommendations(raw.decode("utf-8-sig"), job)

    def _collect_attachments(self, container: str) -> list[BlobInfo]:
        max_count = self.settings.attachment_max_count
        max_bytes = self.settings.attachment_max_bytes
        kept: list[BlobInfo] = []
        for blob in self.blobs.list_blobs(container):
            if blob.name in EXCLUDED_BLOBS:
                continue
            if blob.size > max_bytes:
                logger.warning(
                    "attachment_skipped: job=%s blob=%s size=%d limit=%d",
                    container,
                    blob.name,
                    blob.size,
                    max_bytes,
                )
                continue
            if len(kept) >= max_count:
                logger.warning("attachments_truncated: job=%s limit=%d", container, max_count)
                break
            kept.append(blob)
        return kept

    def notify(self, job: Job, outcome: ReconciliationOutcome) -> None:
        """Send the results email. Attachments are downloaded one at a time."""
        attachments = [
            EmailAttachment(
                filename=blob.name,
                content=self.blobs.download(outcome.job_name, blob.name),
            )
            for blob in outcome.attachments
        ]
        self.mailer.send(job.email_results_to, outcome.body, attachments)
