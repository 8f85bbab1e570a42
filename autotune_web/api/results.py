"""Batch job completion callback.

The autotune batch job calls this when its last task finishes. The response
never reflects the job's outcome: 404 only for a bad key or an unknown job,
otherwise an empty 200.
"""

from __future__ import annotations

import logging
from collections.abc import Generator

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from autotune_web.api.deps import get_db
from autotune_web.config import get_settings
from autotune_web.services.batch_client import BatchClient
from autotune_web.services.blob_store import open_blob_store
from autotune_web.services.email_service import SendGridMailer
from autotune_web.services.job_store import JobStore
from autotune_web.services.reconciliation import CallbackAck, ReconciliationHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/Results", include_in_schema=False)


def get_reconciliation_handler(
    db: Session = Depends(get_db),
) -> Generator[ReconciliationHandler, None, None]:
    """Build a handler whose HTTP clients are closed when the request ends."""
    settings = get_settings()
    blobs = open_blob_store(settings)
    try:
        with BatchClient.from_settings(settings) as batch, SendGridMailer.from_settings(
            settings
        ) as mailer:
            yield ReconciliationHandler(settings, JobStore(db), batch, blobs, mailer)
    finally:
        blobs.close()


@router.api_route("/JobFinished", methods=["GET", "POST"])
def job_finished(
    partition_key: str = Query(..., alias="partitionKey"),
    row_key: str = Query(..., alias="rowKey"),
    key: str | None = Query(None),
    commit: str = Query(""),
    handler: ReconciliationHandler = Depends(get_reconciliation_handler),
) -> Response:
    ack = handler.process_completion(partition_key, row_key, key, commit)
    if ack is CallbackAck.NOT_FOUND:
        return Response(status_code=404)
    return Response(content="", status_code=200)
