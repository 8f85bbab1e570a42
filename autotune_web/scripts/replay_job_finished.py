"""Re-run the job-finished callback for one job without going through HTTP.

Usage:
    python -m autotune_web.scripts.replay_job_finished PARTITION_KEY ROW_KEY --commit <sha>

Uses the web app's configuration, including RESULTS_CALLBACK_KEY. The requester
gets another email and the job row is rewritten. Exits 0 when the job was
reconciled, 1 if it was not found or an error occurred.
"""

from __future__ import annotations

import argparse
import sys

from autotune_web.config import get_settings
from autotune_web.db.session import SessionLocal, create_tables
from autotune_web.services.batch_client import BatchClient
from autotune_web.services.blob_store import open_blob_store
from autotune_web.services.email_service import SendGridMailer
from autotune_web.services.job_store import JobStore
from autotune_web.services.reconciliation import CallbackAck, ReconciliationHandler


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Replay the autotune job-finished callback")
    parser.add_argument("partition_key", help="Job partition key")
    parser.add_argument("row_key", help="Job row key")
    parser.add_argument("--commit", default="", help="Autotune version to record")
    args = parser.parse_args(argv)

    settings = get_settings()
    create_tables()
    db = SessionLocal()
    blobs = open_blob_store(settings)
    try:
        with BatchClient.from_settings(settings) as batch, SendGridMailer.from_settings(
            settings
        ) as mailer:
            handler = ReconciliationHandler(settings, JobStore(db), batch, blobs, mailer)
            ack = handler.process_completion(
                args.partition_key, args.row_key, settings.results_callback_key, args.commit
            )
        if ack is CallbackAck.NOT_FOUND:
            print(f"job not found: {args.partition_key}/{args.row_key}", file=sys.stderr)
            return 1
        print(f"status=reconciled job={args.partition_key}/{args.row_key}")
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        blobs.close()
        db.close()


if __name__ == "__main__":
    sys.exit(main())
