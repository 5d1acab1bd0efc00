"""
Celery tasks for the extraction pipeline.

- `dispatch_extractions_task`: beat tick; queues the next batch and submits
  one `extraction_task` per document (task id = `extraction_job_id`).
- `extraction_task`: runs one document through start → extractor → complete/fail.
- `watchdog_task`: fails documents stuck in `extracting` past the timeout.

Each task handles its own documents, so one failing extraction never
affects the others.
"""
from celery.signals import setup_logging as celery_setup_logging

from controllers.extraction_controller import ExtractionController
from core.config import get_settings
from core.exceptions import InspectFlowError, InvalidState, QuotaExceeded
from core.logging_config import get_logger, setup_logging
from models.document import DocumentRecord
from models.enums import ExtractionStatusEnum
from worker.celery_app import celery_app

logger = get_logger(__name__)
settings = get_settings()


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    setup_logging(settings)


def submit_extraction(document: DocumentRecord) -> None:
    """Send the Celery job for a freshly queued document."""
    extraction_task.apply_async(
        args=[document.id],
        task_id=document.extraction_job_id,
        queue=settings.worker.queue,
    )


@celery_app.task(bind=True, name="worker.tasks.extraction_task")
def extraction_task(self, document_id: str):
    """
    Extract a single queued document.

    Returns a small status dict; unexpected errors mark the document failed
    and are re-raised so Celery records the task as failed.
    """
    logger.info("🚀 Extraction task started", extra={"document_id": document_id, "job_id": self.request.id})
    controller = ExtractionController()

    try:
        document = controller.run_extraction(document_id)
    except QuotaExceeded as e:
        logger.warning(f"Extraction deferred: {e}", extra={"document_id": document_id})
        return {"status": "deferred", "document_id": document_id, "reason": str(e)}
    except InvalidState as e:
        # Cancelled or picked up by someone else in the meantime.
        logger.warning(f"Extraction skipped: {e}", extra={"document_id": document_id})
        return {"status": "skipped", "document_id": document_id, "reason": str(e)}
    except Exception as e:
        logger.exception("❌ Extraction task crashed", extra={"document_id": document_id})
        try:
            controller.fail_extraction(document_id, f"Unexpected worker error: {e}")
        except InspectFlowError as mark_err:
            logger.error(f"Could not mark document failed: {mark_err}", extra={"document_id": document_id})
        raise

    logger.info(
        "📊 Extraction task finished",
        extra={"document_id": document_id, "extraction_status": document.extraction_status},
    )
    return {
        "status": "done",
        "document_id": document_id,
        "extraction_status": ExtractionStatusEnum(document.extraction_status).value,
        "tokens_used": document.tokens_used,
    }


@celery_app.task(name="worker.tasks.dispatch_extractions_task")
def dispatch_extractions_task():
    documents = ExtractionController().dispatch(send=submit_extraction)
    return {"dispatched": [d.id for d in documents]}


@celery_app.task(name="worker.tasks.watchdog_task")
def watchdog_task():
    failed = ExtractionController().fail_stale_extractions()
    if failed:
        logger.warning(f"Watchdog failed {len(failed)} stale extraction(s)")
    return {"failed": [d.id for d in failed]}
