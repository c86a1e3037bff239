import asyncio

from services.ingestion.IngestionService import IngestionService
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ChunkingConfig


class IngestionQueue:
    """Work queue for document processing, consumed by a bounded worker pool.

    Submitting only enqueues the document id; the document's status is the
    only signal of progress. A failing document is recorded as Failed by
    the IngestionService and does not stop the worker.
    """

    def __init__(self, helper_config: HelperConfig, ingestion_service: IngestionService) -> None:
        self.logging = helper_config.get_logger()
        self._service = ingestion_service
        self.worker_count = helper_config.get_int_val("INGEST_WORKERS", default=2, min_val=1)
        self._queue: asyncio.Queue[tuple[str, ChunkingConfig | None]] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self.processed = 0
        self.failed = 0

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def is_running(self) -> bool:
        return bool(self._workers)

    def get_pending_count(self) -> int:
        return self._queue.qsize()

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def start(self) -> None:
        """Spawn the worker tasks."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"ingestion-worker-{n}") for n in range(self.worker_count)
        ]
        self.logging.info("Ingestion queue started with %d worker(s)", self.worker_count, extra={"stage": "ingest"})

    async def join(self) -> None:
        """Wait until every submitted document has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers. Documents still queued stay Pending."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self.logging.info(
            "Ingestion queue stopped: %d processed, %d failed, %d pending",
            self.processed,
            self.failed,
            self.get_pending_count(),
            extra={"stage": "ingest"},
        )

    def submit(self, document_id: str, chunking: ChunkingConfig | None = None) -> None:
        """Schedule a document for processing.

        Raises:
            RuntimeError: If the queue has not been started.
        """
        if not self._workers:
            raise RuntimeError("Ingestion queue not started. Call start() before submitting documents.")
        self._queue.put_nowait((document_id, chunking))
        self.logging.debug("Queued document %s (%d pending)", document_id, self.get_pending_count())

    ##########################################
    ################ WORKER ##################
    ##########################################

    async def _worker(self, n: int) -> None:
        while True:
            document_id, chunking = await self._queue.get()
            try:
                await self._service.process_document(document_id, chunking)
                self.processed += 1
            except Exception as exc:
                self.failed += 1
                self.logging.warning(
                    "Worker %d: document %s not processed (%s: %s)",
                    n,
                    document_id,
                    exc.__class__.__name__,
                    exc,
                    extra={"stage": "ingest"},
                )
            finally:
                self._queue.task_done()
